"""Configuration management for the Messages API client."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

API_KEY_ENV = "ANTHROPIC_API_KEY"


class Configuration:
    """Manages configuration and environment variables for the client."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API keys
        self.config_path = config_path or os.path.join(
            os.path.dirname(__file__), "config.yaml"
        )
        self._config = self._load_yaml_config()

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self.config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def api_key(self) -> str:
        """Get the Messages API key.

        Returns:
            The API key as a string.

        Raises:
            ValueError: If the API key is not found in environment variables.
        """
        api_key = os.getenv(API_KEY_ENV)
        if not api_key:
            raise ValueError(
                f"API key '{API_KEY_ENV}' not found in environment variables"
            )
        return api_key

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary."""
        return self._config

    def get_client_config(self) -> dict[str, Any]:
        """Get HTTP client configuration from YAML.

        Returns:
            Client configuration dictionary with validated values.

        Raises:
            ValueError: If required client parameters are missing or invalid.
        """
        client_config = self._config.get("client", {})

        required_keys = [
            "base_url", "anthropic_version", "connect_timeout", "read_timeout"
        ]
        for key in required_keys:
            if key not in client_config:
                raise ValueError(
                    f"client.{key} must be explicitly configured in config.yaml"
                )

        for key in ("connect_timeout", "read_timeout"):
            value = client_config[key]
            if not isinstance(value, int | float) or value <= 0:
                raise ValueError(f"client.{key} must be a positive number")

        return client_config

    def get_streaming_config(self) -> dict[str, Any]:
        """Get streaming configuration from YAML.

        Returns:
            Streaming configuration dictionary with validated values.

        Raises:
            ValueError: If required streaming parameters are missing or invalid.
        """
        streaming_config = self._config.get("streaming", {})

        required_keys = ["producer_timeout", "relay_timeout", "queue_size"]
        for key in required_keys:
            if key not in streaming_config:
                raise ValueError(
                    f"streaming.{key} must be explicitly configured in config.yaml"
                )

        for key in ("producer_timeout", "relay_timeout"):
            value = streaming_config[key]
            if not isinstance(value, int | float) or value <= 0:
                raise ValueError(f"streaming.{key} must be a positive number")

        queue_size = streaming_config["queue_size"]
        if not isinstance(queue_size, int) or queue_size < 1:
            raise ValueError("streaming.queue_size must be at least 1")

        return streaming_config

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Logging configuration dictionary.
        """
        return self._config.get("logging", {})
