from typing import Any, Optional

from pydantic_settings import BaseSettings

DEFAULT_CLIENT_ORIGIN = "http://localhost:3000"
CONFIG_PATH = "/config"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_LIST_LIMIT = 100


class CommonSettings(BaseSettings):
    """Settings that are common across all certdesk entry points"""

    model_config = {"validate_assignment": True, "env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    api_url: Optional[str] = None  # Explicit CA API base URL (if None - the resolver will consult config_url)
    config_url: Optional[str] = None  # Absolute URL of the config discovery endpoint (None = client_origin + /config)
    client_origin: str = DEFAULT_CLIENT_ORIGIN  # The origin (scheme://host:port) that this client is served from

    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS  # Timeout applied to every outgoing HTTP request
    default_list_limit: int = DEFAULT_LIST_LIMIT  # How many certificates a snapshot refresh will request

    @property
    def resolved_config_url(self) -> str:
        """The URL that the endpoint resolver will query for the configured api url"""
        if self.config_url:
            return self.config_url
        return self.client_origin.rstrip("/") + CONFIG_PATH

    @property
    def resolver_kwargs(self) -> dict[str, Any]:
        return {
            "config_url": self.resolved_config_url,
            "client_origin": self.client_origin,
            "static_api_url": self.api_url,
            "timeout_seconds": self.request_timeout_seconds,
        }


def generate_settings() -> CommonSettings:
    """Generates and configures a new instance of the CommonSettings"""
    return CommonSettings()


settings = generate_settings()
