import logging
from asyncio import Lock
from http import HTTPStatus
from typing import Optional
from urllib.parse import urlsplit

from httpx import AsyncBaseTransport, AsyncClient

from certdesk.exception import ConfigUnavailable
from certdesk.schema.certificate import ConfigResponse
from certdesk.settings import DEFAULT_REQUEST_TIMEOUT_SECONDS, CommonSettings, settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = DEFAULT_REQUEST_TIMEOUT_SECONDS


class EndpointConfig:
    """Holds the resolved CA API base URL. This is a single assignment value - once assigned it can't be changed
    for the lifetime of the instance (there is no invalidation path)"""

    _base_url: Optional[str]

    def __init__(self, base_url: Optional[str] = None) -> None:
        self._base_url = None
        if base_url is not None:
            self.assign(base_url)

    @property
    def is_resolved(self) -> bool:
        return self._base_url is not None

    @property
    def base_url(self) -> Optional[str]:
        return self._base_url

    def assign(self, base_url: str) -> None:
        """Sets the base URL. raises RuntimeError if a value has already been assigned"""
        if self._base_url is not None:
            raise RuntimeError(f"Endpoint already resolved to '{self._base_url}'. Refusing to reassign to '{base_url}'")
        self._base_url = normalise_base_url(base_url)


def normalise_base_url(url: str) -> str:
    return url.strip().rstrip("/")


def origin_of(url: str) -> str:
    """Reduces an absolute URL to its origin - scheme://host[:port]"""
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        raise ConfigUnavailable(f"'{url}' is not an absolute URL and cannot be used as a client origin")
    return f"{parts.scheme}://{parts.netloc}"


async def fetch_configured_api_url(
    config_url: str, timeout_seconds: float = REQUEST_TIMEOUT_SECONDS, transport: Optional[AsyncBaseTransport] = None
) -> Optional[str]:
    """Queries the config discovery endpoint for an explicitly configured CA API url.

    Returns None if the endpoint reports no configured value (null or empty)

    raises ConfigUnavailable if the endpoint can't be contacted or returns an unexpected response"""
    async with AsyncClient(timeout=timeout_seconds, transport=transport) as client:
        try:
            response = await client.get(config_url)
        except Exception as ex:
            logger.error(f"Exception {ex} trying to fetch configuration from {config_url}")
            raise ConfigUnavailable(f"Unable to fetch configuration from {config_url}: {ex}")

        if response.status_code != HTTPStatus.OK:
            logger.error(f"Received HTTP {response.status_code} trying to fetch configuration from {config_url}")
            raise ConfigUnavailable(f"Failed to fetch config: {response.status_code}")

        try:
            config = ConfigResponse.model_validate(response.json())
        except ValueError as ex:
            logger.error(f"Unable to parse configuration from {config_url}: {ex}")
            raise ConfigUnavailable(f"Unable to parse configuration returned from {config_url}")

    if config.api_url and config.api_url.strip():
        return config.api_url
    return None


class EndpointResolver:
    """Resolves the CA API base URL exactly once and then serves the cached value for the lifetime of this instance.

    Resolution prefers (in order) a statically configured api url, the value reported by the config discovery
    endpoint and finally the client's own origin. Failed resolutions aren't cached so a subsequent call can
    try again.

    This is 'async safe' but not thread safe - concurrent first callers are serialised on an asyncio Lock and
    will all receive the value resolved by the first caller."""

    endpoint: EndpointConfig
    _lock: Lock
    _config_url: str
    _client_origin: str
    _static_api_url: Optional[str]
    _timeout_seconds: float
    _transport: Optional[AsyncBaseTransport]

    def __init__(
        self,
        config_url: str,
        client_origin: str,
        static_api_url: Optional[str] = None,
        timeout_seconds: float = REQUEST_TIMEOUT_SECONDS,
        endpoint: Optional[EndpointConfig] = None,
        transport: Optional[AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint if endpoint is not None else EndpointConfig()
        self._lock = Lock()
        self._config_url = config_url
        self._client_origin = client_origin
        self._static_api_url = static_api_url
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def _discover(self) -> str:
        if self._static_api_url and self._static_api_url.strip():
            logger.info(f"Using statically configured CA api url {self._static_api_url}")
            return self._static_api_url

        api_url = await fetch_configured_api_url(
            self._config_url, timeout_seconds=self._timeout_seconds, transport=self._transport
        )
        if api_url:
            logger.info(f"Using CA api url {api_url} reported by {self._config_url}")
            return api_url

        origin = origin_of(self._client_origin)
        logger.info(f"No CA api url configured at {self._config_url}. Falling back to client origin {origin}")
        return origin

    async def resolve(self) -> str:
        """Returns the CA API base URL - resolving it on the first call.

        raises ConfigUnavailable if resolution is required and the configuration source fails"""

        # The overwhelming majority of calls will be served from here
        base_url = self.endpoint.base_url
        if base_url is not None:
            return base_url

        async with self._lock:
            # Another coroutine may have resolved while we were waiting on the lock
            base_url = self.endpoint.base_url
            if base_url is not None:
                return base_url

            self.endpoint.assign(await self._discover())
            return self.endpoint.base_url  # type: ignore [return-value] # Just assigned


_default_resolver: Optional[EndpointResolver] = None


def create_resolver(
    source_settings: CommonSettings, transport: Optional[AsyncBaseTransport] = None
) -> EndpointResolver:
    """Creates a new EndpointResolver configured from the specified settings instance"""
    return EndpointResolver(**source_settings.resolver_kwargs, transport=transport)


def get_default_resolver() -> EndpointResolver:
    """Returns the process wide EndpointResolver (created from the global settings on first use)"""
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = create_resolver(settings)
    return _default_resolver
