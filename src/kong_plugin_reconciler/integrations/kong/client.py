"""Kong Admin API HTTP client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from kong_plugin_reconciler.integrations.kong.exceptions import KongConnectionError

if TYPE_CHECKING:
    from kong_plugin_reconciler.integrations.kong.config import (
        KongAuthConfig,
        KongConnectionConfig,
    )

logger = structlog.get_logger()


@dataclass
class KongResponse:
    """Status and decoded body of a Kong Admin API response.

    Unlike an exception-raising client, every HTTP status is returned to
    the caller so that resource handlers can decide which statuses mean
    success for each operation.
    """

    status_code: int
    reason_phrase: str = ""
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> str:
        """Raw status text, e.g. ``"201 Created"``."""
        if self.reason_phrase:
            return f"{self.status_code} {self.reason_phrase}"
        return str(self.status_code)


class KongAdminClient:
    """HTTP client for the Kong Admin API.

    Wraps a single ``httpx.Client`` configured with the base URL,
    timeout, TLS and authentication settings. Requests return a
    ``KongResponse`` for any HTTP status; only transport failures raise.

    Example:
        ```python
        from kong_plugin_reconciler.integrations.kong import KongAdminClient
        from kong_plugin_reconciler.integrations.kong.config import KongConnectionConfig

        connection = KongConnectionConfig(base_url="http://localhost:8001")

        with KongAdminClient(connection) as client:
            response = client.send("GET", "plugins/4d1c...")
            print(response.status, response.body)
        ```
    """

    def __init__(
        self,
        connection_config: KongConnectionConfig,
        auth_config: KongAuthConfig | None = None,
    ) -> None:
        """Initialize Kong Admin API client.

        Args:
            connection_config: Connection settings (URL, timeout, SSL, attempts).
            auth_config: Authentication settings (type, credentials).
        """
        self.connection_config = connection_config
        self.auth_config = auth_config
        self._max_attempts = connection_config.max_attempts

        client_kwargs: dict[str, Any] = {
            "base_url": connection_config.base_url,
            "timeout": httpx.Timeout(connection_config.timeout),
            "verify": connection_config.verify_ssl,
        }

        headers: dict[str, str] = {}
        if auth_config:
            if auth_config.type == "api_key" and auth_config.api_key:
                headers[auth_config.header_name] = auth_config.api_key
                logger.debug("Kong client configured with API key auth")
            elif auth_config.type == "mtls" and auth_config.cert_path and auth_config.key_path:
                client_kwargs["cert"] = (auth_config.cert_path, auth_config.key_path)
                if auth_config.ca_path:
                    client_kwargs["verify"] = auth_config.ca_path
                logger.debug("Kong client configured with mTLS auth")

        if headers:
            client_kwargs["headers"] = headers

        self._client = httpx.Client(**client_kwargs)

        logger.info(
            "Kong Admin API client initialized",
            base_url=connection_config.base_url,
            auth_type=auth_config.type if auth_config else "none",
        )

    def _make_retry_decorator(self) -> Any:
        """Create a retry decorator for transport failures."""
        return retry(
            retry=retry_if_exception_type(KongConnectionError),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
        )

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        """Decode a response body, tolerating empty and non-JSON bodies."""
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {"raw": response.text}
        if isinstance(body, dict):
            return body
        return {"data": body}

    def _request(
        self,
        method: str,
        endpoint: str,
        **kwargs: Any,
    ) -> KongResponse:
        """Make a single HTTP request to the Kong Admin API.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE).
            endpoint: API endpoint relative to the base URL.
            **kwargs: Additional arguments to pass to httpx.

        Returns:
            The response status and decoded body.

        Raises:
            KongConnectionError: If no HTTP response was received.
        """
        url = f"/{endpoint.lstrip('/')}"
        log = logger.bind(method=method, endpoint=url)

        try:
            log.debug("Kong API request")
            response = self._client.request(method, url, **kwargs)
        except httpx.ConnectError as e:
            log.error("Kong connection error", error=str(e))
            raise KongConnectionError(
                message=f"Failed to connect to Kong: {e}",
                endpoint=url,
                original_error=e,
            ) from e
        except httpx.TimeoutException as e:
            log.error("Kong request timeout", error=str(e))
            raise KongConnectionError(
                message=f"Kong request timed out: {e}",
                endpoint=url,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            log.error("Kong transport error", error=str(e))
            raise KongConnectionError(
                message=f"Kong request failed: {e}",
                endpoint=url,
                original_error=e,
            ) from e

        log.debug("Kong API response", status=response.status_code)
        return KongResponse(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            body=self._decode(response),
        )

    def send(
        self,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
    ) -> KongResponse:
        """Send a request and return the response whatever its status.

        Args:
            method: HTTP method.
            endpoint: API endpoint (e.g., "plugins/", "services/abc/plugins/").
            json: Body serialized as JSON.
            data: Body sent form-urlencoded.

        Returns:
            The response status and decoded body.
        """
        kwargs: dict[str, Any] = {}
        if json is not None:
            kwargs["json"] = json
        if data is not None:
            kwargs["data"] = data

        retry_decorator = self._make_retry_decorator()
        result: KongResponse = retry_decorator(self._request)(method, endpoint, **kwargs)
        return result

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        self._client.close()
        logger.debug("Kong client closed")

    def __enter__(self) -> KongAdminClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()
