import logging
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

import httpx
import pydantic
from pydantic import TypeAdapter

from payflow.core.config import Settings, settings as default_settings
from payflow.core.credentials import CredentialProvider
from payflow.core.exceptions import ApiError, DecodingError, Unauthorized, ValidationError
from payflow.core.metrics import API_ERROR_COUNT
from payflow.middleware.tracing import build_event_hooks
from payflow.schemas.envelope import Envelope
from payflow.services.classifier import TransportFailure, classify, extract_message

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ApiClient:
    """Typed request layer over the remote REST API.

    Every call returns the ``data`` of a successful envelope, validated into
    ``response_model`` when one is given, or raises an ``ApiError``. The
    client keeps no per-request state, so concurrent calls from several
    transactions share one instance.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Settings = default_settings
    ):
        self.credentials = credentials
        self.settings = settings
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=settings.API_BASE_URL,
            timeout=httpx.Timeout(settings.REQUEST_TIMEOUT, connect=settings.CONNECT_TIMEOUT),
            event_hooks=build_event_hooks(settings.SLOW_REQUEST_THRESHOLD, settings.ENVIRONMENT),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        requires_auth: bool = True,
        response_model: Optional[Type[T]] = None
    ) -> Any:
        """Send a JSON request and decode the envelope of its response."""
        headers = self._build_headers(requires_auth, json_body=True)
        return await self._send(
            method, endpoint, response_model,
            headers=headers,
            json=body,
        )

    async def request_with_query(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        requires_auth: bool = True,
        response_model: Optional[Type[T]] = None
    ) -> Any:
        """GET with ``params`` serialized as URL query parameters."""
        headers = self._build_headers(requires_auth, json_body=True)
        query = {key: str(value) for key, value in (params or {}).items() if value is not None}
        return await self._send(
            "GET", endpoint, response_model,
            headers=headers,
            params=query,
        )

    async def upload(
        self,
        endpoint: str,
        file_bytes: Optional[bytes] = None,
        file_key: str = "image",
        fields: Optional[Mapping[str, Any]] = None,
        method: str = "POST",
        requires_auth: bool = True,
        response_model: Optional[Type[T]] = None
    ) -> Any:
        """Multipart-encode an optional JPEG payload plus scalar fields."""
        # httpx sets the multipart Content-Type with its boundary
        headers = self._build_headers(requires_auth, json_body=False)
        files = None
        if file_bytes is not None:
            files = {file_key: ("image.jpg", file_bytes, "image/jpeg")}
        data = {key: str(value) for key, value in (fields or {}).items()}
        return await self._send(
            method, endpoint, response_model,
            headers=headers,
            files=files,
            data=data or None,
        )

    def _build_headers(self, requires_auth: bool, json_body: bool) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if json_body:
            headers["Content-Type"] = "application/json"

        if requires_auth:
            token = self.credentials.get_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"
            else:
                # Let the server reject it; the 401 is classified like any other
                logger.debug("No credential available, sending request unauthenticated")

        return headers

    async def _send(self, method: str, endpoint: str, response_model: Optional[Type[T]], **kwargs) -> Any:
        try:
            response = await self._client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as e:
            error = classify(TransportFailure(exception=e))
            logger.error(f"Network error on {method} {endpoint}: {e!r} -> {error!r}")
            API_ERROR_COUNT.labels(error_code=error.error_code.value).inc()
            raise error from e

        try:
            return self._decode(response, response_model)
        except ApiError as error:
            API_ERROR_COUNT.labels(error_code=error.error_code.value).inc()
            raise

    def _decode(self, response: httpx.Response, response_model: Optional[Type[T]]) -> Any:
        endpoint = response.request.url.path
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            error = classify(TransportFailure(status_code=response.status_code, body=payload))
            logger.warning(f"API error [{endpoint}]: HTTP {response.status_code} -> {error!r}")
            if isinstance(error, Unauthorized):
                self.credentials.on_token_expired()
            raise error

        if not isinstance(payload, dict):
            logger.error(f"Undecodable response [{endpoint}]: {response.text[:200]!r}")
            raise DecodingError(status_code=response.status_code)

        try:
            envelope = Envelope[Any].model_validate(payload)
        except pydantic.ValidationError as e:
            logger.error(f"Malformed envelope [{endpoint}]: {e}")
            raise DecodingError(status_code=response.status_code) from e

        if not envelope.success:
            message = extract_message(payload)
            logger.warning(f"API error [{endpoint}]: {message}")
            raise ValidationError(message, status_code=response.status_code)

        if response_model is None:
            return envelope.data

        if envelope.data is None:
            logger.error(f"Missing data in successful response [{endpoint}]")
            raise DecodingError(status_code=response.status_code)

        try:
            return TypeAdapter(response_model).validate_python(envelope.data)
        except pydantic.ValidationError as e:
            logger.error(f"Unexpected response shape [{endpoint}]: {e}")
            raise DecodingError(status_code=response.status_code) from e
