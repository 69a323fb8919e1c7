"""HTTP client performing single delivery attempts against the collector."""

from __future__ import annotations

import typing as typ

import httpx
import msgspec

from courier.events.models import encode_payload

from .errors import CollectorAPIError
from .models import (
    AttemptOutcome,
    CollectorMessage,
    DebugResponse,
    EndpointVariant,
    TransportResult,
)

if typ.TYPE_CHECKING:
    from courier.events.models import Payload

    from .config import CollectorConfig

_HTTP_SUCCESS_MIN = 200
_HTTP_SUCCESS_MAX = 299
_HTTP_CLIENT_ERROR_MIN = 400
_HTTP_SERVER_ERROR_MIN = 500

# text/plain keeps browser-origin requests free of CORS preflight; the
# collector accepts it for JSON bodies.
_CONTENT_TYPE = "text/plain;charset=UTF-8"


def categorize_error(exc: CollectorAPIError) -> AttemptOutcome:
    """Classify a collector error into an attempt outcome.

    Returns:
        ``CLIENT_ERROR`` for 4xx responses, ``SERVER_ERROR`` for any other
        HTTP status, and ``NETWORK_ERROR`` when no response was received.

    """
    if exc.status_code is None:
        return AttemptOutcome.NETWORK_ERROR
    if _HTTP_CLIENT_ERROR_MIN <= exc.status_code < _HTTP_SERVER_ERROR_MIN:
        return AttemptOutcome.CLIENT_ERROR
    return AttemptOutcome.SERVER_ERROR


def parse_validation_messages(body: bytes) -> tuple[CollectorMessage, ...]:
    """Decode debug-endpoint diagnostics, treating bad bodies as empty."""
    try:
        decoded = msgspec.json.decode(body, type=DebugResponse)
    except msgspec.DecodeError:
        return ()
    return tuple(decoded.validation_messages)


class TransportClient:
    """Deliver payloads to the collector one attempt at a time.

    Parameters
    ----------
    config
        Collector endpoints, credentials, and timeout.
    http_client
        Optional ``httpx.AsyncClient`` for testing. When omitted the
        transport creates and owns its own client.

    """

    def __init__(
        self,
        config: CollectorConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the transport with configuration and an HTTP client."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)

    @property
    def config(self) -> CollectorConfig:
        """Read-only access to the collector configuration."""
        return self._config

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def endpoint_for(self, variant: EndpointVariant) -> str:
        """Return the collector URL for ``variant``, without query parameters."""
        if variant is EndpointVariant.DEBUG:
            return self._config.debug_endpoint
        return self._config.endpoint

    async def attempt(
        self,
        payload: Payload,
        variant: EndpointVariant = EndpointVariant.PRODUCTION,
    ) -> TransportResult:
        """Issue one POST of ``payload`` and classify the outcome.

        Parameters
        ----------
        payload
            Assembled payload; serialized unchanged.
        variant
            Production collection or debug validation endpoint.

        Returns
        -------
        TransportResult
            Classified outcome. Failures are encoded in the result rather
            than raised.

        """
        try:
            response = await self._post(payload, variant)
            self._check_response_errors(response)
        except CollectorAPIError as exc:
            return TransportResult(
                outcome=categorize_error(exc),
                variant=variant,
                status_code=exc.status_code,
                detail=exc.detail,
            )

        messages: tuple[CollectorMessage, ...] = ()
        if variant is EndpointVariant.DEBUG:
            messages = parse_validation_messages(response.content)
        return TransportResult(
            outcome=AttemptOutcome.SUCCESS,
            variant=variant,
            status_code=response.status_code,
            validation_messages=messages,
        )

    async def _post(self, payload: Payload, variant: EndpointVariant) -> httpx.Response:
        """POST the serialized payload.

        Raises
        ------
        CollectorAPIError
            If the request times out or fails below the HTTP layer.

        """
        try:
            return await self._client.post(
                self.endpoint_for(variant),
                params={
                    "measurement_id": self._config.measurement_id,
                    "api_secret": self._config.api_secret,
                },
                content=encode_payload(payload),
                headers={"Content-Type": _CONTENT_TYPE},
            )
        except httpx.TimeoutException as exc:
            raise CollectorAPIError.timeout() from exc
        except httpx.RequestError as exc:
            raise CollectorAPIError.network_error(str(exc) or type(exc).__name__) from exc

    @staticmethod
    def _check_response_errors(response: httpx.Response) -> None:
        """Raise ``CollectorAPIError`` for any non-2xx status."""
        if not _HTTP_SUCCESS_MIN <= response.status_code <= _HTTP_SUCCESS_MAX:
            raise CollectorAPIError.http_error(response.status_code, response.text)
