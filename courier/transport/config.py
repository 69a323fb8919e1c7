"""Configuration for the analytics collector and delivery behaviour.

Usage
-----
Build a configuration directly:

>>> config = CollectorConfig(measurement_id="G-ABC123", api_secret="s3cret")
>>> config.is_configured()
True

Or load it from the environment:

>>> import os
>>> os.environ["COURIER_MEASUREMENT_ID"] = "G-ABC123"
>>> os.environ["COURIER_API_SECRET"] = "s3cret"
>>> CollectorConfig.from_env().measurement_id
'G-ABC123'

"""

from __future__ import annotations

import dataclasses as dc
import os

from courier.events.payload import DEFAULT_ENGAGEMENT_TIME_MSEC

from .errors import CollectorConfigError

_DEFAULT_ENDPOINT = "https://www.google-analytics.com/mp/collect"
_DEFAULT_DEBUG_ENDPOINT = "https://www.google-analytics.com/debug/mp/collect"
_DEFAULT_TIMEOUT_S = 10.0
_DEFAULT_MAX_RETRIES = 3
_DEFAULT_RETRY_BASE_DELAY_S = 1.0
_DEFAULT_QUEUE_CAPACITY = 100
_DEFAULT_DRAIN_INTERVAL_S = 0.1

# Template fragments that mark credentials which were never filled in
_PLACEHOLDER_MARKERS = ("placeholder", "XXXXXXX")

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dc.dataclass(frozen=True, slots=True)
class CollectorConfig:
    """Collector endpoints, credentials, and delivery tuning.

    Attributes
    ----------
    measurement_id
        Collector property identifier sent as the ``measurement_id`` query
        parameter.
    api_secret
        Secret sent as the ``api_secret`` query parameter.
    endpoint
        Production collection endpoint.
    debug_endpoint
        Validation endpoint returning diagnostics.
    timeout_s
        HTTP timeout in seconds for a single attempt.
    debug_mode
        Route regular sends through the debug endpoint and log its
        diagnostics.
    max_retries
        Retries after the initial attempt for retryable failures.
    retry_base_delay_s
        Delay before the first retry; doubled for each further retry.
    queue_capacity
        Maximum number of undelivered payloads held for later.
    drain_interval_s
        Pause between entries while draining the queue.
    default_engagement_time_msec
        Engagement time injected when an event carries none. ``None``
        disables injection.

    """

    measurement_id: str = ""
    api_secret: str = ""
    endpoint: str = _DEFAULT_ENDPOINT
    debug_endpoint: str = _DEFAULT_DEBUG_ENDPOINT
    timeout_s: float = _DEFAULT_TIMEOUT_S
    debug_mode: bool = False
    max_retries: int = _DEFAULT_MAX_RETRIES
    retry_base_delay_s: float = _DEFAULT_RETRY_BASE_DELAY_S
    queue_capacity: int = _DEFAULT_QUEUE_CAPACITY
    drain_interval_s: float = _DEFAULT_DRAIN_INTERVAL_S
    default_engagement_time_msec: int | None = DEFAULT_ENGAGEMENT_TIME_MSEC

    def validate(self) -> None:
        """Raise ``CollectorConfigError`` when credentials are unusable."""
        for field in ("measurement_id", "api_secret"):
            value = getattr(self, field).strip()
            if not value:
                raise CollectorConfigError.missing(field)
            if any(marker in value for marker in _PLACEHOLDER_MARKERS):
                raise CollectorConfigError.placeholder(field)

    def is_configured(self) -> bool:
        """Return whether the collector credentials are usable."""
        try:
            self.validate()
        except CollectorConfigError:
            return False
        return True

    @staticmethod
    def _parse_float(env_var: str, default: float) -> float:
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            raise CollectorConfigError.invalid_number(env_var, raw) from exc
        if value < 0:
            raise CollectorConfigError.invalid_number(env_var, raw)
        return value

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            raise CollectorConfigError.invalid_integer(env_var, raw) from exc
        if value < 1:
            raise CollectorConfigError.invalid_integer(env_var, raw)
        return value

    @classmethod
    def from_env(cls) -> CollectorConfig:
        """Build configuration from environment variables.

        Reads the following environment variables:

        - ``COURIER_MEASUREMENT_ID``: Collector property identifier
        - ``COURIER_API_SECRET``: Collector API secret
        - ``COURIER_ENDPOINT``: Optional production endpoint override
        - ``COURIER_DEBUG_ENDPOINT``: Optional debug endpoint override
        - ``COURIER_TIMEOUT_S``: Optional per-attempt timeout in seconds
        - ``COURIER_DEBUG_MODE``: Optional flag (``1``/``true``/``yes``/``on``)
        - ``COURIER_QUEUE_CAPACITY``: Optional positive queue bound
        - ``COURIER_DRAIN_INTERVAL_S``: Optional pause between drained entries
        - ``COURIER_DEFAULT_ENGAGEMENT_TIME_MSEC``: Optional positive default

        Credentials are not validated here; missing credentials leave the
        pipeline unconfigured so sends become silent no-ops.

        Returns
        -------
        CollectorConfig
            Configuration instance with values from the environment.

        Raises
        ------
        CollectorConfigError
            If a numeric variable is malformed.

        """
        return cls(
            measurement_id=os.environ.get("COURIER_MEASUREMENT_ID", "").strip(),
            api_secret=os.environ.get("COURIER_API_SECRET", "").strip(),
            endpoint=os.environ.get("COURIER_ENDPOINT", _DEFAULT_ENDPOINT),
            debug_endpoint=os.environ.get(
                "COURIER_DEBUG_ENDPOINT", _DEFAULT_DEBUG_ENDPOINT
            ),
            timeout_s=cls._parse_float("COURIER_TIMEOUT_S", _DEFAULT_TIMEOUT_S),
            debug_mode=os.environ.get("COURIER_DEBUG_MODE", "").strip().lower()
            in _TRUTHY,
            queue_capacity=cls._parse_positive_int(
                "COURIER_QUEUE_CAPACITY", _DEFAULT_QUEUE_CAPACITY
            ),
            drain_interval_s=cls._parse_float(
                "COURIER_DRAIN_INTERVAL_S", _DEFAULT_DRAIN_INTERVAL_S
            ),
            default_engagement_time_msec=cls._parse_positive_int(
                "COURIER_DEFAULT_ENGAGEMENT_TIME_MSEC", DEFAULT_ENGAGEMENT_TIME_MSEC
            ),
        )
