"""Collector transport and configuration errors."""

from __future__ import annotations


class CollectorError(Exception):
    """Base exception for collector delivery errors."""


class CollectorAPIError(CollectorError):
    """Raised when a request to the collector fails.

    Attributes
    ----------
    status_code
        HTTP status code of the response, or ``None`` for transport-level
        failures.
    detail
        Response text or transport error description.

    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        """Initialise with a message, optional status code, and detail."""
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, body: str) -> CollectorAPIError:
        """Return an error for a non-2xx collector response."""
        return cls(
            f"Collector HTTP error {status_code}",
            status_code=status_code,
            detail=body,
        )

    @classmethod
    def timeout(cls) -> CollectorAPIError:
        """Return an error for a request that timed out."""
        return cls("Collector request timed out", detail="timeout")

    @classmethod
    def network_error(cls, detail: str) -> CollectorAPIError:
        """Return an error for DNS, connection, or TLS failures."""
        return cls(f"Collector network error: {detail}", detail=detail)


class CollectorConfigError(CollectorError):
    """Raised when collector configuration is missing or invalid."""

    @classmethod
    def missing(cls, field: str) -> CollectorConfigError:
        """Return an error for a required credential that is empty."""
        return cls(f"Collector {field} is required")

    @classmethod
    def placeholder(cls, field: str) -> CollectorConfigError:
        """Return an error for a credential left at a template value."""
        return cls(f"Collector {field} is a placeholder; set real credentials")

    @classmethod
    def invalid_number(cls, env_var: str, raw: str) -> CollectorConfigError:
        """Return an error for an environment value that is not a valid number."""
        return cls(f"{env_var} must be a non-negative number, got: {raw!r}")

    @classmethod
    def invalid_integer(cls, env_var: str, raw: str) -> CollectorConfigError:
        """Return an error for an environment value that is not a positive integer."""
        return cls(f"{env_var} must be a positive integer, got: {raw!r}")
