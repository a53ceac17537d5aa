"""Custom exception hierarchy for Knowledge Vault.

All application exceptions inherit from :class:`KnowledgeVaultError`, which
carries an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "sqlite_queue", "http_remote_store") raised it.

    KnowledgeVaultError  (base -- catch-all for any knowledge_vault error)
    +-- ValidationError          (capture rejected before queueing)
    +-- CapacityError            (durable queue is full)
    +-- QueueEntryNotFoundError  (control operation on an unknown id)
    +-- ConfigurationError       (startup / invalid settings)
    +-- DeliveryError            (remote write failed)
        +-- TransientDeliveryError  (timeout, connection error, 5xx)
        +-- TerminalDeliveryError   (4xx, malformed response)

Validation and capacity errors are reported synchronously to the producer
and never reach the queue.  Delivery errors are raised by the remote store
client and classified by the delivery worker: transient errors are retried
with backoff, terminal ones mark the entry ``failed``.
"""

from __future__ import annotations


class KnowledgeVaultError(Exception):
    """Base exception for all Knowledge Vault errors.

    ``__str__`` prefixes the provider name in brackets for log scanning,
    e.g. ``[http_remote_store] HTTP 503``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Producer-side errors
# ---------------------------------------------------------------------------


class ValidationError(KnowledgeVaultError):
    """Raised when a capture is rejected before it enters the queue.

    ``reason`` is one of the :class:`~knowledge_vault.models.queue.RejectionReason`
    values (``too_short``, ``too_long``, ``duplicate``).
    """

    def __init__(
        self,
        message: str = "Capture rejected",
        reason: str = "invalid",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._reason = reason

    @property
    def reason(self) -> str:
        return self._reason


class CapacityError(KnowledgeVaultError):
    """Raised when the durable queue already holds its maximum number of entries."""

    def __init__(
        self,
        message: str = "Save queue is full",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


CapacityExceeded = CapacityError


class QueueEntryNotFoundError(KnowledgeVaultError):
    """Raised when a retry/discard names an entry that is not in the queue."""

    def __init__(
        self,
        message: str = "Queue entry not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(KnowledgeVaultError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Delivery errors
# ---------------------------------------------------------------------------


class DeliveryError(KnowledgeVaultError):
    """Raised when a remote write does not produce a created snippet.

    ``http_status`` is ``None`` when no response was received at all.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str = "Delivery failed",
        http_status: int | None = None,
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._http_status = http_status

    @property
    def http_status(self) -> int | None:
        return self._http_status


class TransientDeliveryError(DeliveryError):
    """Network failure, timeout, or 5xx response.  Retried with backoff."""

    retryable = True

    def __init__(
        self,
        message: str = "Remote store temporarily unavailable",
        http_status: int | None = None,
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, http_status=http_status, provider_name=provider_name)


class TerminalDeliveryError(DeliveryError):
    """Client-side rejection (4xx) or an unusable response.  Never retried automatically."""

    def __init__(
        self,
        message: str = "Remote store rejected the snippet",
        http_status: int | None = None,
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, http_status=http_status, provider_name=provider_name)
