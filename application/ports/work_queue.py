"""
Work queue port: producer side used by webhook ingestion.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from application.dtos.messages import QueueMessage
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class QueueUnavailableError(BusinessException):
    """Enqueue failed; the caller must not mark the event as accepted."""

    def __init__(self, message: str, *, backend: str, details: Optional[dict] = None):
        full_details = {"backend": backend}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.QUEUE_UNAVAILABLE,
            message=message,
            error_type="QueueUnavailableError",
            details=full_details,
        )


@runtime_checkable
class WorkQueue(Protocol):
    backend: str

    async def enqueue(self, message: QueueMessage) -> None:
        """Hand a message to the queue; raises QueueUnavailableError on failure."""
        ...
