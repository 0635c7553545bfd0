import enum
from typing import List, Optional, Protocol

from pydantic import BaseModel

from payflow.core.exceptions import ApiError
from payflow.schemas.payment import PaymentChannel
from payflow.schemas.transaction import TransactionStatus


class OutcomeKind(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class OutcomeAction(str, enum.Enum):
    DONE = "done"
    RETRY = "retry"
    CANCEL = "cancel"


class TransactionOutcome(BaseModel):
    """Normalized result of one transaction attempt, handed to the presenter.

    Built only by the settlement observer. ``PENDING`` means observation
    ended without a terminal server status (poll deadline, failed
    verification); ``error`` then carries the last transport failure, if any.
    """
    kind: OutcomeKind
    reference: str
    channel: PaymentChannel
    status: Optional[TransactionStatus] = None
    error: Optional[ApiError] = None

    class Config:
        frozen = True
        arbitrary_types_allowed = True

    @property
    def can_retry(self) -> bool:
        if self.kind is not OutcomeKind.FAILED or self.status is None:
            return False
        return self.status.can_retry

    @property
    def actions(self) -> List[OutcomeAction]:
        if self.kind is OutcomeKind.FAILED:
            if self.can_retry:
                return [OutcomeAction.RETRY, OutcomeAction.CANCEL]
            return [OutcomeAction.CANCEL]
        return [OutcomeAction.DONE]

    @property
    def user_message(self) -> str:
        if self.kind is OutcomeKind.SUCCEEDED:
            return f"Deposit successful! {self.status.amount:,.2f} {self.status.currency}"
        if self.kind is OutcomeKind.FAILED:
            details = self.status.error_details if self.status else None
            if details is not None:
                return details.message
            return "Payment failed. Please try again."
        if self.kind is OutcomeKind.CANCELLED:
            return "Payment cancelled"
        return "Your payment is still processing. We'll update your balance once it completes."


class OutcomePresenter(Protocol):
    """UI-side receiver of the single outcome of a transaction."""

    def present(self, outcome: TransactionOutcome) -> None:
        ...
