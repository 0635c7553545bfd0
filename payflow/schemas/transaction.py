import enum
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, Field

from payflow.schemas.error import ErrorDetails


class TransactionState(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionState.PENDING


def _coerce_state(value):
    # Anything the server reports besides success/failed is still in flight
    if isinstance(value, TransactionState):
        return value
    try:
        return TransactionState(str(value).lower())
    except ValueError:
        return TransactionState.PENDING


State = Annotated[TransactionState, BeforeValidator(_coerce_state)]


class TransactionStatus(BaseModel):
    """Server view of one deposit attempt, as returned by the status check."""
    transaction_id: int
    reference: str
    amount: Decimal
    currency: str
    status: State
    payment_method: Optional[str] = None
    network: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    message: Optional[str] = None
    error_details: Optional[ErrorDetails] = Field(None, alias="error")

    class Config:
        frozen = True
        populate_by_name = True
        extra = "ignore"

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def can_retry(self) -> bool:
        """Whether a failed attempt may be retried with a new initiation.

        A failure without details is treated as retryable.
        """
        if self.status is not TransactionState.FAILED:
            return False
        if self.error_details is None:
            return True
        return self.error_details.can_retry


class Transaction(BaseModel):
    """Ledger entry returned by verification and the history endpoints."""
    id: int
    reference: str
    type: str
    amount: Decimal
    fee_amount: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    currency: str
    status: State
    payment_channel: Optional[str] = None
    external_reference: Optional[str] = None
    description: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None

    class Config:
        frozen = True
        extra = "ignore"

    def to_status(self) -> TransactionStatus:
        return TransactionStatus(
            transaction_id=self.id,
            reference=self.reference,
            amount=self.amount,
            currency=self.currency,
            status=self.status,
            payment_method=self.payment_channel,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def formatted_amount(self) -> str:
        return f"{self.amount:,.2f} {self.currency}"


class WalletInfo(BaseModel):
    currency: str
    balance: Decimal


class VerifyResponse(BaseModel):
    transaction: Transaction
    wallet: Optional[WalletInfo] = None


class WithdrawalReceipt(BaseModel):
    transaction_id: int
    reference: str
    amount: Decimal
    currency: str
    network: str
    status: Optional[str] = None

    class Config:
        frozen = True
        extra = "ignore"

