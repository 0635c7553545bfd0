from typing import Optional

from pydantic import BaseModel, Field


class ErrorDetails(BaseModel):
    """Failure details attached to a failed transaction status."""
    error_code: str = Field(..., description="Provider or server error code")
    message: str = Field(..., description="Human-readable failure message")
    action: Optional[str] = Field(None, description="Suggested next step for the user")
    can_retry: bool = Field(..., description="Whether a new initiation may succeed")
    severity: str = Field(..., description="Severity reported by the server")

    class Config:
        json_schema_extra = {
            "example": {
                "error_code": "INSUFFICIENT_FUNDS",
                "message": "Insufficient balance on mobile money account",
                "action": "Top up your mobile money account and try again",
                "can_retry": True,
                "severity": "warning"
            }
        }
