from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, Field

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Wrapper present on every API response.

    ``data`` may be absent when ``success`` is false and must not be read
    in that case.
    """
    success: bool
    message: Optional[str] = None
    data: Optional[T] = None
    # An empty error set may arrive as [] rather than {}
    errors: Optional[Union[Dict[str, Any], List[Any]]] = Field(
        None, description="Field-level validation messages keyed by field name"
    )

    class Config:
        extra = "ignore"
