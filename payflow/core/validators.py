import re
from decimal import Decimal, InvalidOperation
from typing import Iterable, Union

from payflow.core.exceptions import ValidationError
from payflow.schemas.payment import MobileNetwork

_PHONE_STRIP = re.compile(r"[\s\-\(\)\+]")
# Country code starting 1-9, 7 to 19 digits in total
_PHONE_PATTERN = re.compile(r"^[1-9][0-9]{6,18}$")


def clean_phone_number(phone: str) -> str:
    return _PHONE_STRIP.sub("", phone or "")


def normalize_phone_number(phone: str) -> str:
    """Strip formatting characters and ensure a single leading ``+``.

    Raises:
        ValidationError: if the number is not a plausible international number
    """
    digits = clean_phone_number(phone)
    if not _PHONE_PATTERN.match(digits):
        raise ValidationError("Please enter a valid phone number")
    return f"+{digits}"


def validate_amount(amount: Union[Decimal, int, float, str]) -> Decimal:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("Please enter a valid amount")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than zero")
    return value


def validate_currency(currency: str, supported: Iterable[str]) -> str:
    code = (currency or "").strip().upper()
    supported = list(supported)
    if code not in supported:
        raise ValidationError(
            f"Unsupported currency: {currency}. Supported currencies: {', '.join(supported)}"
        )
    return code


def require_fields(**fields: str) -> None:
    """Reject blank values; the first blank field name is reported."""
    for name, value in fields.items():
        if value is None or not str(value).strip():
            label = name.replace("_", " ")
            raise ValidationError(f"The {label} field is required.")


def parse_network(network: Union[MobileNetwork, str]) -> MobileNetwork:
    if isinstance(network, MobileNetwork):
        return network
    try:
        return MobileNetwork(str(network).strip().upper())
    except ValueError:
        raise ValidationError(f"Unsupported mobile network: {network}")
