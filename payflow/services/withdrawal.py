import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from payflow.core.config import Settings, settings as default_settings
from payflow.core.validators import normalize_phone_number, parse_network, validate_amount, validate_currency
from payflow.schemas.payment import MobileNetwork
from payflow.schemas.transaction import WithdrawalReceipt
from payflow.services.transport import ApiClient

logger = logging.getLogger(__name__)


class WithdrawalService:
    MOBILE_MONEY_ENDPOINT = "/withdrawals/mobile-money"

    def __init__(self, api: ApiClient, settings: Settings = default_settings):
        self.api = api
        self.settings = settings

    def estimate_fee(self, amount: Union[Decimal, int, float, str]) -> Decimal:
        """Flat fee below the ceiling, percentage fee from it upwards."""
        value = validate_amount(amount)
        if value < self.settings.WITHDRAWAL_FLAT_FEE_CEILING:
            return self.settings.WITHDRAWAL_FLAT_FEE
        fee = value * self.settings.WITHDRAWAL_FEE_RATE
        return fee.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    async def withdraw_mobile_money(
        self,
        amount: Union[Decimal, int, float, str],
        currency: str,
        network: Union[MobileNetwork, str],
        phone_number: str
    ) -> WithdrawalReceipt:
        """Send wallet funds to a mobile-money number"""
        value = validate_amount(amount)
        code = validate_currency(currency, self.settings.SUPPORTED_CURRENCIES)
        network = parse_network(network)

        receipt = await self.api.request(
            self.MOBILE_MONEY_ENDPOINT,
            method="POST",
            body={
                "amount": float(value),
                "currency": code,
                "network": network.value,
                "phone_number": normalize_phone_number(phone_number),
            },
            response_model=WithdrawalReceipt,
        )

        logger.info(f"Withdrawal {receipt.reference} requested: {receipt.amount} {receipt.currency}")
        return receipt
