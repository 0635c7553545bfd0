import logging
from decimal import Decimal
from typing import Optional, Union

from payflow.core.config import Settings, settings as default_settings
from payflow.core.exceptions import DecodingError, Unauthorized
from payflow.core.validators import (
    normalize_phone_number, parse_network, require_fields, validate_amount, validate_currency
)
from payflow.schemas.payment import (
    CardPayload, DepositResponse, MobileMoneyPayload, MobileNetwork, PaymentChannel,
    PaymentInitiation, SdkInitiateResponse, SdkPayload
)
from payflow.schemas.transaction import TransactionStatus, VerifyResponse
from payflow.services.transport import ApiClient

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]


class PaymentService:
    """Starts deposits on each settlement channel and reads back their status.

    Nothing here retries: a new initiation is a new charge attempt and gets
    a new server reference.
    """

    MOBILE_MONEY_ENDPOINT = "/deposits/mobile-money"
    CARD_ENDPOINT = "/deposits/card"
    SDK_INITIATE_ENDPOINT = "/deposits/sdk/initiate"
    SDK_VERIFY_ENDPOINT = "/deposits/sdk/verify"

    def __init__(self, api: ApiClient, settings: Settings = default_settings):
        self.api = api
        self.settings = settings

    async def initiate_mobile_money(
        self, amount: Amount, currency: str, network: MobileNetwork, phone_number: str
    ) -> PaymentInitiation:
        """Request a mobile-money push prompt to the customer's phone."""
        value = validate_amount(amount)
        code = validate_currency(currency, self.settings.SUPPORTED_CURRENCIES)
        network = parse_network(network)
        phone = normalize_phone_number(phone_number)

        payload = {
            "amount": float(value),
            "currency": code,
            "payment_method": "mobile_money",
            "payment_provider": network.provider_code,
            "phone_number": phone,
        }

        response = await self.api.request(
            self.MOBILE_MONEY_ENDPOINT,
            method="POST",
            body=payload,
            response_model=DepositResponse,
        )

        logger.info(f"Mobile money deposit initiated: {response.reference} ({network.value})")
        return PaymentInitiation(
            transaction_id=response.transaction_id,
            reference=response.reference,
            amount=response.amount,
            currency=response.currency,
            channel=PaymentChannel.mobile_money(network),
            payload=MobileMoneyPayload(),
        )

    async def initiate_card(
        self,
        amount: Amount,
        currency: str,
        card_number: str,
        cvv: str,
        expiry_month: str,
        expiry_year: str
    ) -> PaymentInitiation:
        """Start a card charge; the returned payment URL drives a web view.

        Card details are only checked for presence, the processor validates them.
        """
        value = validate_amount(amount)
        require_fields(
            currency=currency,
            card_number=card_number,
            cvv=cvv,
            expiry_month=expiry_month,
            expiry_year=expiry_year,
        )

        payload = {
            "amount": float(value),
            "currency": currency,
            "card_number": card_number,
            "cvv": cvv,
            "expiry_month": expiry_month,
            "expiry_year": expiry_year,
        }

        response = await self.api.request(
            self.CARD_ENDPOINT,
            method="POST",
            body=payload,
            response_model=DepositResponse,
        )

        payment_url = response.payment_data.payment_url
        if payment_url is None:
            logger.error(f"Card deposit {response.reference} returned no payment URL")
            raise DecodingError("Card deposit response has no payment URL")

        logger.info(f"Card deposit initiated: {response.reference}")
        return PaymentInitiation(
            transaction_id=response.transaction_id,
            reference=response.reference,
            amount=response.amount,
            currency=response.currency,
            channel=PaymentChannel.card(),
            payload=CardPayload(payment_url=payment_url),
        )

    async def initiate_sdk(self, amount: Amount, currency: Optional[str] = None) -> PaymentInitiation:
        """Create a transaction and fetch the bootstrap parameters for the provider SDK.

        ``currency`` falls back to ``DEFAULT_CURRENCY``.
        """
        if not self.api.credentials.get_token():
            raise Unauthorized("Not authenticated")

        payload = {
            "amount": float(validate_amount(amount)),
            "currency": validate_currency(
                currency or self.settings.DEFAULT_CURRENCY, self.settings.SUPPORTED_CURRENCIES
            ),
        }

        response = await self.api.request(
            self.SDK_INITIATE_ENDPOINT,
            method="POST",
            body=payload,
            response_model=SdkInitiateResponse,
        )

        logger.info(f"SDK deposit initiated: {response.tx_ref}")
        return PaymentInitiation(
            transaction_id=response.transaction_id,
            reference=response.tx_ref,
            amount=response.amount,
            currency=response.currency,
            channel=PaymentChannel.sdk(),
            payload=SdkPayload(
                tx_ref=response.tx_ref,
                public_key=response.sdk_config.public_key,
                encryption_key=response.sdk_config.encryption_key,
                customer=response.user,
            ),
        )

    async def check_status(self, transaction_id: int) -> TransactionStatus:
        return await self.api.request(
            f"/deposits/{transaction_id}/check",
            method="GET",
            response_model=TransactionStatus,
        )

    async def verify_sdk(self, transaction_id: int, flw_ref: str, status: str) -> TransactionStatus:
        """Ask the server to re-confirm an SDK payment with the provider.

        The returned status is authoritative, whatever the SDK callback said.
        """
        response = await self.api.request(
            self.SDK_VERIFY_ENDPOINT,
            method="POST",
            body={
                "transaction_id": transaction_id,
                "flw_ref": flw_ref,
                "status": status,
            },
            response_model=VerifyResponse,
        )
        if response.wallet is not None:
            logger.info(
                f"Verified {response.transaction.reference}: {response.wallet.currency} "
                f"balance {response.wallet.balance}"
            )
        return response.transaction.to_status()
