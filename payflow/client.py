import logging
from typing import Optional

import httpx

from payflow.core.config import Settings, settings as default_settings
from payflow.core.credentials import CredentialProvider
from payflow.core.log_config import configure_logging
from payflow.schemas.outcome import OutcomePresenter
from payflow.schemas.payment import PaymentInitiation
from payflow.services.payment import PaymentService
from payflow.services.profile import ProfileService
from payflow.services.settlement import PaymentSdk, SettlementObserver
from payflow.services.transactions import TransactionService
from payflow.services.transport import ApiClient
from payflow.services.withdrawal import WithdrawalService

logger = logging.getLogger(__name__)


class PaymentsClient:
    """Wires the transport and services together around one credential provider.

    Each service is an explicit instance; nothing is shared through module
    globals apart from ``settings``.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        settings: Settings = default_settings,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.settings = settings
        self.api = ApiClient(credentials, http_client=http_client, settings=settings)
        self.payments = PaymentService(self.api, settings=settings)
        self.withdrawals = WithdrawalService(self.api, settings=settings)
        self.transactions = TransactionService(self.api)
        self.profile = ProfileService(self.api, settings=settings)

    def observe(
        self,
        initiation: PaymentInitiation,
        presenter: OutcomePresenter,
        sdk: Optional[PaymentSdk] = None
    ) -> SettlementObserver:
        """New observer for one initiation; never reuse one across attempts."""
        return SettlementObserver(
            initiation,
            self.payments,
            presenter,
            sdk=sdk,
            settings=self.settings,
        )

    async def aclose(self) -> None:
        await self.api.aclose()

    async def __aenter__(self) -> "PaymentsClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def create_client(
    credentials: CredentialProvider,
    settings: Settings = default_settings,
    http_client: Optional[httpx.AsyncClient] = None
) -> PaymentsClient:
    configure_logging(settings)
    client = PaymentsClient(credentials, settings=settings, http_client=http_client)
    logger.info(f"{settings.APP_NAME} client ready ({settings.ENVIRONMENT}, {settings.API_BASE_URL})")
    return client
