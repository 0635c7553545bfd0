"""Settlement observer: drives one payment attempt to a single outcome.

State machine::

    mobile money / card:  INITIATED -> POLLING -> SUCCEEDED | FAILED | CANCELLED | UNRESOLVED
    SDK:                  INITIATED -> AWAITING_CALLBACK -> SUCCEEDED | FAILED | CANCELLED | UNRESOLVED

Terminal states are never left. Exactly one ``TransactionOutcome`` is
handed to the presenter per observer, and the poll task is cancelled as
soon as a terminal state is reached.
"""
import asyncio
import enum
import logging
from typing import Optional, Protocol

from payflow.core.config import Settings, settings as default_settings
from payflow.core.exceptions import ApiError, Unknown
from payflow.core.metrics import SETTLEMENT_OUTCOME_COUNT, STATUS_POLL_COUNT
from payflow.schemas.outcome import OutcomeKind, OutcomePresenter, TransactionOutcome
from payflow.schemas.payment import PaymentInitiation, SdkPayload
from payflow.schemas.transaction import TransactionState, TransactionStatus
from payflow.services.payment import PaymentService
from payflow.services.webview import is_webview_completion

logger = logging.getLogger(__name__)


class ObserverState(str, enum.Enum):
    INITIATED = "initiated"
    POLLING = "polling"
    AWAITING_CALLBACK = "awaiting_callback"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    UNRESOLVED = "unresolved"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = {
    ObserverState.SUCCEEDED,
    ObserverState.FAILED,
    ObserverState.CANCELLED,
    ObserverState.UNRESOLVED,
}

MISSING_REFERENCE = "No reference returned"


def _as_api_error(exc: Exception) -> ApiError:
    if isinstance(exc, ApiError):
        return exc
    return Unknown(str(exc) or type(exc).__name__)


class PaymentSdkCallbacks(Protocol):
    """Completion sink registered with the provider SDK.

    The SDK invokes exactly one of these per payment sheet.
    """

    async def on_success(self, flw_ref: Optional[str]) -> None:
        ...

    async def on_failure(self, flw_ref: Optional[str]) -> None:
        ...

    async def on_cancel(self) -> None:
        ...


class PaymentSdk(Protocol):
    """Adapter around the native payment SDK of the host platform."""

    async def launch(
        self, payload: SdkPayload, initiation: PaymentInitiation, callbacks: PaymentSdkCallbacks
    ) -> None:
        ...


class SettlementObserver:
    """Resolves one ``PaymentInitiation`` by polling or by SDK callback."""

    def __init__(
        self,
        initiation: PaymentInitiation,
        payments: PaymentService,
        presenter: OutcomePresenter,
        sdk: Optional[PaymentSdk] = None,
        poll_interval: Optional[float] = None,
        poll_timeout: Optional[float] = None,
        settings: Settings = default_settings
    ):
        self.initiation = initiation
        self.payments = payments
        self.presenter = presenter
        self.sdk = sdk
        self.settings = settings
        self.poll_interval = settings.POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.poll_timeout = settings.POLL_TIMEOUT_SECONDS if poll_timeout is None else poll_timeout

        self._state = ObserverState.INITIATED
        self._outcome: Optional[TransactionOutcome] = None
        self._finished = asyncio.Event()
        self._poll_task: Optional[asyncio.Task] = None
        self._callback_received = False
        self._last_error: Optional[ApiError] = None

    @property
    def reference(self) -> str:
        return self.initiation.reference

    @property
    def state(self) -> ObserverState:
        return self._state

    @property
    def outcome(self) -> Optional[TransactionOutcome]:
        return self._outcome

    async def start(self) -> None:
        """Begin observing; returns once polling runs or the SDK sheet is up."""
        if self._state is not ObserverState.INITIATED:
            raise RuntimeError(f"Observer for {self.reference} already started ({self._state.value})")

        channel = self.initiation.channel
        if channel.is_polled:
            self._state = ObserverState.POLLING
            logger.info(f"Polling status of {self.reference} every {self.poll_interval}s")
            self._poll_task = asyncio.create_task(self._poll_loop())
            return

        if self.sdk is None:
            raise ValueError("An SDK adapter is required to observe SDK payments")
        self._state = ObserverState.AWAITING_CALLBACK
        logger.info(f"Awaiting SDK callback for {self.reference}")
        try:
            await self.sdk.launch(self.initiation.payload, self.initiation, self)
        except Exception as e:
            logger.exception(f"Payment SDK failed to launch for {self.reference}")
            self._finish(ObserverState.UNRESOLVED, OutcomeKind.PENDING, error=_as_api_error(e))

    async def wait(self) -> TransactionOutcome:
        await self._finished.wait()
        return self._outcome

    async def run(self) -> TransactionOutcome:
        await self.start()
        return await self.wait()

    def cancel(self) -> None:
        """The payment UI was dismissed before a terminal state."""
        if self._state.is_terminal:
            return
        logger.info(f"Observation of {self.reference} cancelled by user")
        self._finish(ObserverState.CANCELLED, OutcomeKind.CANCELLED)

    # Polling

    async def poll_once(self) -> Optional[TransactionStatus]:
        """Issue one status check and advance the state machine on a terminal status.

        A failed check leaves the state untouched; the next tick retries.
        """
        if self._state is not ObserverState.POLLING:
            return None

        try:
            status = await self.payments.check_status(self.initiation.transaction_id)
        except ApiError as e:
            self._last_error = e
            STATUS_POLL_COUNT.labels(result="error").inc()
            logger.warning(f"Status check for {self.reference} failed: {e!r}")
            return None

        STATUS_POLL_COUNT.labels(result=status.status.value).inc()

        if self._state.is_terminal:
            logger.debug(f"Ignoring late status {status.status.value} for {self.reference}")
            return status

        if status.status is TransactionState.SUCCESS:
            self._finish(ObserverState.SUCCEEDED, OutcomeKind.SUCCEEDED, status=status)
        elif status.status is TransactionState.FAILED:
            self._finish(ObserverState.FAILED, OutcomeKind.FAILED, status=status)
        return status

    async def _poll_loop(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.poll_timeout

        while not self._state.is_terminal:
            try:
                await self.poll_once()
            except Exception as e:
                logger.exception(f"Polling {self.reference} stopped on unexpected error")
                self._finish(ObserverState.UNRESOLVED, OutcomeKind.PENDING, error=_as_api_error(e))
                break
            if self._state.is_terminal:
                break

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(f"No terminal status for {self.reference} after {self.poll_timeout}s")
                self._finish(ObserverState.UNRESOLVED, OutcomeKind.PENDING, error=self._last_error)
                break

            await asyncio.sleep(min(self.poll_interval, remaining))

    async def handle_navigation(self, url: str) -> bool:
        """Feed a card web view navigation to the observer.

        Returns True when the URL marks completion and the web view should
        stop loading; the status is then checked right away.
        """
        if not is_webview_completion(url, self.settings.WEBVIEW_RETURN_MARKERS):
            return False

        logger.info(f"Payment page for {self.reference} returned")
        await self.poll_once()
        return True

    # SDK callbacks

    async def on_success(self, flw_ref: Optional[str]) -> None:
        if not flw_ref:
            # A success without a provider reference cannot be verified
            if not self._accept_callback(self.settings.SDK_VERIFY_SUCCESS_STATUS):
                return
            logger.error(f"SDK reported success for {self.reference} without a reference")
            self._finish(ObserverState.UNRESOLVED, OutcomeKind.PENDING, error=Unknown(MISSING_REFERENCE))
            return
        await self._verify_callback(flw_ref, self.settings.SDK_VERIFY_SUCCESS_STATUS)

    async def on_failure(self, flw_ref: Optional[str]) -> None:
        await self._verify_callback(flw_ref, self.settings.SDK_VERIFY_FAILURE_STATUS)

    async def on_cancel(self) -> None:
        if not self._accept_callback("cancel"):
            return
        logger.info(f"Payment {self.reference} cancelled in SDK")
        self._finish(ObserverState.CANCELLED, OutcomeKind.CANCELLED)

    def _accept_callback(self, kind: str) -> bool:
        if self._state is not ObserverState.AWAITING_CALLBACK or self._callback_received:
            logger.warning(f"Ignoring SDK {kind} callback for {self.reference} in state {self._state.value}")
            return False
        self._callback_received = True
        return True

    async def _verify_callback(self, flw_ref: Optional[str], provider_status: str) -> None:
        if not self._accept_callback(provider_status):
            return

        logger.info(f"SDK reported {provider_status} for {self.reference} (flw_ref={flw_ref})")
        try:
            status = await self.payments.verify_sdk(
                self.initiation.transaction_id, flw_ref or "", provider_status
            )
        except Exception as e:
            logger.error(f"Verification of {self.reference} failed: {e!r}")
            self._finish(ObserverState.UNRESOLVED, OutcomeKind.PENDING, error=_as_api_error(e))
            return

        if status.status is TransactionState.SUCCESS:
            self._finish(ObserverState.SUCCEEDED, OutcomeKind.SUCCEEDED, status=status)
        elif status.status is TransactionState.FAILED:
            self._finish(ObserverState.FAILED, OutcomeKind.FAILED, status=status)
        else:
            self._finish(ObserverState.UNRESOLVED, OutcomeKind.PENDING, status=status)

    # Terminal transition

    def _finish(
        self,
        state: ObserverState,
        kind: OutcomeKind,
        status: Optional[TransactionStatus] = None,
        error: Optional[ApiError] = None
    ) -> bool:
        # No await between the check and the transition: racing polls deliver once
        if self._state.is_terminal:
            return False

        self._state = state
        self._stop_polling()

        outcome = TransactionOutcome(
            kind=kind,
            reference=self.reference,
            channel=self.initiation.channel,
            status=status,
            error=error,
        )
        self._outcome = outcome
        self._finished.set()

        SETTLEMENT_OUTCOME_COUNT.labels(
            channel=self.initiation.channel.type.value, outcome=kind.value
        ).inc()
        logger.info(f"Transaction {self.reference} settled: {kind.value}")

        self.presenter.present(outcome)
        return True

    def _stop_polling(self) -> None:
        task = self._poll_task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()
