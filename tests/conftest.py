import asyncio
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from payflow.core.credentials import InMemoryCredentialProvider
from payflow.middleware.tracing import build_event_hooks
from payflow.schemas.payment import (
    CardPayload, MobileMoneyPayload, MobileNetwork, PaymentChannel, PaymentInitiation,
    SdkCustomer, SdkPayload
)
from payflow.schemas.transaction import TransactionStatus
from payflow.services.payment import PaymentService
from payflow.services.transport import ApiClient

BASE_URL = "https://api.test/api"


# =============================================================================
# Payload builders
# =============================================================================

def envelope(data: Any = None, success: bool = True, message: Optional[str] = None, **extra) -> Dict:
    body = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def status_payload(
    status: str,
    transaction_id: int = 1,
    reference: str = "DEP-1",
    amount: str = "10000.00",
    currency: str = "UGX",
    can_retry: Optional[bool] = None
) -> Dict:
    payload = {
        "transaction_id": transaction_id,
        "reference": reference,
        "amount": amount,
        "currency": currency,
        "status": status,
        "payment_method": "mobile_money",
        "network": "MTN",
        "created_at": "2025-10-10T09:00:00Z",
        "updated_at": "2025-10-10T09:01:00Z",
    }
    if can_retry is not None:
        payload["error"] = {
            "error_code": "INSUFFICIENT_FUNDS" if can_retry else "ACCOUNT_BLOCKED",
            "message": "Insufficient balance" if can_retry else "Account blocked",
            "action": "Top up and try again" if can_retry else None,
            "can_retry": can_retry,
            "severity": "warning" if can_retry else "critical",
        }
    return payload


def make_status(state: str, **kwargs) -> TransactionStatus:
    return TransactionStatus.model_validate(status_payload(state, **kwargs))


def mobile_money_initiation(transaction_id: int = 1, reference: str = "DEP-1") -> PaymentInitiation:
    return PaymentInitiation(
        transaction_id=transaction_id,
        reference=reference,
        amount=Decimal("10000.00"),
        currency="UGX",
        channel=PaymentChannel.mobile_money(MobileNetwork.MTN),
        payload=MobileMoneyPayload(),
    )


def card_initiation(transaction_id: int = 2, reference: str = "DEP-CARD-2") -> PaymentInitiation:
    return PaymentInitiation(
        transaction_id=transaction_id,
        reference=reference,
        amount=Decimal("50000.00"),
        currency="UGX",
        channel=PaymentChannel.card(),
        payload=CardPayload(payment_url="https://checkout.test/pay/abc"),
    )


def sdk_initiation(transaction_id: int = 7, reference: str = "AFV-SDK-7") -> PaymentInitiation:
    return PaymentInitiation(
        transaction_id=transaction_id,
        reference=reference,
        amount=Decimal("25000"),
        currency="UGX",
        channel=PaymentChannel.sdk(),
        payload=SdkPayload(
            tx_ref=reference,
            public_key="FLWPUBK_TEST",
            encryption_key="FLWENC_TEST",
            customer=SdkCustomer(email="jane@example.com", name="Jane Doe", phone_number="+256700000001"),
        ),
    )


# =============================================================================
# Fakes
# =============================================================================

class RecordingPresenter:
    def __init__(self):
        self.outcomes = []

    def present(self, outcome) -> None:
        self.outcomes.append(outcome)


class ScriptedPayments:
    """Stands in for PaymentService; replays scripted status checks.

    Each script item is a TransactionStatus or an exception to raise. The
    last item repeats once the script runs out.
    """

    def __init__(self, script: List[Any] = None, verify_result: Any = None, gate: asyncio.Event = None):
        self.script = list(script or [])
        self.verify_result = verify_result
        self.gate = gate
        self.check_calls = 0
        self.verify_calls = []

    async def check_status(self, transaction_id: int) -> TransactionStatus:
        index = min(self.check_calls, len(self.script) - 1)
        self.check_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        result = self.script[index]
        if isinstance(result, Exception):
            raise result
        return result

    async def verify_sdk(self, transaction_id: int, flw_ref: str, status: str) -> TransactionStatus:
        self.verify_calls.append((transaction_id, flw_ref, status))
        if isinstance(self.verify_result, Exception):
            raise self.verify_result
        return self.verify_result


class FakeSdk:
    def __init__(self):
        self.launched = []

    async def launch(self, payload, initiation, callbacks) -> None:
        self.launched.append((payload, callbacks))


class MockApi:
    """Route table for httpx.MockTransport that records every request."""

    def __init__(self):
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, *responses):
        """Register responses for a route; the last one repeats."""
        queue = list(responses)

        def responder(request):
            response = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(response, Exception):
                raise response
            if callable(response):
                return response(request)
            status_code, body = response
            return httpx.Response(status_code, json=body)

        self.routes[(method, "/api" + path)] = responder

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == "/api" + path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json=envelope(success=False, message="Not found"))
        return responder(request)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def credentials():
    return InMemoryCredentialProvider("test-token")


@pytest.fixture
def mock_api():
    return MockApi()


@pytest.fixture
def api(credentials, mock_api):
    http_client = httpx.AsyncClient(
        base_url=BASE_URL,
        transport=httpx.MockTransport(mock_api),
        event_hooks=build_event_hooks(),
    )
    return ApiClient(credentials, http_client=http_client)


@pytest.fixture
def payments(api):
    return PaymentService(api)


@pytest.fixture
def presenter():
    return RecordingPresenter()
