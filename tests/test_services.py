"""
Tests for the wallet-side services and the client facade.

Covers:
- Withdrawal fee estimate and mobile money withdrawal
- Transaction history and lookup
- Avatar upload
- Input validators and web view completion detection
- PaymentsClient wiring
"""

import json
from decimal import Decimal

import httpx
import pytest

from conftest import BASE_URL, RecordingPresenter, envelope, mobile_money_initiation
from payflow.client import PaymentsClient
from payflow.core.config import Settings
from payflow.core.credentials import CredentialProvider, InMemoryCredentialProvider
from payflow.core.exceptions import NotFound, ValidationError
from payflow.core.validators import normalize_phone_number, parse_network, validate_currency
from payflow.schemas.payment import MobileNetwork
from payflow.schemas.transaction import TransactionState
from payflow.services.profile import ProfileService
from payflow.services.settlement import ObserverState
from payflow.services.transactions import TransactionService
from payflow.services.webview import is_webview_completion
from payflow.services.withdrawal import WithdrawalService


def transaction_payload(transaction_id=1, status="success", **overrides):
    payload = {
        "id": transaction_id,
        "reference": f"TXN-{transaction_id}",
        "type": "deposit",
        "amount": "10000.00",
        "fee_amount": "0.00",
        "total_amount": "10000.00",
        "currency": "UGX",
        "status": status,
        "payment_channel": "mobile_money",
        "created_at": "2025-10-10T09:00:00Z",
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Withdrawals
# =============================================================================

class TestWithdrawal:
    """Tests for WithdrawalService."""

    @pytest.mark.parametrize("amount, fee", [
        (50000, Decimal("1000")),
        ("124999.99", Decimal("1000")),
        (125000, Decimal("1500.00")),
        (200000, Decimal("2400.00")),
        ("333333", Decimal("4000.00")),
    ])
    def test_estimate_fee(self, api, amount, fee):
        assert WithdrawalService(api).estimate_fee(amount) == fee

    def test_estimate_fee_rejects_non_positive(self, api):
        with pytest.raises(ValidationError):
            WithdrawalService(api).estimate_fee(0)

    @pytest.mark.asyncio
    async def test_withdraw_mobile_money(self, api, mock_api):
        receipt = {
            "transaction_id": 55,
            "reference": "WDR-55",
            "amount": "20000.00",
            "currency": "UGX",
            "network": "AIRTEL",
            "status": "pending",
        }
        mock_api.add("POST", "/withdrawals/mobile-money", (200, envelope(receipt)))

        result = await WithdrawalService(api).withdraw_mobile_money(20000, "UGX", "airtel", "256 750 000 002")

        assert json.loads(mock_api.requests[0].content) == {
            "amount": 20000.0,
            "currency": "UGX",
            "network": "AIRTEL",
            "phone_number": "+256750000002",
        }
        assert result.reference == "WDR-55"
        assert result.amount == Decimal("20000.00")

    @pytest.mark.asyncio
    async def test_withdraw_validates_before_sending(self, api, mock_api):
        with pytest.raises(ValidationError):
            await WithdrawalService(api).withdraw_mobile_money(20000, "XYZ", MobileNetwork.MTN, "256700000001")
        assert mock_api.requests == []


# =============================================================================
# Transactions
# =============================================================================

class TestTransactions:
    """Tests for TransactionService."""

    @pytest.mark.asyncio
    async def test_history(self, api, mock_api):
        mock_api.add("GET", "/transactions", (200, envelope([
            transaction_payload(2, "pending"),
            transaction_payload(1, "completed"),
        ])))

        history = await TransactionService(api).history(page=2, status="pending")

        request = mock_api.requests[0]
        assert dict(request.url.params) == {"page": "2", "per_page": "20", "status": "pending"}
        assert [t.id for t in history] == [2, 1]
        assert history[0].status is TransactionState.PENDING
        assert history[1].formatted_amount() == "10,000.00 UGX"

    @pytest.mark.asyncio
    async def test_get(self, api, mock_api):
        mock_api.add("GET", "/transactions/9", (200, envelope(transaction_payload(9, "failed"))))

        transaction = await TransactionService(api).get(9)

        assert transaction.reference == "TXN-9"
        assert transaction.to_status().status is TransactionState.FAILED

    @pytest.mark.asyncio
    async def test_get_missing(self, api, mock_api):
        with pytest.raises(NotFound):
            await TransactionService(api).get(404)


# =============================================================================
# Profile
# =============================================================================

class TestProfile:
    """Tests for ProfileService."""

    @pytest.mark.asyncio
    async def test_upload_avatar(self, api, mock_api):
        mock_api.add("POST", "/profile/avatar", (200, envelope({"avatar_url": "https://cdn.test/avatars/1.jpg"})))

        url = await ProfileService(api).upload_avatar(b"\xff\xd8\xff\xe0jpeg")

        assert url == "https://cdn.test/avatars/1.jpg"
        assert b'name="avatar"; filename="image.jpg"' in mock_api.requests[0].read()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("image", [b"", b"x" * 11])
    async def test_upload_avatar_rejects_bad_size(self, api, mock_api, image):
        with pytest.raises(ValidationError):
            await ProfileService(api, settings=Settings(AVATAR_MAX_SIZE=10)).upload_avatar(image)
        assert mock_api.requests == []


# =============================================================================
# Validators and web view
# =============================================================================

@pytest.mark.parametrize("raw, expected", [
    ("256700000001", "+256700000001"),
    ("+256 700 000 001", "+256700000001"),
    ("(256) 700-000-001", "+256700000001"),
    ("++256700000001", "+256700000001"),
])
def test_normalize_phone_number(raw, expected):
    assert normalize_phone_number(raw) == expected


@pytest.mark.parametrize("raw", ["", "0256700000001", "123", "25670000000a", "1" * 20])
def test_normalize_phone_number_rejects(raw):
    with pytest.raises(ValidationError, match="valid phone number"):
        normalize_phone_number(raw)


def test_validate_currency():
    assert validate_currency(" usd ", ["UGX", "USD"]) == "USD"
    with pytest.raises(ValidationError, match="Unsupported currency"):
        validate_currency("KES", ["UGX", "USD"])


def test_parse_network():
    assert parse_network("mtn") is MobileNetwork.MTN
    assert parse_network(MobileNetwork.AIRTEL) is MobileNetwork.AIRTEL
    assert MobileNetwork.AIRTEL.provider_code == "airtel"


@pytest.mark.parametrize("url, expected", [
    ("https://afrivest.countrywealth.ug/api/deposits/return?status=successful", True),
    ("https://example.test/pay?action=close_webview", True),
    ("https://checkout.flutterwave.com/v3/hosted/pay/abc", False),
    ("", False),
    (None, False),
])
def test_webview_completion(url, expected):
    assert is_webview_completion(url) is expected


def test_webview_custom_markers():
    assert is_webview_completion("myapp://done", markers=["myapp://done"]) is True
    assert is_webview_completion("https://x.test/deposits/return", markers=["myapp://done"]) is False


# =============================================================================
# Credentials and client
# =============================================================================

def test_in_memory_credentials_satisfy_protocol():
    credentials = InMemoryCredentialProvider()
    assert isinstance(credentials, CredentialProvider)
    assert credentials.get_token() is None
    credentials.set_token("abc")
    assert credentials.get_token() == "abc"
    credentials.clear()
    assert credentials.get_token() is None


def test_settings_override(monkeypatch):
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "2.5")
    monkeypatch.setenv("API_BASE_URL", "https://staging.test/api")

    settings = Settings()

    assert settings.POLL_INTERVAL_SECONDS == 2.5
    assert settings.API_BASE_URL == "https://staging.test/api"


@pytest.mark.asyncio
async def test_client_wires_services(mock_api):
    http_client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(mock_api))
    settings = Settings(POLL_INTERVAL_SECONDS=0.01, POLL_TIMEOUT_SECONDS=5)
    mock_api.add("GET", "/deposits/1/check", (200, envelope({
        "transaction_id": 1,
        "reference": "DEP-1",
        "amount": "10000.00",
        "currency": "UGX",
        "status": "success",
    })))
    presenter = RecordingPresenter()

    async with PaymentsClient(InMemoryCredentialProvider("token"), settings=settings, http_client=http_client) as client:
        assert client.payments.api is client.api
        assert client.withdrawals.api is client.api

        observer = client.observe(mobile_money_initiation(), presenter)
        assert observer.poll_interval == 0.01
        outcome = await observer.run()

    assert observer.state is ObserverState.SUCCEEDED
    assert presenter.outcomes == [outcome]
    assert not http_client.is_closed
