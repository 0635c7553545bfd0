import enum
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class MobileNetwork(str, enum.Enum):
    MTN = "MTN"
    AIRTEL = "AIRTEL"

    @property
    def provider_code(self) -> str:
        """Value the API expects in ``payment_provider``."""
        return self.value.lower()


class ChannelType(str, enum.Enum):
    MOBILE_MONEY = "mobile_money"
    CARD = "card"
    SDK = "sdk"


class PaymentChannel(BaseModel):
    """Settlement path of a deposit, fixed for the life of the transaction."""
    type: ChannelType
    network: Optional[MobileNetwork] = None

    class Config:
        frozen = True

    @classmethod
    def mobile_money(cls, network: MobileNetwork) -> "PaymentChannel":
        return cls(type=ChannelType.MOBILE_MONEY, network=network)

    @classmethod
    def card(cls) -> "PaymentChannel":
        return cls(type=ChannelType.CARD)

    @classmethod
    def sdk(cls) -> "PaymentChannel":
        return cls(type=ChannelType.SDK)

    @property
    def is_polled(self) -> bool:
        return self.type in (ChannelType.MOBILE_MONEY, ChannelType.CARD)

    def __str__(self) -> str:
        if self.network:
            return f"{self.type.value}:{self.network.value}"
        return self.type.value


# Channel payloads

class MobileMoneyPayload(BaseModel):
    """The server pushes the approval prompt to the phone out-of-band."""
    mode: Literal["mobile_money"] = "mobile_money"

    class Config:
        frozen = True


class CardPayload(BaseModel):
    mode: Literal["card"] = "card"
    payment_url: str

    class Config:
        frozen = True


class SdkCustomer(BaseModel):
    email: str
    name: str
    phone_number: str

    class Config:
        frozen = True

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0] if self.name else ""

    @property
    def last_name(self) -> str:
        parts = self.name.split(" ")
        return " ".join(parts[1:]) if len(parts) > 1 else ""


class SdkPayload(BaseModel):
    """Bootstrap parameters handed verbatim to the provider SDK."""
    mode: Literal["sdk"] = "sdk"
    tx_ref: str
    public_key: str
    encryption_key: str
    customer: SdkCustomer

    class Config:
        frozen = True


ChannelPayload = Annotated[
    Union[MobileMoneyPayload, CardPayload, SdkPayload],
    Field(discriminator="mode"),
]


class PaymentInitiation(BaseModel):
    """Result of one initiation call, identified by its server-issued reference."""
    transaction_id: int
    reference: str
    amount: Decimal
    currency: str
    channel: PaymentChannel
    payload: ChannelPayload

    class Config:
        frozen = True


# Wire responses

class PaymentData(BaseModel):
    mode: str
    url: Optional[str] = None
    authorization_url: Optional[str] = None
    redirect_url: Optional[str] = None
    flutterwave_transaction_id: Optional[Union[int, str]] = None

    class Config:
        extra = "ignore"

    @property
    def payment_url(self) -> Optional[str]:
        for candidate in (self.url, self.authorization_url, self.redirect_url):
            if candidate is not None:
                return candidate
        return None


class DepositResponse(BaseModel):
    """Response of the mobile-money and card deposit endpoints."""
    transaction_id: int
    reference: str
    amount: Decimal
    currency: str
    status: Optional[str] = None
    network: Optional[str] = None
    payment_data: PaymentData

    class Config:
        extra = "ignore"


class SdkConfig(BaseModel):
    public_key: str
    encryption_key: str


class SdkInitiateResponse(BaseModel):
    transaction_id: int
    tx_ref: str
    amount: Decimal
    currency: str
    user: SdkCustomer
    sdk_config: SdkConfig

    class Config:
        extra = "ignore"
