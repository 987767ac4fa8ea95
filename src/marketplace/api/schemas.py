"""Pydantic request schemas for the marketplace API.

These are the external contracts, kept separate from the internal
commands. Closed vocabularies (delivery and payment methods, priorities,
cancel reasons) are validated here against the domain enums.
"""

from typing import Any

from pydantic import BaseModel, Field

from marketplace.checkout.pricing import DeliveryMethod, PaymentMethod
from marketplace.listing.listing import ListingType
from marketplace.quote.request import CancelReason, QuotePriority
from marketplace.seller.profile import AddressType


# ---------------------------------------------------------------------------
# Listings and sellers
# ---------------------------------------------------------------------------
class QuoteSettingsSchema(BaseModel):
    enabled: bool = True
    min_price: float | None = Field(default=None, ge=0)
    max_price: float | None = Field(default=None, ge=0)
    response_time: str | None = None
    requires_deposit: bool = False
    deposit_percentage: float = Field(default=0.0, ge=0, le=100)


class CreateListingRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    price: float = Field(ge=0)
    listing_type: ListingType = ListingType.PRODUCT
    stock: int = Field(default=0, ge=0)
    quote_settings: QuoteSettingsSchema | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [{"title": "Used calculus textbook", "price": 25.0, "listing_type": "product", "stock": 2}]
        }
    }


class RestockRequest(BaseModel):
    quantity: int = Field(ge=1)
    variant_id: str | None = None


class AvailabilityRequest(BaseModel):
    is_available: bool


class AddVariantRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    sku: str | None = Field(default=None, max_length=50)
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    attributes: dict[str, str] | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [{"name": "Medium", "price": 18.0, "stock": 4, "attributes": {"size": "M", "colour": "navy"}}]
        }
    }


class UpdateVariantRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    price: float | None = Field(default=None, ge=0)
    is_available: bool | None = None


class DeliveryOptionRequest(BaseModel):
    address_type: AddressType
    enabled: bool = True
    fee: float | None = Field(default=None, ge=0)
    free_threshold: float | None = Field(default=None, ge=0)
    free_delivery_for_all: bool | None = None
    shop_name: str | None = Field(default=None, max_length=100)


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    listing_id: str
    variant_id: str | None = None
    quantity: int = Field(default=1, ge=1)


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(ge=1)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class DirectCheckoutRequest(BaseModel):
    listing_id: str
    variant_id: str | None = None
    quantity: int = Field(default=1, ge=1)


class DeliveryAddressSchema(BaseModel):
    address_type: AddressType
    address_id: str | None = None
    recipient_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=30)
    address_line: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=100)
    postcode: str | None = Field(default=None, max_length=20)
    building: str | None = Field(default=None, max_length=100)
    room: str | None = Field(default=None, max_length=50)
    pickup_point: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None, max_length=500)


class UpdateSessionRequest(BaseModel):
    delivery_method: DeliveryMethod | None = None
    delivery_address: DeliveryAddressSchema | None = None
    payment_method: PaymentMethod | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "delivery_method": "campus_delivery",
                    "delivery_address": {"address_type": "campus", "building": "KK12", "room": "B-204"},
                    "payment_method": "e_wallet",
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class ShipOrderRequest(BaseModel):
    carrier: str | None = Field(default=None, max_length=100)
    tracking_number: str | None = Field(default=None, max_length=255)


class CancelOrderRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class RefundOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------
class CustomFieldValue(BaseModel):
    label: str
    value: Any


class CreateQuoteRequest(BaseModel):
    listing_id: str
    message: str = Field(min_length=1, max_length=2000)
    budget: float | None = Field(default=None, ge=0)
    timeline: str | None = Field(default=None, max_length=200)
    priority: QuotePriority = QuotePriority.NORMAL
    custom_field_values: list[CustomFieldValue] = Field(default_factory=list)


class RespondQuoteRequest(BaseModel):
    quoted_price: float = Field(gt=0)
    estimated_duration: str | None = Field(default=None, max_length=100)
    message: str | None = Field(default=None, max_length=2000)
    deposit_required: bool = False
    deposit_amount: float | None = Field(default=None, ge=0)
    deposit_percentage: float | None = Field(default=None, ge=0, le=100)
    terms: str | None = Field(default=None, max_length=2000)


class PayQuoteRequest(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD


class RejectQuoteRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class CancelQuoteRequest(BaseModel):
    reason: CancelReason
    note: str | None = Field(default=None, max_length=500)


class CompleteQuoteRequest(BaseModel):
    note: str | None = Field(default=None, max_length=1000)
