"""Checkout fee rules.

Every seller group in a session is priced on its own:

    platform fee    = tier % of (subtotal + delivery)
    processing fee  = 2.9 % of (subtotal + delivery) + 1.50, online payments only
    total           = subtotal + delivery + platform fee
    seller receives = subtotal + delivery - processing fee

Rates and thresholds come from ``marketplace.config.settings``.
"""

from dataclasses import dataclass
from enum import Enum

from marketplace.config import settings
from marketplace.errors import InvalidDeliveryMethod
from marketplace.seller.profile import AddressType
from marketplace.utils.clock import money


class DeliveryMethod(Enum):
    SELF_PICKUP = "self_pickup"
    DELIVERY = "delivery"
    MEETUP = "meetup"
    CAMPUS_DELIVERY = "campus_delivery"
    ROOM_DELIVERY = "room_delivery"


class PaymentMethod(Enum):
    COD = "cod"
    BANK_TRANSFER = "bank_transfer"
    E_WALLET = "e_wallet"
    CREDIT_CARD = "credit_card"


ADDRESS_TYPE_FOR_METHOD = {
    DeliveryMethod.SELF_PICKUP.value: AddressType.PICKUP.value,
    DeliveryMethod.MEETUP.value: AddressType.PICKUP.value,
    DeliveryMethod.DELIVERY.value: AddressType.PERSONAL.value,
    DeliveryMethod.CAMPUS_DELIVERY.value: AddressType.CAMPUS.value,
    DeliveryMethod.ROOM_DELIVERY.value: AddressType.CAMPUS.value,
}


@dataclass(frozen=True)
class GroupCharges:
    subtotal: float
    delivery_fee: float
    platform_fee: float
    processing_fee: float
    total: float
    seller_receives: float


def is_online(payment_method: str | None) -> bool:
    return payment_method is not None and payment_method != PaymentMethod.COD.value


def address_type_for(delivery_method: str) -> str:
    return ADDRESS_TYPE_FOR_METHOD[delivery_method]


def platform_fee_percentage(amount: float) -> float:
    percentage = 0.0
    for lower_bound, tier_percentage in sorted(settings.platform_fee_tiers):
        if amount >= lower_bound:
            percentage = tier_percentage
    return percentage


def processing_fee(amount: float, payment_method: str | None) -> float:
    if not is_online(payment_method) or amount <= 0:
        return 0.0
    return money(amount * settings.processing_fee_percentage / 100 + settings.processing_fee_fixed)


def delivery_fee_for(profile, address_type: str, subtotal: float) -> float:
    """Delivery fee a seller charges for ``address_type`` on a group worth ``subtotal``.

    Sellers without a profile or without an option for the address type
    fall back to the platform default fee.
    """
    default_fee = settings.default_delivery_fees.get(address_type, 0.0)
    if profile is None:
        return money(default_fee)
    if profile.free_delivery_for_all:
        return 0.0

    option = profile.option_for(address_type)
    if option is None:
        return money(default_fee)
    if not option.enabled:
        raise InvalidDeliveryMethod(
            f"{profile.shop_name or 'This seller'} does not offer {address_type} delivery",
            details={"seller_id": str(profile.seller_id), "address_type": address_type},
        )
    if option.free_threshold and subtotal >= option.free_threshold:
        return 0.0
    return money(option.fee if option.fee is not None else default_fee)


def price_group(subtotal: float, delivery_fee: float, payment_method: str | None) -> GroupCharges:
    base = money(subtotal + delivery_fee)
    platform_fee = money(base * platform_fee_percentage(base) / 100)
    processing = processing_fee(base, payment_method)
    return GroupCharges(
        subtotal=money(subtotal),
        delivery_fee=money(delivery_fee),
        platform_fee=platform_fee,
        processing_fee=processing,
        total=money(base + platform_fee),
        seller_receives=money(max(0.0, base - processing)),
    )
