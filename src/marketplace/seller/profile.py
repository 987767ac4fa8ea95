"""SellerProfile aggregate — per-seller delivery settings used for checkout fees."""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, String

from marketplace.domain import marketplace


class AddressType(Enum):
    PERSONAL = "personal"
    CAMPUS = "campus"
    PICKUP = "pickup"


@marketplace.entity(part_of="SellerProfile")
class DeliveryOption:
    address_type = String(choices=AddressType, required=True)
    enabled = Boolean(default=True)
    fee = Float(min_value=0.0)
    free_threshold = Float(min_value=0.0)


@marketplace.aggregate
class SellerProfile:
    seller_id = Identifier(required=True)
    shop_name = String(max_length=100)
    free_delivery_for_all = Boolean(default=False)
    delivery_options = HasMany(DeliveryOption)
    updated_at = DateTime()

    @classmethod
    def create(cls, seller_id, shop_name=None):
        return cls(seller_id=seller_id, shop_name=shop_name, updated_at=datetime.now(UTC))

    def option_for(self, address_type):
        return next((o for o in self.delivery_options if o.address_type == address_type), None)

    def configure_delivery(self, address_type, enabled=True, fee=None, free_threshold=None):
        if fee is not None and fee < 0:
            raise ValidationError({"fee": ["Delivery fee cannot be negative"]})

        option = self.option_for(address_type)
        if option is None:
            self.add_delivery_options(
                DeliveryOption(
                    address_type=address_type,
                    enabled=enabled,
                    fee=fee,
                    free_threshold=free_threshold,
                )
            )
        else:
            option.enabled = enabled
            option.fee = fee
            option.free_threshold = free_threshold
        self.updated_at = datetime.now(UTC)


@marketplace.repository(part_of=SellerProfile)
class SellerProfileRepository:
    def for_seller(self, seller_id) -> SellerProfile | None:
        profiles = self._dao.query.filter(seller_id=str(seller_id)).all().items
        return profiles[0] if profiles else None
