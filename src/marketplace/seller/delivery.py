"""Seller delivery configuration — command and handler."""

from protean import handle
from protean.fields import Boolean, Float, Identifier, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.seller.profile import AddressType, SellerProfile


@marketplace.command(part_of="SellerProfile")
class ConfigureDelivery:
    seller_id = Identifier(required=True)
    shop_name = String(max_length=100)
    address_type = String(choices=AddressType, required=True)
    enabled = Boolean(default=True)
    fee = Float(min_value=0.0)
    free_threshold = Float(min_value=0.0)
    free_delivery_for_all = Boolean()


@marketplace.command_handler(part_of=SellerProfile)
class SellerDeliveryHandler:
    @handle(ConfigureDelivery)
    def configure_delivery(self, command):
        repo = current_domain.repository_for(SellerProfile)
        profile = repo.for_seller(command.seller_id)
        if profile is None:
            profile = SellerProfile.create(seller_id=command.seller_id, shop_name=command.shop_name)
        elif command.shop_name:
            profile.shop_name = command.shop_name

        if command.free_delivery_for_all is not None:
            profile.free_delivery_for_all = command.free_delivery_for_all

        profile.configure_delivery(
            address_type=command.address_type,
            enabled=command.enabled,
            fee=command.fee,
            free_threshold=command.free_threshold,
        )
        repo.add(profile)
        return str(profile.id)
