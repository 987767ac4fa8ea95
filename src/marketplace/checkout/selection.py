"""Delivery and payment selection on an open checkout session."""

from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from marketplace.checkout.pricing import DeliveryMethod, PaymentMethod, address_type_for, delivery_fee_for, price_group
from marketplace.checkout.queries import owned_session
from marketplace.checkout.session import CheckoutSession, DeliveryAddress
from marketplace.domain import marketplace
from marketplace.seller.profile import AddressType, SellerProfile


@marketplace.command(part_of="CheckoutSession")
class UpdateCheckoutSession:
    session_id = Identifier(required=True)
    owner_id = Identifier(required=True)
    delivery_method = String(choices=DeliveryMethod)
    payment_method = String(choices=PaymentMethod)

    # Delivery address, either picked from the address book (address_id)
    # or typed in. address_type is required whenever an address is given.
    address_type = String(choices=AddressType)
    address_id = Identifier()
    recipient_name = String(max_length=100)
    phone = String(max_length=30)
    address_line = String(max_length=255)
    city = String(max_length=100)
    postcode = String(max_length=20)
    building = String(max_length=100)
    room = String(max_length=50)
    pickup_point = String(max_length=255)
    notes = String(max_length=500)

    as_of = DateTime()


def _address_from(command):
    if not command.address_type:
        return None
    return DeliveryAddress(
        address_type=command.address_type,
        address_id=command.address_id,
        recipient_name=command.recipient_name,
        phone=command.phone,
        address_line=command.address_line,
        city=command.city,
        postcode=command.postcode,
        building=command.building,
        room=command.room,
        pickup_point=command.pickup_point,
        notes=command.notes,
    )


@marketplace.command_handler(part_of=CheckoutSession)
class CheckoutSelectionHandler:
    @handle(UpdateCheckoutSession)
    def update_session(self, command):
        session = owned_session(command.session_id, command.owner_id)
        session.assert_open("update", command.as_of)

        delivery_method = command.delivery_method or session.delivery_method
        payment_method = command.payment_method or session.payment_method
        profiles = current_domain.repository_for(SellerProfile)

        charges = {}
        for group in session.seller_groups:
            if delivery_method:
                fee = delivery_fee_for(
                    profiles.for_seller(group.seller_id),
                    address_type_for(delivery_method),
                    group.subtotal,
                )
            else:
                fee = group.delivery_fee or 0.0
            charges[str(group.seller_id)] = price_group(group.subtotal, fee, payment_method)

        session.select_options(
            charges,
            delivery_method=command.delivery_method,
            delivery_address=_address_from(command),
            payment_method=command.payment_method,
            as_of=command.as_of,
        )
        current_domain.repository_for(CheckoutSession).add(session)
