"""Aggregate → JSON payload conversion for API responses."""

import json

from marketplace.utils.clock import as_utc


def _iso(value):
    return value.isoformat() if value else None


def listing_payload(listing) -> dict:
    qs = listing.quote_settings
    return {
        "id": str(listing.id),
        "seller_id": str(listing.seller_id),
        "seller_name": listing.seller_name,
        "title": listing.title,
        "listing_type": listing.listing_type,
        "price": listing.price,
        "stock": listing.stock,
        "available_quantity": listing.available_quantity() if listing.is_product else None,
        "is_available": listing.is_available,
        "variants": [variant_payload(listing, variant) for variant in listing.variants],
        "quote_settings": None
        if qs is None
        else {
            "enabled": qs.enabled,
            "min_price": qs.min_price,
            "max_price": qs.max_price,
            "response_time": qs.response_time,
            "requires_deposit": qs.requires_deposit,
            "deposit_percentage": qs.deposit_percentage,
        },
    }


def variant_payload(listing, variant) -> dict:
    return {
        "id": str(variant.id),
        "name": variant.name,
        "display_name": variant.display_name,
        "sku": variant.sku,
        "price": variant.price,
        "stock": variant.stock,
        "available_quantity": listing.available_quantity(variant_id=variant.id),
        "is_available": variant.is_available,
        "attributes": variant.attribute_map,
    }

def cart_payload(cart) -> dict:
    if cart is None:
        return {"id": None, "items": [], "item_count": 0}
    return {
        "id": str(cart.id),
        "items": [
            {
                "id": str(item.id),
                "listing_id": str(item.listing_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "quantity": item.quantity,
                "added_at": _iso(item.added_at),
            }
            for item in cart.items
        ],
        "item_count": sum(item.quantity for item in cart.items),
    }


def session_payload(session) -> dict | None:
    if session is None:
        return None
    pricing = session.pricing
    return {
        "id": str(session.id),
        "owner_id": str(session.owner_id),
        "session_type": session.session_type,
        "status": session.status,
        "items": [
            {
                "listing_id": str(item.listing_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "variant_name": item.variant_name,
                "name": item.name,
                "listing_type": item.listing_type,
                "seller_id": str(item.seller_id),
                "seller_name": item.seller_name,
                "unit_price": item.unit_price,
                "quantity": item.quantity,
                "line_total": item.line_total,
            }
            for item in session.items
        ],
        "seller_groups": [
            {
                "seller_id": str(group.seller_id),
                "seller_name": group.seller_name,
                "subtotal": group.subtotal,
                "delivery_fee": group.delivery_fee,
                "platform_fee": group.platform_fee,
                "processing_fee": group.processing_fee,
                "total": group.total,
                "seller_receives": group.seller_receives,
            }
            for group in session.seller_groups
        ],
        "pricing": {
            "subtotal": pricing.subtotal,
            "delivery_fee": pricing.delivery_fee,
            "platform_fee": pricing.platform_fee,
            "processing_fee": pricing.processing_fee,
            "total": pricing.total,
        },
        "delivery_method": session.delivery_method,
        "delivery_address": session.delivery_address.to_dict() if session.delivery_address else None,
        "payment_method": session.payment_method,
        "order_ids": session.order_id_list,
        "created_at": _iso(session.created_at),
        "expires_at": _iso(session.expires_at),
        "closed_at": _iso(session.closed_at),
    }


def order_payload(order) -> dict:
    return {
        "id": str(order.id),
        "order_number": order.order_number,
        "checkout_session_id": str(order.checkout_session_id),
        "buyer_id": str(order.buyer_id),
        "buyer_name": order.buyer_name,
        "seller_id": str(order.seller_id),
        "seller_name": order.seller_name,
        "status": order.status,
        "items": [
            {
                "listing_id": str(item.listing_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "variant_name": item.variant_name,
                "name": item.name,
                "listing_type": item.listing_type,
                "unit_price": item.unit_price,
                "quantity": item.quantity,
                "line_total": item.line_total,
            }
            for item in order.items
        ],
        "delivery_method": order.delivery_method,
        "delivery_address": order.address_snapshot,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "subtotal": order.subtotal,
        "delivery_fee": order.delivery_fee,
        "platform_fee": order.platform_fee,
        "processing_fee": order.processing_fee,
        "total": order.total,
        "seller_receives": order.seller_receives,
        "carrier": order.carrier,
        "tracking_number": order.tracking_number,
        "cancellation_reason": order.cancellation_reason,
        "created_at": _iso(order.created_at),
        "shipped_at": _iso(order.shipped_at),
        "delivered_at": _iso(order.delivered_at),
        "cancelled_at": _iso(order.cancelled_at),
    }


def quote_payload(quote) -> dict:
    sq = quote.seller_quote
    cancellation = quote.cancellation
    payment = quote.payment
    return {
        "id": str(quote.id),
        "listing_id": str(quote.listing_id),
        "listing_title": quote.listing_title,
        "buyer_id": str(quote.buyer_id),
        "buyer_name": quote.buyer_name,
        "seller_id": str(quote.seller_id),
        "seller_name": quote.seller_name,
        "message": quote.message,
        "budget": quote.budget,
        "timeline": quote.timeline,
        "priority": quote.priority,
        "custom_field_values": json.loads(quote.custom_field_values) if quote.custom_field_values else [],
        "status": quote.status,
        "expires_at": _iso(quote.expires_at),
        "amount_due": quote.amount_due if sq else None,
        "seller_quote": None
        if sq is None
        else {
            "quoted_price": sq.quoted_price,
            "estimated_duration": sq.estimated_duration,
            "message": sq.message,
            "deposit_required": sq.deposit_required,
            "deposit_amount": sq.deposit_amount,
            "deposit_percentage": sq.deposit_percentage,
            "terms": sq.terms,
            "quoted_at": _iso(sq.quoted_at),
            "valid_until": _iso(sq.valid_until),
        },
        "rejection_reason": quote.rejection_reason,
        "cancellation": None
        if cancellation is None
        else {
            "reason": cancellation.reason,
            "note": cancellation.note,
            "cancelled_by": str(cancellation.cancelled_by),
            "cancelled_by_role": cancellation.cancelled_by_role,
            "cancelled_at": _iso(cancellation.cancelled_at),
        },
        "payment": None
        if payment is None
        else {
            "method": payment.method,
            "reference": payment.reference,
            "amount": payment.amount,
            "deposit_paid": payment.deposit_paid,
            "remaining_amount": payment.remaining_amount,
            "paid_at": _iso(payment.paid_at),
        },
        "started_at": _iso(quote.started_at),
        "completed_at": _iso(quote.completed_at),
        "completion_note": quote.completion_note,
        "history": [
            {
                "status": entry.status,
                "changed_by": str(entry.changed_by) if entry.changed_by else None,
                "role": entry.role,
                "note": entry.note,
                "changed_at": _iso(entry.changed_at),
            }
            for entry in sorted(quote.history, key=lambda e: as_utc(e.changed_at))
        ],
        "created_at": _iso(quote.created_at),
    }
