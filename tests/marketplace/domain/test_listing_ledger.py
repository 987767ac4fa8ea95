"""Tests for the Listing stock reservation ledger."""

from datetime import timedelta

import pytest
from protean.exceptions import ValidationError

from marketplace.errors import InsufficientStock, StockChangedSinceReservation
from marketplace.listing.events import StockCommitted, StockHeld, StockHoldReleased
from marketplace.listing.listing import MAX_VARIANTS_PER_LISTING, Listing, QuoteSettings
from marketplace.utils.clock import utcnow


def _make_product(stock=5):
    listing = Listing.create(seller_id="seller-001", title="Desk lamp", price=15.0, stock=stock)
    listing._events.clear()
    return listing


def _deadline(minutes=10):
    return utcnow() + timedelta(minutes=minutes)


class TestReserve:
    def test_hold_reduces_available_quantity_not_stock(self):
        listing = _make_product(stock=5)
        listing.reserve("sess-1", 3, expires_at=_deadline())

        assert listing.stock == 5
        assert listing.available_quantity() == 2
        assert listing.hold_for("sess-1").quantity == 3

    def test_reserve_raises_stock_held_event(self):
        listing = _make_product(stock=5)
        listing.reserve("sess-1", 2, expires_at=_deadline())

        event = listing._events[-1]
        assert isinstance(event, StockHeld)
        assert event.quantity == 2
        assert event.available_after == 3

    def test_second_session_cannot_overbook(self):
        listing = _make_product(stock=5)
        listing.reserve("sess-1", 3, expires_at=_deadline())

        with pytest.raises(InsufficientStock) as exc:
            listing.reserve("sess-2", 3, expires_at=_deadline())

        assert exc.value.details == {"listing_id": str(listing.id), "available": 2, "requested": 3}
        assert listing.hold_for("sess-2") is None

    def test_lapsed_holds_are_dropped_on_the_next_reservation(self):
        listing = _make_product(stock=2)
        listing.reserve("sess-1", 2, expires_at=_deadline(minutes=10))

        later = utcnow() + timedelta(minutes=11)
        listing.reserve("sess-2", 2, expires_at=later + timedelta(minutes=10), as_of=later)

        assert [str(h.session_id) for h in listing.holds] == ["sess-2"]
        released = [e for e in listing._events if isinstance(e, StockHoldReleased)]
        assert [(e.session_id, e.reason) for e in released] == [("sess-1", "expired")]

    def test_services_do_not_track_stock(self):
        service = Listing.create(seller_id="seller-001", title="Tutoring", price=30.0, listing_type="service")

        with pytest.raises(ValidationError):
            service.reserve("sess-1", 1, expires_at=_deadline())

    def test_quantity_must_be_positive(self):
        listing = _make_product()

        with pytest.raises(ValidationError):
            listing.reserve("sess-1", 0, expires_at=_deadline())


class TestRelease:
    def test_release_returns_stock_to_the_pool(self):
        listing = _make_product(stock=4)
        listing.reserve("sess-1", 4, expires_at=_deadline())

        released = listing.release_holds("sess-1")

        assert released == 4
        assert listing.available_quantity() == 4
        assert isinstance(listing._events[-1], StockHoldReleased)

    def test_release_removes_hold_and_records_reason(self):
        listing = _make_product()
        listing.reserve("sess-1", 1, expires_at=_deadline())

        listing.release_holds("sess-1", reason="expired")

        assert len(listing.holds) == 0
        assert listing._events[-1].reason == "expired"

    def test_release_of_unknown_session_is_a_no_op(self):
        listing = _make_product()
        listing.reserve("sess-1", 1, expires_at=_deadline())
        listing._events.clear()

        assert listing.release_holds("sess-x") == 0
        assert listing._events == []


class TestCommit:
    def test_commit_decrements_stock_and_consumes_hold(self):
        listing = _make_product(stock=5)
        listing.reserve("sess-1", 3, expires_at=_deadline())

        listing.commit_hold("sess-1", 3)

        assert listing.stock == 2
        assert listing.available_quantity() == 2
        assert len(listing.holds) == 0
        assert isinstance(listing._events[-1], StockCommitted)

    def test_holds_plus_sold_never_exceed_original_stock(self):
        listing = _make_product(stock=5)
        listing.reserve("sess-1", 2, expires_at=_deadline())
        listing.reserve("sess-2", 3, expires_at=_deadline())

        listing.commit_hold("sess-1", 2)

        active = sum(h.quantity for h in listing.holds)
        sold = 5 - listing.stock
        assert active + sold <= 5
        assert listing.available_quantity() == 0

    def test_commit_without_hold_is_rejected(self):
        listing = _make_product()
        listing.reserve("sess-1", 1, expires_at=_deadline())
        listing.release_holds("sess-1")

        assert listing.commit_problem("sess-1", 1) == "Stock hold has been released"
        with pytest.raises(StockChangedSinceReservation):
            listing.commit_hold("sess-1", 1)
        assert listing.stock == 5

    def test_commit_of_unavailable_listing_is_rejected(self):
        listing = _make_product()
        listing.reserve("sess-1", 1, expires_at=_deadline())
        listing.is_available = False

        assert listing.commit_problem("sess-1", 1) == "Listing is no longer available"

    def test_commit_after_hold_expiry_is_rejected(self):
        listing = _make_product()
        listing.reserve("sess-1", 1, expires_at=_deadline(minutes=10))

        later = utcnow() + timedelta(minutes=11)
        assert listing.commit_problem("sess-1", 1, as_of=later) == "Stock hold has been released"


class TestRestockAndSettings:
    def test_restock_adds_to_stock(self):
        listing = _make_product(stock=1)
        listing.restock(4)
        assert listing.stock == 5

    def test_restock_rejects_non_positive_quantity(self):
        listing = _make_product()
        with pytest.raises(ValidationError):
            listing.restock(0)

    def test_service_listing_accepts_quotes_when_enabled(self):
        service = Listing.create(
            seller_id="seller-001",
            title="Tutoring",
            price=30.0,
            listing_type="service",
            quote_settings=QuoteSettings(enabled=True),
        )
        assert service.accepts_quotes is True
        assert service.stock == 0

    def test_products_cannot_enable_quotes(self):
        with pytest.raises(ValidationError):
            Listing.create(
                seller_id="seller-001",
                title="Desk lamp",
                price=15.0,
                quote_settings=QuoteSettings(enabled=True),
            )


class TestVariants:
    def _with_sizes(self):
        listing = _make_product(stock=0)
        small = listing.add_variant("Small", price=12.0, stock=2, attributes={"size": "S"})
        large = listing.add_variant("Large", price=14.0, stock=1, attributes={"size": "L"})
        listing._events.clear()
        return listing, small, large

    def test_each_variant_is_priced_and_stocked_on_its_own(self):
        listing, small, large = self._with_sizes()

        assert listing.price_for(small.id) == 12.0
        assert listing.available_quantity(variant_id=small.id) == 2
        assert listing.available_quantity(variant_id=large.id) == 1
        assert small.display_name == "Small (S)"

    def test_holds_are_counted_per_variant(self):
        listing, small, large = self._with_sizes()

        listing.reserve("sess-1", 2, expires_at=_deadline(), variant_id=small.id)

        assert listing.available_quantity(variant_id=small.id) == 0
        assert listing.available_quantity(variant_id=large.id) == 1
        with pytest.raises(InsufficientStock):
            listing.reserve("sess-2", 1, expires_at=_deadline(), variant_id=small.id)
        listing.reserve("sess-2", 1, expires_at=_deadline(), variant_id=large.id)

    def test_commit_decrements_only_the_variant(self):
        listing, small, large = self._with_sizes()
        listing.reserve("sess-1", 1, expires_at=_deadline(), variant_id=small.id)

        listing.commit_hold("sess-1", 1, variant_id=small.id)

        assert small.stock == 1
        assert large.stock == 1
        assert len(listing.holds) == 0
        assert listing._events[-1].variant_id == str(small.id)

    def test_variant_listing_requires_a_variant(self):
        listing, _, _ = self._with_sizes()

        with pytest.raises(ValidationError):
            listing.reserve("sess-1", 1, expires_at=_deadline())

    def test_plain_listing_rejects_a_variant(self):
        listing = _make_product()

        with pytest.raises(ValidationError):
            listing.resolve_variant("no-such-variant")

    def test_unavailable_variant_cannot_be_committed(self):
        listing, small, _ = self._with_sizes()
        listing.reserve("sess-1", 1, expires_at=_deadline(), variant_id=small.id)

        listing.update_variant(small.id, is_available=False)

        assert listing.commit_problem("sess-1", 1, variant_id=small.id) == "Small is no longer available"

    def test_restock_of_a_variant(self):
        listing, small, _ = self._with_sizes()

        listing.restock(3, variant_id=small.id)

        assert small.stock == 5
        assert listing.stock == 0

    def test_variant_names_are_unique(self):
        listing, _, _ = self._with_sizes()

        with pytest.raises(ValidationError):
            listing.add_variant("small", price=10.0, stock=1)

    def test_variant_count_is_capped(self):
        listing = _make_product(stock=0)
        for n in range(MAX_VARIANTS_PER_LISTING):
            listing.add_variant(f"Edition {n}", price=10.0, stock=1)

        with pytest.raises(ValidationError):
            listing.add_variant("One too many", price=10.0, stock=1)

    def test_services_have_no_variants(self):
        service = Listing.create(seller_id="seller-001", title="Tutoring", price=30.0, listing_type="service")

        with pytest.raises(ValidationError):
            service.add_variant("Hour", price=30.0)
