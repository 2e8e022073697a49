"""Unit tests for the pricing calculator (no database)."""

from datetime import date
from decimal import Decimal

import pytest

from staybook.models.listing import Listing
from staybook.services.errors import InvalidRange
from staybook.services.pricing import compute_price, count_nights, to_minor_units


def _listing(price: str = "100.00", base_guests: int = 2, fee: str = "20.00", max_guests: int = 4) -> Listing:
    return Listing(
        title="Priced Villa",
        price=Decimal(price),
        base_guests=base_guests,
        extra_guest_fee=Decimal(fee),
        max_guests=max_guests,
    )


class TestCountNights:
    def test_three_nights(self):
        assert count_nights(date(2030, 5, 1), date(2030, 5, 4)) == 3

    def test_single_night(self):
        assert count_nights(date(2030, 5, 1), date(2030, 5, 2)) == 1

    def test_across_month_boundary(self):
        assert count_nights(date(2030, 1, 30), date(2030, 2, 2)) == 3

    def test_empty_range_rejected(self):
        with pytest.raises(InvalidRange):
            count_nights(date(2030, 5, 1), date(2030, 5, 1))

    def test_inverted_range_rejected(self):
        with pytest.raises(InvalidRange):
            count_nights(date(2030, 5, 4), date(2030, 5, 1))


class TestComputePrice:
    def test_extra_guest_scenario(self):
        """3 nights at 100 with 4 guests (2 included, 20 each extra): 300 + 120."""
        quote = compute_price(_listing(), date(2030, 5, 1), date(2030, 5, 4), 4)
        assert quote.nights == 3
        assert quote.base_price == Decimal("300.00")
        assert quote.extra_guests == 2
        assert quote.extra_guest_total == Decimal("120.00")
        assert quote.total == Decimal("420.00")

    def test_guests_within_base_pay_no_surcharge(self):
        quote = compute_price(_listing(), date(2030, 5, 1), date(2030, 5, 4), 2)
        assert quote.extra_guests == 0
        assert quote.extra_guest_total == Decimal("0.00")
        assert quote.total == Decimal("300.00")

    def test_single_guest_below_base(self):
        quote = compute_price(_listing(), date(2030, 5, 1), date(2030, 5, 2), 1)
        assert quote.extra_guests == 0
        assert quote.total == Decimal("100.00")

    def test_zero_fee(self):
        quote = compute_price(_listing(fee="0"), date(2030, 5, 1), date(2030, 5, 3), 4)
        assert quote.extra_guests == 2
        assert quote.total == Decimal("200.00")

    def test_fractional_rate_rounds_to_cents(self):
        quote = compute_price(_listing(price="99.995", fee="0"), date(2030, 5, 1), date(2030, 5, 2), 1)
        assert quote.total == Decimal("100.00")

    def test_deterministic(self):
        listing = _listing(price="129.00", fee="25.00")
        quotes = {compute_price(listing, date(2030, 7, 1), date(2030, 7, 8), 3) for _ in range(5)}
        assert len(quotes) == 1

    def test_invalid_range_propagates(self):
        with pytest.raises(InvalidRange):
            compute_price(_listing(), date(2030, 5, 4), date(2030, 5, 4), 2)


class TestToMinorUnits:
    def test_whole_amount(self):
        assert to_minor_units(Decimal("420.00")) == 42000

    def test_cents(self):
        assert to_minor_units(Decimal("129.99")) == 12999
