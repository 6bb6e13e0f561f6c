# tests/unit/test_price_overrides.py

import pytest
from unittest.mock import MagicMock
from decimal import Decimal
from datetime import datetime, timedelta

from pharmapricing.models import Product, PriceOverride, PriceType
from pharmapricing.services.exceptions import ProductNotFoundError
from pharmapricing.services.price_overrides import PriceOverrideResolver, pick_override

AS_OF = datetime(2024, 6, 1, 12, 0)


def make_override(id, unit_price, *, customer_id=None, region_id=None, priority=0,
                  valid_from=None, valid_to=None, price_type=PriceType.COMMERCIAL, is_active=True):
    return PriceOverride(
        id=id,
        product_id=1,
        customer_id=customer_id,
        region_id=region_id,
        price_type=price_type,
        unit_price=Decimal(unit_price),
        valid_from=valid_from or AS_OF - timedelta(days=30),
        valid_to=valid_to,
        priority=priority,
        is_active=is_active,
    )


def pick(overrides, *, customer_id=7, region_id=None, price_type=PriceType.COMMERCIAL):
    return pick_override(overrides, customer_id=customer_id, price_type=price_type, region_id=region_id, as_of=AS_OF)


def test_customer_override_beats_regional_override_regardless_of_priority():
    """
    Specificity comes before priority: a customer-specific price wins over a
    regional one even when the regional price has a much higher priority.
    """
    # --- Arrange ---
    regional = make_override(1, "90.00", region_id=3, priority=100)
    customer = make_override(2, "95.00", customer_id=7, priority=0)

    # --- Act ---
    best = pick([regional, customer], region_id=3)

    # --- Assert ---
    assert best is customer


def test_regional_override_beats_global_override():
    global_price = make_override(1, "80.00", priority=50)
    regional = make_override(2, "90.00", region_id=3)

    assert pick([global_price, regional], region_id=3) is regional


def test_regional_override_is_ignored_when_region_is_unknown():
    regional = make_override(1, "90.00", region_id=3)

    assert pick([regional], region_id=None) is None


def test_regional_override_for_another_region_is_ignored():
    regional = make_override(1, "90.00", region_id=3)

    assert pick([regional], region_id=4) is None


def test_override_for_another_customer_is_ignored():
    other = make_override(1, "50.00", customer_id=99)

    assert pick([other]) is None


def test_same_specificity_higher_priority_wins_then_most_recent():
    # --- Arrange ---
    older_high = make_override(1, "70.00", priority=5, valid_from=AS_OF - timedelta(days=60))
    newer_high = make_override(2, "75.00", priority=5, valid_from=AS_OF - timedelta(days=2))
    newest_low = make_override(3, "60.00", priority=1, valid_from=AS_OF - timedelta(days=1))

    # --- Act / Assert ---
    assert pick([older_high, newer_high, newest_low]) is newer_high


def test_expired_inactive_and_other_price_type_overrides_are_ignored():
    expired = make_override(1, "10.00", valid_to=AS_OF - timedelta(days=1))
    inactive = make_override(2, "11.00", is_active=False)
    essential = make_override(3, "12.00", price_type=PriceType.ESSENTIAL)

    assert pick([expired, inactive, essential]) is None


def test_resolver_falls_back_to_catalog_price(mocker):
    # --- Arrange ---
    mock_db = MagicMock()
    product = Product(id=1, name="Amoxicillin 500mg", unit_price=Decimal("42.50"), category_id=1, manufacturer_id=1)
    mocker.patch("pharmapricing.crud.product.get", return_value=product)
    mocker.patch("pharmapricing.crud.price_override.get_candidates", return_value=[])

    # --- Act ---
    price = PriceOverrideResolver(db=mock_db).resolve_base_price(product_id=1, customer_id=7, as_of=AS_OF)

    # --- Assert ---
    assert price == Decimal("42.50")


def test_resolver_returns_best_override_price(mocker):
    mock_db = MagicMock()
    product = Product(id=1, name="Amoxicillin 500mg", unit_price=Decimal("42.50"), category_id=1, manufacturer_id=1)
    mocker.patch("pharmapricing.crud.product.get", return_value=product)
    candidates = mocker.patch(
        "pharmapricing.crud.price_override.get_candidates",
        return_value=[make_override(1, "40.00"), make_override(2, "38.00", customer_id=7)],
    )

    price = PriceOverrideResolver(db=mock_db).resolve_base_price(
        product_id=1, customer_id=7, price_type=PriceType.COMMERCIAL, as_of=AS_OF
    )

    assert price == Decimal("38.00")
    candidates.assert_called_once_with(mock_db, product_id=1, price_type=PriceType.COMMERCIAL, as_of=AS_OF)


def test_resolver_raises_for_unknown_product(mocker):
    mocker.patch("pharmapricing.crud.product.get", return_value=None)

    with pytest.raises(ProductNotFoundError):
        PriceOverrideResolver(db=MagicMock()).resolve_base_price(product_id=404, customer_id=7, as_of=AS_OF)
