# tests/integration/test_pricing_router.py

from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from pharmapricing.models import CustomerTier, PriceRuleScope, DiscountType
from tests.utils.auth import customer_headers, admin_headers, order_workflow_headers
from tests.utils.catalog import create_random_product
from tests.utils.customer import create_random_customer, add_customer_address
from tests.utils.pricing import create_price_override, create_price_rule, create_promotion


def test_tiers_are_public(client: TestClient):
    response = client.get("/pricing/tiers")

    assert response.status_code == 200
    tiers = {item["tier"]: Decimal(item["discount_percentage"]) for item in response.json()}
    assert tiers == {"premium": Decimal("15"), "standard": Decimal("10"), "basic": Decimal("5")}


def test_calculate_price_for_current_customer(client: TestClient, db: Session):
    """
    Premium customer, 5% product rule: 100.00 -> 85.00 -> 80.75 per unit.
    """
    # --- Arrange ---
    customer = create_random_customer(db, tier=CustomerTier.PREMIUM)
    product = create_random_product(db, unit_price=100.00)
    rule = create_price_rule(db, discount_value=5, scope=PriceRuleScope.PRODUCT, product_id=product.id)

    # --- Act ---
    response = client.post(
        "/pricing/calculate",
        headers=customer_headers(customer.id),
        json={"product_id": product.id, "quantity": 3},
    )

    # --- Assert ---
    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["base_price"]) == Decimal("100.00")
    assert Decimal(data["final_unit_price"]) == Decimal("80.75")
    assert Decimal(data["line_total"]) == Decimal("242.25")
    assert data["applied_rule_id"] == rule.id


def test_calculate_uses_regional_price_from_default_address(client: TestClient, db: Session):
    # --- Arrange ---
    customer = create_random_customer(db, tier=CustomerTier.BASIC)
    add_customer_address(db, customer_id=customer.id, region_id=4, is_default=True)
    product = create_random_product(db, unit_price=100.00)
    create_price_override(db, product_id=product.id, unit_price=60.00, region_id=4)
    create_price_override(db, product_id=product.id, unit_price=90.00, region_id=5, priority=10)

    # --- Act ---
    response = client.post(
        "/pricing/calculate",
        headers=customer_headers(customer.id),
        json={"product_id": product.id},
    )

    # --- Assert ---
    assert response.status_code == 200
    assert Decimal(response.json()["base_price"]) == Decimal("60.00")


def test_customer_specific_price_wins_over_regional_price(client: TestClient, db: Session):
    customer = create_random_customer(db, tier=CustomerTier.BASIC)
    product = create_random_product(db, unit_price=100.00)
    create_price_override(db, product_id=product.id, unit_price=60.00, region_id=4, priority=99)
    create_price_override(db, product_id=product.id, unit_price=70.00, customer_id=customer.id)

    response = client.post(
        "/pricing/calculate",
        headers=customer_headers(customer.id),
        json={"product_id": product.id, "region_id": 4},
    )

    assert response.status_code == 200
    assert Decimal(response.json()["base_price"]) == Decimal("70.00")


def test_calculate_with_invalid_promotion_still_returns_price(client: TestClient, db: Session):
    customer = create_random_customer(db)
    product = create_random_product(db, unit_price=50.00)

    response = client.post(
        "/pricing/calculate",
        headers=customer_headers(customer.id),
        json={"product_id": product.id, "promotion_code": "DOES-NOT-EXIST"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["promotion_error"] == "code_not_found"
    assert Decimal(data["final_unit_price"]) == Decimal("47.50")


def test_calculate_unknown_product_returns_404(client: TestClient, db: Session):
    customer = create_random_customer(db)

    response = client.post(
        "/pricing/calculate", headers=customer_headers(customer.id), json={"product_id": 999}
    )

    assert response.status_code == 404


def test_calculate_rejects_non_positive_quantity(client: TestClient, db: Session):
    customer = create_random_customer(db)
    product = create_random_product(db)

    response = client.post(
        "/pricing/calculate",
        headers=customer_headers(customer.id),
        json={"product_id": product.id, "quantity": 0},
    )

    assert response.status_code == 422


def test_calculate_requires_a_customer_token(client: TestClient, db: Session):
    product = create_random_product(db)

    anonymous = client.post("/pricing/calculate", json={"product_id": product.id})
    as_admin = client.post("/pricing/calculate", headers=admin_headers(), json={"product_id": product.id})

    assert anonymous.status_code == 401
    assert as_admin.status_code == 403


def test_calculate_batch_validates_promotion_against_cart_total(client: TestClient, db: Session):
    # --- Arrange ---
    customer = create_random_customer(db, tier=CustomerTier.BASIC)
    first = create_random_product(db, unit_price=100.00)
    second = create_random_product(db, unit_price=100.00)
    create_promotion(db, code="CART150", value=10, minimum_order_amount=150)

    # --- Act ---
    response = client.post(
        "/pricing/calculate/batch",
        headers=customer_headers(customer.id),
        json={
            "items": [{"product_id": first.id}, {"product_id": second.id}],
            "promotion_code": "CART150",
        },
    )

    # --- Assert ---
    assert response.status_code == 200
    lines = response.json()
    assert len(lines) == 2
    assert all(line["applied_promotion_code"] == "CART150" for line in lines)
    assert all(Decimal(line["final_unit_price"]) == Decimal("85.50") for line in lines)


def test_calculate_batch_rejects_empty_cart(client: TestClient, db: Session):
    customer = create_random_customer(db)

    response = client.post("/pricing/calculate/batch", headers=customer_headers(customer.id), json={"items": []})

    assert response.status_code == 422


def test_validate_promotion(client: TestClient, db: Session):
    customer = create_random_customer(db)
    create_promotion(db, code="SUMMER10", value=10, maximum_discount_amount=20)

    response = client.post(
        "/pricing/promotions/validate",
        headers=customer_headers(customer.id),
        json={"code": "SUMMER10", "order_total": "242.25"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["is_valid"] is True
    assert Decimal(data["estimated_discount"]) == Decimal("20.00")
    assert data["promotion"]["code"] == "SUMMER10"


def test_validate_reports_minimum_order(client: TestClient, db: Session):
    customer = create_random_customer(db)
    create_promotion(db, code="BIGORDER", value=10, minimum_order_amount=500)

    response = client.post(
        "/pricing/promotions/validate",
        headers=customer_headers(customer.id),
        json={"code": "BIGORDER", "order_total": "100"},
    )

    data = response.json()
    assert data["is_valid"] is False
    assert data["error"] == "minimum_order_not_met"
    assert "500.00" in data["message"]


def test_available_promotions_include_headquarters_promotions(client: TestClient, db: Session):
    # --- Arrange ---
    headquarters = create_random_customer(db)
    branch = create_random_customer(db, parent_customer_id=headquarters.id)
    stranger = create_random_customer(db)
    create_promotion(db, code="EVERYONE")
    create_promotion(db, code="NETWORK", customer_id=headquarters.id)
    create_promotion(db, code="HQONLY", customer_id=headquarters.id, apply_to_child_customers=False)
    create_promotion(db, code="PRIVATE", customer_id=stranger.id)

    # --- Act ---
    response = client.get("/pricing/promotions/available", headers=customer_headers(branch.id))

    # --- Assert ---
    assert response.status_code == 200
    assert sorted(promotion["code"] for promotion in response.json()) == ["EVERYONE", "NETWORK"]


def test_admin_can_list_promotions_for_any_customer(client: TestClient, db: Session):
    customer = create_random_customer(db)
    create_promotion(db, code="EVERYONE")

    as_admin = client.get(f"/pricing/promotions/available/{customer.id}", headers=admin_headers())
    as_customer = client.get(f"/pricing/promotions/available/{customer.id}", headers=customer_headers(customer.id))
    unknown = client.get("/pricing/promotions/available/999", headers=admin_headers())

    assert as_admin.status_code == 200
    assert [promotion["code"] for promotion in as_admin.json()] == ["EVERYONE"]
    assert as_customer.status_code == 403
    assert unknown.status_code == 404


def test_applicable_rules_for_customer(client: TestClient, db: Session):
    # --- Arrange ---
    customer = create_random_customer(db, tier=CustomerTier.STANDARD)
    generic = create_price_rule(db, discount_value=2, priority=1)
    for_tier = create_price_rule(db, discount_value=4, priority=5, customer_tier=CustomerTier.STANDARD)
    create_price_rule(db, discount_value=8, customer_tier=CustomerTier.PREMIUM)
    create_price_rule(
        db, discount_value=10, discount_type=DiscountType.FIXED_AMOUNT, is_active=False
    )

    # --- Act ---
    response = client.get(f"/pricing/rules/applicable/{customer.id}", headers=admin_headers())

    # --- Assert ---
    assert response.status_code == 200
    assert [rule["id"] for rule in response.json()] == [for_tier.id, generic.id]


def test_applicable_rules_requires_admin(client: TestClient, db: Session):
    customer = create_random_customer(db)

    response = client.get(f"/pricing/rules/applicable/{customer.id}", headers=order_workflow_headers())

    assert response.status_code == 403
