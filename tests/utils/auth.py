# tests/utils/auth.py

from faker import Faker

from pharmapricing.auth import create_access_token
from pharmapricing.models import UserRole

fake = Faker()

def auth_headers(*, role: UserRole, customer_id: int = None) -> dict[str, str]:
    """
    Bearer headers for a token as the identity service would issue it.
    """
    claims = {"sub": fake.email(), "role": role.value}
    if customer_id is not None:
        claims["customer_id"] = customer_id
    return {"Authorization": f"Bearer {create_access_token(claims)}"}

def customer_headers(customer_id: int) -> dict[str, str]:
    return auth_headers(role=UserRole.CUSTOMER, customer_id=customer_id)

def admin_headers() -> dict[str, str]:
    return auth_headers(role=UserRole.ADMIN)

def order_workflow_headers() -> dict[str, str]:
    return auth_headers(role=UserRole.ORDER_WORKFLOW)
