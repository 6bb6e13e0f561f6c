from datetime import datetime, timedelta, timezone
from typing import List

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from . import schemas
from .models import UserRole
from .core.config import settings

# Tokens come from the identity service; this service only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=settings.TOKEN_URL)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Signs a token. Used by service accounts (e.g. the order workflow) and tests."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

# --- Dependencies ---

def get_current_principal(token: str = Depends(oauth2_scheme)) -> schemas.TokenData:
    """
    Validates the bearer token and returns who is calling.
    Claims: `sub`, `role` and, for customer accounts, `customer_id`.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise credentials_exception
        return schemas.TokenData(
            subject=subject,
            role=payload.get("role", UserRole.CUSTOMER.value),
            customer_id=payload.get("customer_id"),
        )
    except (JWTError, ValidationError):
        raise credentials_exception


def require_role(required_roles: List[UserRole]):
    """
    Dependency factory: the caller must hold one of `required_roles`.
    """
    def role_checker(principal: schemas.TokenData = Depends(get_current_principal)):
        if principal.role not in required_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User does not have the required privileges. Allowed roles: {[role.value for role in required_roles]}"
            )
        return principal
    return role_checker


require_admin_user = require_role([UserRole.ADMIN, UserRole.MANAGER])
require_order_workflow = require_role([UserRole.ORDER_WORKFLOW, UserRole.ADMIN])
_require_customer_role = require_role([UserRole.CUSTOMER])


def require_customer_user(principal: schemas.TokenData = Depends(_require_customer_role)) -> schemas.TokenData:
    """Customer caller whose token is linked to a customer account."""
    if principal.customer_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No customer profile found for the current user",
        )
    return principal
