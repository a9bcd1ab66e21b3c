"""
Clerk JWT authentication for FastAPI.

Verifies JWT tokens issued by Clerk and resolves the caller to a household.
"""

import jwt
from jwt import PyJWKClient
from dataclasses import dataclass
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from uuid import UUID
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from mealplanner.config import get_settings
from mealplanner.db import get_db
from mealplanner.models.household import Household, User

settings = get_settings()

# HTTP Bearer scheme for extracting tokens
security = HTTPBearer(auto_error=False)


class ClerkUser(BaseModel):
    """Authenticated user from Clerk JWT."""
    id: str  # Clerk user ID (e.g., "user_2abc123...")
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


@dataclass
class HouseholdContext:
    """The caller's user row and the household every import is scoped to."""
    user_id: UUID
    household_id: UUID


# Cache the JWKS client to avoid repeated fetches
_jwks_client: Optional[PyJWKClient] = None


def get_jwks_client() -> PyJWKClient:
    """Get or create JWKS client for Clerk."""
    global _jwks_client
    if _jwks_client is None:
        # Clerk's JWKS endpoint
        jwks_url = f"https://{settings.clerk_frontend_api}/.well-known/jwks.json"
        _jwks_client = PyJWKClient(jwks_url)
    return _jwks_client


def verify_clerk_token(token: str) -> ClerkUser:
    """
    Verify a Clerk JWT token and return user info.

    Raises HTTPException if token is invalid.
    """
    try:
        jwks_client = get_jwks_client()
        signing_key = jwks_client.get_signing_key_from_jwt(token)

        # 60 second leeway for clock skew between client and server
        payload = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            options={"verify_aud": False},  # Clerk doesn't always set audience
            leeway=60
        )

        return ClerkUser(
            id=payload.get("sub"),
            email=payload.get("email"),
            first_name=payload.get("first_name"),
            last_name=payload.get("last_name"),
        )

    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.PyJWKClientError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Could not validate credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> ClerkUser:
    """
    FastAPI dependency to get the current authenticated user.

    Usage:
        @app.get("/protected")
        async def protected_route(user: ClerkUser = Depends(get_current_user)):
            return {"user_id": user.id}
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return verify_clerk_token(credentials.credentials)


async def get_current_household(
    user: ClerkUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> HouseholdContext:
    """
    FastAPI dependency resolving the authenticated user to their household.

    Users are matched by email (case-insensitive). A user without a row or
    without a household gets a 404.
    """
    if not user.email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has no email claim",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(
        select(User.id, User.household_id)
        .join(Household, User.household_id == Household.id)
        .where(func.lower(User.email) == user.email.strip().lower())
    )
    row = result.first()
    if row is None:
        raise HTTPException(status_code=404, detail="Household not found")

    return HouseholdContext(user_id=row.id, household_id=row.household_id)
