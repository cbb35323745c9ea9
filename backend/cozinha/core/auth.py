"""Authentication dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from cozinha.core.security import decode_access_token
from cozinha.db.session import DbSession


class TokenData:
    """Decoded token data for the authenticated business account.

    Attributes:
        account_id: The account's database ID.
        email: The account's login email.
        plan_id: Subscription plan at the time of the request.
    """

    def __init__(self, account_id: int, email: str, plan_id: str = "free"):
        self.account_id = account_id
        self.id = account_id
        self.email = email
        self.plan_id = plan_id


def _extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            return token
    return request.cookies.get("access_token")


async def get_current_account(request: Request, db: DbSession) -> TokenData:
    """Get the current authenticated account from the JWT token.

    Checks in order:
    1. Authorization: Bearer <token> header
    2. access_token cookie (HttpOnly)
    """
    token = _extract_token(request)
    payload = decode_access_token(token) if token else None

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    account_id = payload.get("sub")
    email = payload.get("email")
    if account_id is None or email is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    from cozinha.models.account import Account

    try:
        account = db.get(Account, int(account_id))
    except ValueError:
        account = None
    if account is None or not account.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is disabled",
        )

    return TokenData(account_id=account.id, email=account.email, plan_id=account.plan_id)


CurrentAccount = Annotated[TokenData, Depends(get_current_account)]
