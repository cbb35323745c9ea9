"""Authentication routes."""

import logging
import re
import secrets

from fastapi import APIRouter, HTTPException, Request, status

from cozinha.core.auth import CurrentAccount
from cozinha.core.rate_limit import limiter
from cozinha.core.security import create_access_token, get_password_hash, verify_password
from cozinha.db.session import DbSession
from cozinha.models.account import Account
from cozinha.schemas.auth import AccountResponse, LoginRequest, RegisterRequest, Token

logger = logging.getLogger("auth")

router = APIRouter()


def _slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug[:80] or "cozinha"


def _unique_slug(db, base: str) -> str:
    slug = base
    while db.query(Account.id).filter(Account.slug == slug).first() is not None:
        slug = f"{base}-{secrets.token_hex(2)}"
    return slug


def _token_for(account: Account) -> Token:
    token = create_access_token(
        data={"sub": str(account.id), "email": account.email, "plan": account.plan_id}
    )
    return Token(access_token=token)


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(request: Request, body: RegisterRequest, db: DbSession):
    """Create a business account and return a token for it."""
    email = body.email.lower()
    if db.query(Account).filter(Account.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    account = Account(
        email=email,
        password_hash=get_password_hash(body.password),
        business_name=body.business_name,
        phone=body.phone,
        slug=_unique_slug(db, _slugify(body.business_name or email.split("@")[0])),
    )
    db.add(account)
    db.commit()
    db.refresh(account)

    logger.info(f"Account registered: {account.email} (ID: {account.id})")
    return _token_for(account)


@router.post("/login", response_model=Token)
@limiter.limit("10/minute")
def login(request: Request, body: LoginRequest, db: DbSession):
    """Authenticate and return a JWT token."""
    client_ip = request.client.host if request.client else "unknown"
    account = db.query(Account).filter(Account.email == body.email.lower()).first()

    if not account or not verify_password(body.password, account.password_hash):
        logger.warning(f"Failed login attempt for email: {body.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not account.is_active:
        logger.warning(f"Login attempt for inactive account: {body.email} (ID: {account.id})")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is inactive",
        )

    logger.info(f"Successful login: {account.email} (ID: {account.id}) from IP: {client_ip}")
    return _token_for(account)


@router.get("/me", response_model=AccountResponse)
@limiter.limit("60/minute")
def get_me(request: Request, db: DbSession, current_account: CurrentAccount):
    """Get the authenticated account."""
    return db.get(Account, current_account.account_id)
