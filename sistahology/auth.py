"""Authentication routes, principal resolution and helpers."""

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from fastapi_mail import FastMail, MessageSchema
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import crud, schemas, tokens
from .core import get_mail_config, get_settings
from .database import get_db
from .guard import acting_as, bind_principal
from .policy import ANONYMOUS, SERVICE, Principal

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)
router = APIRouter(prefix="/auth", tags=["auth"])


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a plain password with its hashed value."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate a password hash using the configured context."""
    return pwd_context.hash(password)


def create_access_token(
    data: dict, expires_delta: timedelta | None = None, scope: str = "access"
) -> str:
    """Create a signed JWT access token."""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "scope": scope})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_refresh_token(data: dict) -> str:
    """Create a JWT refresh token with a longer lifetime."""
    settings = get_settings()
    return create_access_token(
        data,
        expires_delta=timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
        scope="refresh",
    )


def create_password_reset_token(account_id: uuid.UUID) -> str:
    """Generate a short-lived password reset token for the account."""
    return create_access_token(
        {"sub": str(account_id)}, expires_delta=timedelta(hours=1), scope="reset"
    )


def issue_token_pair(account_id: uuid.UUID) -> schemas.Token:
    subject = {"sub": str(account_id)}
    return schemas.Token(
        access_token=create_access_token(subject),
        refresh_token=create_refresh_token(subject),
    )


def decode_token(token: str | None, scope: str) -> uuid.UUID | None:
    """
    Return the account id carried by ``token``.

    Args:
        token (str | None): Encoded JWT.
        scope (str): Scope the token must have.

    Returns:
        uuid.UUID | None: Subject id, or ``None`` if the token is absent,
        malformed, expired or of another scope.
    """
    if not token:
        return None
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = schemas.TokenData(**payload)
    except (JWTError, ValueError):
        return None
    if token_data.sub is None or token_data.scope != scope:
        return None
    try:
        return uuid.UUID(token_data.sub)
    except ValueError:
        return None


def send_password_reset_email(
    background_tasks: BackgroundTasks, email: str, token: str
):
    """Schedule sending password reset instructions."""
    background_tasks.add_task(send_password_reset_email_task, email, token)


async def send_password_reset_email_task(email: str, token: str):
    """
    Send password reset email asynchronously.

    Args:
        email (str): Recipient email.
        token (str): Password reset token.
    """
    settings = get_settings()
    reset_link = f"{settings.BASE_URL}/reset-password?token={token}"
    message = MessageSchema(
        subject="Reset your Sistahology password",
        recipients=[email],
        body=f"""
        <html>
          <body>
            <h2>Password reset</h2>
            <p>To choose a new password, follow the link:</p>
            <a href="{reset_link}">Reset password</a>
          </body>
        </html>
        """,
        subtype="html",
    )
    fm = FastMail(get_mail_config())
    try:
        await fm.send_message(message)
    except Exception:
        logger.exception("Could not send password reset email")


def get_principal(
    token: str | None = Depends(oauth2_scheme),
    x_service_key: str | None = Header(None),
    db: Session = Depends(get_db),
) -> Principal:
    """
    Resolve the principal a request acts as.

    A matching ``X-Service-Key`` header selects the service actor. Otherwise
    a valid bearer token selects its account, with the admin flag read
    from the profile on every request. Anything else is anonymous.
    """
    service_key = get_settings().SERVICE_ROLE_KEY
    if x_service_key and service_key:
        if secrets.compare_digest(x_service_key.encode(), service_key.encode()):
            return SERVICE
        logger.warning("Rejected request with an invalid service key")

    user_id = decode_token(token, "access")
    if user_id is None:
        return ANONYMOUS
    with acting_as(db, Principal(id=user_id)):
        profile = crud.get_profile(db, user_id)
    if profile is None:
        return ANONYMOUS
    return Principal.from_profile(profile)


def get_session(
    principal: Principal = Depends(get_principal), db: Session = Depends(get_db)
) -> Session:
    """Database session bound to the request's principal."""
    return bind_principal(db, principal)


def require_user(principal: Principal = Depends(get_principal)) -> Principal:
    """Dependency that requires an authenticated account."""
    if principal.id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


@router.post(
    "/signup", response_model=schemas.SignupResult, status_code=status.HTTP_201_CREATED
)
def signup(payload: schemas.SignupRequest, db: Session = Depends(get_session)):
    """
    Register a new account.

    When an admin registration token is supplied it is consumed for the
    new account. A rejected token does not fail the registration; the
    ``is_admin`` field of the response tells whether it worked.
    """
    hashed_password = get_password_hash(payload.password)
    profile = crud.create_account(db, payload.email, hashed_password, payload.full_name)
    logger.info("Registered account %s", profile.id)
    if payload.admin_token:
        tokens.validate_and_consume(db, payload.admin_token, profile.email, profile.id)
        db.refresh(profile)
    return profile


@router.post("/login", response_model=schemas.Token)
def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_session)
):
    """Authenticate an account and return an access/refresh token pair."""

    account = crud.get_account_by_email(db, form_data.username)
    if not account or not verify_password(form_data.password, account.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials"
        )
    return issue_token_pair(account.id)


@router.post("/refresh", response_model=schemas.Token)
def refresh_tokens(payload: schemas.TokenRefresh, db: Session = Depends(get_session)):
    """Issue a new pair of tokens based on a refresh token."""

    account_id = decode_token(payload.refresh_token, "refresh")
    if account_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )
    if crud.get_account(db, account_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
        )
    return issue_token_pair(account_id)


@router.post("/elevate", response_model=schemas.ElevateResult)
def elevate(
    payload: schemas.ElevateRequest,
    principal: Principal = Depends(require_user),
    db: Session = Depends(get_session),
):
    """
    Redeem an admin registration token for the current account.

    Returns ``is_admin: false`` for any token that cannot be used,
    without saying why.
    """
    profile = crud.get_profile(db, principal.id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    if profile.is_admin:
        return schemas.ElevateResult(is_admin=True)
    granted = tokens.validate_and_consume(db, payload.token, profile.email, profile.id)
    return schemas.ElevateResult(is_admin=granted)


@router.post("/password/reset", status_code=status.HTTP_200_OK)
def request_password_reset(
    request: schemas.PasswordResetRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_session),
):
    """Send password reset instructions; unknown emails get the same answer."""

    account = crud.get_account_by_email(db, request.email)
    if account:
        token = create_password_reset_token(account.id)
        send_password_reset_email(background_tasks, account.email, token)
    return {"message": "If the account exists, a reset email has been sent"}


@router.post("/password/reset/confirm", status_code=status.HTTP_200_OK)
def confirm_password_reset(
    payload: schemas.PasswordResetConfirm,
    db: Session = Depends(get_session),
):
    """Confirm password reset using a provided token and new password."""

    account_id = decode_token(payload.token, "reset")
    if account_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid token"
        )
    account = crud.get_account(db, account_id)
    if not account:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
        )
    crud.update_account_password(db, account, get_password_hash(payload.new_password))
    return {"message": "Password updated"}
