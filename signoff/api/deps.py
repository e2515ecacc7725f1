from typing import Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from signoff.core.approval import ApprovalService
from signoff.core.config import get_settings
from signoff.core.security import decode_token
from signoff.db.models import User
from signoff.services.webhook import SignatureWebhookHandler
from signoff.signature import SignatureProvider

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_db() -> Generator:
    """Database session dependency."""
    from signoff.db.session import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_signature_provider() -> Generator:
    """Signature provider dependency, closed after the request."""
    provider = SignatureProvider(get_settings())
    try:
        yield provider
    finally:
        provider.close()


def get_current_user(
    db: Session = Depends(get_db),
    token: str = Depends(oauth2_scheme),
) -> User:
    """Get current authenticated user from a JWT bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    user_id = decode_token(token)
    if user_id is None:
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise credentials_exception
    return user


def get_approval_service(
    db: Session = Depends(get_db),
    provider: SignatureProvider = Depends(get_signature_provider),
) -> ApprovalService:
    return ApprovalService(db, provider, get_settings())


def get_webhook_handler(
    db: Session = Depends(get_db),
    provider: SignatureProvider = Depends(get_signature_provider),
) -> SignatureWebhookHandler:
    return SignatureWebhookHandler(db, provider)
