"""API key authentication.

API keys are hashed with SHA256 (not bcrypt): they are high-entropy random
strings, so a fast deterministic hash allows a direct indexed lookup on
every request.
"""
import hashlib
import secrets
from fastapi import HTTPException, Security, Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session
from typing import Optional

from chatsync.database import get_db
from chatsync.models.user import User

API_KEY_HEADER = "x-api-key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def hash_api_key(api_key: str) -> str:
    """
    Hash an API key for storage using SHA256.

    Args:
        api_key: Plain text API key

    Returns:
        SHA256 hex digest of the API key
    """
    return hashlib.sha256(api_key.encode()).hexdigest()


def generate_api_key() -> str:
    return f"cs_{secrets.token_urlsafe(32)}"


async def get_current_user(
    api_key: Optional[str] = Security(api_key_header),
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to validate the API key and load the owning user.

    Usage:
        @router.get("/conversations")
        def list_conversations(user: User = Depends(get_current_user)):
            ...

    Raises:
        HTTPException: 401 if API key is invalid or missing
    """
    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    user = db.query(User).filter(
        User.api_key_hash == hash_api_key(api_key)
    ).first()

    if not user:
        raise HTTPException(
            status_code=401,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"}
        )

    return user


def create_user_with_api_key(db: Session, api_key: Optional[str] = None) -> User:
    """
    Create a user that authenticates with ``api_key``.

    Args:
        db: Database session
        api_key: Plain text API key (hashed with SHA256); generated when omitted

    Returns:
        Created User instance. The plain key is available as ``user.api_key``
        until the object is discarded.
    """
    api_key = api_key or generate_api_key()

    user = User(api_key_hash=hash_api_key(api_key))
    db.add(user)
    db.commit()
    db.refresh(user)

    user.api_key = api_key
    return user
