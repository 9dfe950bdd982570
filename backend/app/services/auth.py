"""
API token helpers.

Tokens are random strings handed out once; only their SHA-256
hash is stored on the user row.
"""

import hashlib
import secrets
from typing import Tuple

from sqlalchemy.orm import Session

from app.models import User

TOKEN_PREFIX = "sk-"


def generate_token() -> str:
    """Create a new random API token."""
    return TOKEN_PREFIX + secrets.token_hex(32)


def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of *raw_token*."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def create_user(db: Session, email: str) -> Tuple[User, str]:
    """
    Create a user and issue their API token.

    Returns:
        tuple[User, str]: The stored user and the raw token
            (not retrievable later).
    """
    raw_token = generate_token()
    user = User(email=email, token_hash=hash_token(raw_token))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user, raw_token


def get_user_by_token(db: Session, raw_token: str):
    """Return the user owning *raw_token*, or None."""
    return db.query(User).filter(
        User.token_hash == hash_token(raw_token)
    ).first()
