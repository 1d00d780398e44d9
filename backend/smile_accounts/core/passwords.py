"""Password hashing, verification and strength rules.

Pure functions, no persisted state:
- hash_password: bcrypt with a fresh random salt per call
- verify_password: bcrypt comparison that never raises
- validate_password_strength: format rules for new passwords
- DUMMY_HASH: timing-safe constant for callers that must burn a comparison
"""

import logging
import re

import bcrypt

from smile_accounts.core.errors import ValidationError

logger = logging.getLogger(__name__)

# bcrypt cost factor for password hashing
BCRYPT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes of the secret
_BCRYPT_MAX_BYTES = 72

# Pre-computed bcrypt hash for timing-safe comparison on account-not-found.
# Pre-generated to avoid ~300ms bcrypt computation on every app startup.
DUMMY_HASH = "$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"


def _encode(password: str) -> bytes:
    return password.encode()[:_BCRYPT_MAX_BYTES]


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a password with a per-call random salt.

    Args:
        password: Plain-text password.
        rounds: bcrypt cost factor. Tests pass a low value for speed.

    Returns:
        bcrypt hash as a string (salt embedded).
    """
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a stored bcrypt hash.

    Never raises: a missing or malformed hash is treated as a mismatch.

    Args:
        password: Plain-text password supplied by the caller.
        password_hash: Stored bcrypt hash.

    Returns:
        True only if the password matches the hash.
    """
    if not password_hash:
        bcrypt.checkpw(_encode(password), DUMMY_HASH.encode())
        return False
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode())
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def validate_password_strength(password: str) -> None:
    """Validate password meets strength requirements.

    8-128 chars, letter + number + special character.

    Args:
        password: Plain-text password to validate.

    Raises:
        ValidationError: If password doesn't meet requirements.
    """
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if len(password) > 128:
        raise ValidationError("Password must be at most 128 characters")
    if not re.search(r"[a-zA-Z]", password):
        raise ValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one number")
    if not re.search(r"[^a-zA-Z\d]", password):
        raise ValidationError("Password must contain at least one special character")
