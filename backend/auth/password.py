import bcrypt

from backend.core import config


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)).decode()


def verify_password(password: str, hashed_password: str | None) -> bool:
    """Check ``password`` against a bcrypt hash; malformed or missing hashes never match."""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(password.encode(), hashed_password.encode())
    except (ValueError, TypeError):
        return False
