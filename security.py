import hashlib
import hmac
import os
from typing import Optional

PBKDF2_ITERATIONS = 120_000


def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    """Salted PBKDF2-SHA256 digest stored as ``salt_hex:digest_hex``"""
    if salt is None:
        salt = os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return salt.hex() + ":" + digest.hex()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a submitted secret against a stored digest"""
    try:
        salt_hex, digest_hex = hashed_password.split(":")
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
    except (AttributeError, ValueError):
        return False
    digest = hashlib.pbkdf2_hmac("sha256", plain_password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(digest, expected)
