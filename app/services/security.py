"""Secret generation, hashing and comparison for sessions and passwords."""
import base64
import binascii
import hashlib
import hmac
import secrets

import bcrypt

_ALPHABET = "abcdefghijkmnpqrstuvwxyz23456789"


def generate_secure_random_string() -> str:
    """24 random bytes mapped onto a 32-letter alphabet (5 bits each, 120 bits total)."""
    return "".join(_ALPHABET[b >> 3] for b in secrets.token_bytes(24))


def hash_secret(secret: str) -> str:
    return base64.b64encode(hashlib.sha256(secret.encode("utf-8")).digest()).decode("ascii")


def constant_time_equal(a_base64: str, b_base64: str) -> bool:
    try:
        a = base64.b64decode(a_base64, validate=True)
        b = base64.b64decode(b_base64, validate=True)
    except (binascii.Error, ValueError):
        return False
    if len(a) != len(b):
        return False
    return hmac.compare_digest(a, b)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False
