"""Salted PBKDF2-HMAC-SHA256 password hashing.

Stored values look like ``pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>`` so the
iteration count can be raised later without invalidating existing hashes.
"""

import hashlib
import hmac
import os

from workshop_api.core import config

ALGORITHM = "pbkdf2_sha256"
SALT_BYTES = 16


def hash_password(password: str) -> str:
    salt = os.urandom(SALT_BYTES)
    iterations = config.PASSWORD_HASH_ITERATIONS
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        algorithm, iterations, salt_hex, hash_hex = hashed_password.split("$")
    except ValueError:
        return False
    if algorithm != ALGORITHM:
        return False

    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        bytes.fromhex(salt_hex),
        int(iterations),
    )
    return hmac.compare_digest(digest.hex(), hash_hex)
