from __future__ import annotations

import base64
import hashlib
import hmac
import secrets

from backoffice.core.config import get_settings
from backoffice.core.errors import ValidationError

ALGORITHM = "pbkdf2_sha256"


def hash_password(password: str, *, iterations: int | None = None) -> str:
    if not password:
        raise ValidationError("password is required", details={"field": "password"})
    iters = iterations or get_settings().password_hash_iterations
    salt = secrets.token_bytes(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iters)
    return f"{ALGORITHM}${iters}${base64.b64encode(salt).decode()}${base64.b64encode(dk).decode()}"


def verify_password(password: str, stored: str) -> bool:
    parts = stored.split("$", 3)
    if len(parts) != 4 or parts[0] != ALGORITHM:
        return False
    _, iters_s, salt_b64, dk_b64 = parts
    try:
        iters = int(iters_s)
        salt = base64.b64decode(salt_b64.encode(), validate=True)
        dk = base64.b64decode(dk_b64.encode(), validate=True)
    except ValueError:
        return False
    test = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iters)
    return hmac.compare_digest(test, dk)


def is_password_hash(value: str | None) -> bool:
    return bool(value) and value.startswith(f"{ALGORITHM}$") and value.count("$") == 3
