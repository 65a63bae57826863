from __future__ import annotations

import base64
import hashlib
import hmac
import os
import secrets
from dataclasses import dataclass


HASH_SCHEME = "pbkdf2_sha256"
HASH_ITERATIONS = 210_000
SALT_BYTES = 16
KEY_BYTES = 32

ADMIN_ROLES = frozenset({"super_admin", "admin"})


def _b64(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _unb64(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def _derive(password: str, salt: bytes, iterations: int, length: int = KEY_BYTES) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=length)


def hash_password(password: str, *, iterations: int = HASH_ITERATIONS) -> str:
    salt = os.urandom(SALT_BYTES)
    return f"{HASH_SCHEME}${iterations}${_b64(salt)}${_b64(_derive(password, salt, iterations))}"


def _split_hash(stored: str) -> tuple[int, bytes, bytes] | None:
    parts = stored.split("$")
    if len(parts) != 4 or parts[0] != HASH_SCHEME:
        return None
    try:
        iterations, salt, key = int(parts[1]), _unb64(parts[2]), _unb64(parts[3])
    except (ValueError, UnicodeEncodeError):
        return None
    if iterations < 1 or not salt or not key:
        return None
    return iterations, salt, key


def verify_password(password: str, stored: str) -> bool:
    parsed = _split_hash(stored)
    if parsed is None:
        return False
    iterations, salt, expected = parsed
    return hmac.compare_digest(_derive(password, salt, iterations, len(expected)), expected)


def needs_rehash(stored: str) -> bool:
    """True when a stored hash uses fewer iterations than the current default."""
    parsed = _split_hash(stored)
    return parsed is None or parsed[0] < HASH_ITERATIONS


def new_session_token() -> str:
    return secrets.token_urlsafe(32)


def parse_cookie_header(cookie_header: str | None) -> dict[str, str]:
    if not cookie_header:
        return {}
    cookies: dict[str, str] = {}
    for part in cookie_header.split(";"):
        key, sep, value = part.partition("=")
        if sep and key.strip():
            cookies[key.strip()] = value.strip()
    return cookies


@dataclass(frozen=True)
class AuthenticatedUser:
    id: int
    username: str
    role: str
    organization_id: int
    display_name: str | None = None

    @classmethod
    def from_row(cls, row, *, id_column: str = "id") -> "AuthenticatedUser":
        keys = row.keys()
        display_name = row["display_name"] if "display_name" in keys else None
        return cls(
            id=int(row[id_column]),
            username=str(row["username"]),
            role=str(row["role"]) if "role" in keys else "",
            organization_id=int(row["organization_id"]),
            display_name=None if display_name is None else str(display_name),
        )

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES
