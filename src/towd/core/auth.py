"""Dashboard login tokens and TOTP secrets."""

from dataclasses import dataclass
from datetime import datetime, timezone

import jwt
import pyotp

TOTP_ISSUER = "towd"
JWT_ALGORITHM = "HS256"


@dataclass
class User:
    id: str
    totp_secret: str = ""


@dataclass
class SessionToken:
    """A dashboard session opened by the web service."""

    secret: str
    user_id: str
    created_at: datetime
    ip_address: str = ""
    user_agent: str = ""


def encode_login_token(user_id: str, user_name: str, secret: str, now: datetime | None = None) -> str:
    """Signed token the dashboard exchanges for a session."""
    issued_at = now or datetime.now(timezone.utc)
    payload = {"id": user_id, "name": user_name, "iat": int(issued_at.timestamp())}
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def decode_login_token(token: str, secret: str) -> dict:
    """Raises jwt.InvalidTokenError when the signature does not match."""
    return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])


def login_url(hostname: str, token: str) -> str:
    return f"{hostname.rstrip('/')}/?token={token}"


def new_totp_secret() -> str:
    return pyotp.random_base32()


def totp_provisioning_uri(secret: str, account_name: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=account_name, issuer_name=TOTP_ISSUER)


def verify_totp(secret: str, code: str) -> bool:
    """Accept the current code and one step either side."""
    code = code.strip().replace(" ", "")
    if not code.isdigit():
        return False
    return pyotp.TOTP(secret).verify(code, valid_window=1)
