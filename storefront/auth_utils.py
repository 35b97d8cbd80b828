# storefront/auth_utils.py
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10
UID_ALPHABET = string.ascii_lowercase + string.digits


def hash_password(password: str) -> str:
    """Хэширует пароль с использованием bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Проверяет пароль, сравнивая с хэшем."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Хэш в базе повреждён или в другом формате
        return False


def generate_uid() -> str:
    return "UID-" + "".join(secrets.choice(UID_ALPHABET) for _ in range(7))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def create_session_token(sid: str, secret: str, ttl: timedelta) -> str:
    """Sign a session id for the session cookie; the token expires with the session."""
    expire = datetime.now(timezone.utc) + ttl
    return jwt.encode({"sid": sid, "exp": expire}, secret, algorithm=ALGORITHM)


def decode_session_token(token: str, secret: str) -> Optional[str]:
    """Return the session id from a cookie value, or None if it is forged or expired."""
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) and sid else None
