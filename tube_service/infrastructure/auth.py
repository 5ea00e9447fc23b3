"""
Password hashing and JWT signing
"""
import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from ..config import settings
from ..domain.errors import Expired, InvalidToken

# bcrypt ignores (or rejects) anything past 72 bytes
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: Optional[str]) -> bool:
    """Compare a plaintext password against a stored bcrypt hash"""
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def validate_password_strength(password: str) -> Tuple[bool, Optional[str]]:
    """Validate password length constraints"""
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        return False, f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long"
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        return False, f"Password must be at most {BCRYPT_MAX_BYTES} bytes long"
    return True, None


def generate_token_hash(token: str) -> str:
    """SHA-256 fingerprint of a token, the only form in which it is stored"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def fingerprints_match(token: str, stored_hash: Optional[str]) -> bool:
    if not stored_hash:
        return False
    return hmac.compare_digest(generate_token_hash(token), stored_hash)


class TokenSigner:
    """Signs and verifies time-boxed JWT claims with one secret"""

    def __init__(self, secret: str, ttl: timedelta, algorithm: str = "HS256"):
        self.secret = secret
        self.ttl = ttl
        self.algorithm = algorithm

    def sign(self, claims: Dict[str, Any]) -> str:
        now = datetime.now(timezone.utc)
        payload = dict(claims)
        payload.update({
            "iat": now,
            "exp": now + self.ttl,
            # two tokens signed within the same second must still differ
            "jti": uuid4().hex,
        })
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a token

        Raises:
            Expired: signature is valid but the token is past its expiry
            InvalidToken: malformed token or bad signature
        """
        if not token:
            raise InvalidToken("Token is missing")
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise Expired()
        except JWTError as e:
            raise InvalidToken(f"Invalid token: {e}")


def create_access_signer() -> TokenSigner:
    return TokenSigner(
        settings.ACCESS_TOKEN_SECRET,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        settings.JWT_ALGORITHM,
    )


def create_refresh_signer() -> TokenSigner:
    return TokenSigner(
        settings.REFRESH_TOKEN_SECRET,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        settings.JWT_ALGORITHM,
    )
