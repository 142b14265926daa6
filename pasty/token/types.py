"""
Core token types for pasty.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from . import claims as registered
from .errors import InvalidPurposeError, TokenParseError


class Purpose(Enum):
    """PASETO purpose enumeration."""
    LOCAL = "local"    # Symmetric encryption
    PUBLIC = "public"  # Asymmetric signatures

    @classmethod
    def parse(cls, value: Union[str, "Purpose"]) -> "Purpose":
        """Normalize a purpose string case-insensitively."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for purpose in cls:
                if purpose.value == normalized:
                    return purpose
        raise InvalidPurposeError(value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TokenOptions:
    """Standard-claim defaults and validation settings for a service."""
    issuer: Optional[str] = None
    audience: Optional[str] = None
    identifier: Optional[str] = None
    leeway: timedelta = timedelta(0)
    default_expiry: timedelta = timedelta(hours=1)

    def __post_init__(self):
        if self.leeway < timedelta(0):
            raise ValueError("leeway must not be negative")
        if self.default_expiry <= timedelta(0):
            raise ValueError("default_expiry must be positive")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            'leeway': int(self.leeway.total_seconds()),
            'default_expiry': int(self.default_expiry.total_seconds()),
        }

        if self.issuer:
            result['issuer'] = self.issuer
        if self.audience:
            result['audience'] = self.audience
        if self.identifier:
            result['identifier'] = self.identifier

        return result


@dataclass
class ParsedToken:
    """A verified or decrypted token."""
    purpose: Purpose
    claims: Dict[str, Any] = field(default_factory=dict)
    footer: bytes = b''

    @property
    def issuer(self) -> Optional[str]:
        return self.claims.get(registered.ISSUER)

    @property
    def subject(self) -> Optional[str]:
        return self.claims.get(registered.SUBJECT)

    @property
    def audience(self) -> Optional[Union[str, List[str]]]:
        return self.claims.get(registered.AUDIENCE)

    @property
    def identifier(self) -> Optional[str]:
        return self.claims.get(registered.TOKEN_ID)

    @property
    def expiration(self) -> Optional[datetime]:
        return self._time(registered.EXPIRATION)

    @property
    def not_before(self) -> Optional[datetime]:
        return self._time(registered.NOT_BEFORE)

    @property
    def issued_at(self) -> Optional[datetime]:
        return self._time(registered.ISSUED_AT)

    @property
    def custom_claims(self) -> Dict[str, Any]:
        """Claims other than the registered PASETO claims."""
        return {
            name: value for name, value in self.claims.items()
            if name not in registered.REGISTERED_CLAIMS
        }

    def get(self, name: str, default: Any = None) -> Any:
        """Return a claim value."""
        return self.claims.get(name, default)

    def footer_json(self) -> Dict[str, Any]:
        """Decode a JSON object footer."""
        try:
            data = json.loads(self.footer)
        except (UnicodeDecodeError, ValueError) as e:
            raise TokenParseError(f"token footer is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise TokenParseError("token footer must be a JSON object")
        return data

    def _time(self, name: str) -> Optional[datetime]:
        value = self.claims.get(name)
        if value is None:
            return None
        return registered.parse_time(value, name)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            'purpose': self.purpose.value,
            'claims': self.claims,
        }

        if self.footer:
            result['footer'] = self.footer.decode('utf-8', errors='replace')

        return result


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ValidationResult:
    """Token validation result."""
    valid: bool
    token: Optional[ParsedToken] = None
    error: Optional[Exception] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    validated_at: datetime = field(default_factory=_utcnow)

    def __bool__(self) -> bool:
        return self.valid

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            'valid': self.valid,
            'validated_at': self.validated_at.isoformat()
        }

        if self.token is not None:
            result['token'] = self.token.to_dict()
        if self.error_message is not None:
            result['error_message'] = self.error_message
        if self.error_code is not None:
            result['error_code'] = self.error_code

        return result
