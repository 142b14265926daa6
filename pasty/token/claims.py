"""
Claim assembly and encoding for PASETO payloads.

Registered claims follow the PASETO spec: ``iss``, ``sub``, ``aud``, ``exp``,
``nbf``, ``iat`` and ``jti``. Time claims are RFC 3339 strings.
"""

import json
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Union

from .errors import ClaimEncodingError, TokenParseError

ISSUER = 'iss'
SUBJECT = 'sub'
AUDIENCE = 'aud'
EXPIRATION = 'exp'
NOT_BEFORE = 'nbf'
ISSUED_AT = 'iat'
TOKEN_ID = 'jti'

REGISTERED_CLAIMS = frozenset(
    {ISSUER, SUBJECT, AUDIENCE, EXPIRATION, NOT_BEFORE, ISSUED_AT, TOKEN_ID}
)

Expiration = Union[datetime, timedelta, None]


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_time(value: datetime) -> str:
    """Format a datetime as an RFC 3339 string."""
    return as_utc(value).isoformat()


def parse_time(value: Any, claim: str = 'time') -> datetime:
    """Parse an RFC 3339 claim value into an aware UTC datetime."""
    if not isinstance(value, str):
        raise TokenParseError(f"{claim} claim must be an RFC 3339 string")
    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise TokenParseError(f"{claim} claim is not a valid RFC 3339 time: {value!r}") from e
    return as_utc(parsed)


def resolve_expiration(expiration: Expiration, now: datetime,
                       default: timedelta) -> datetime:
    """
    Turn an expiration argument into an absolute time.

    Accepts an absolute datetime, a timedelta relative to ``now``, or None
    for ``now + default``.
    """
    if expiration is None:
        return now + default
    if isinstance(expiration, timedelta):
        return now + expiration
    if isinstance(expiration, datetime):
        return as_utc(expiration)
    raise TypeError(
        f"expiration must be a datetime, timedelta or None, not {type(expiration).__name__}"
    )


def build_claims(now: datetime, expiration: datetime,
                 issuer: Optional[str] = None,
                 audience: Optional[str] = None,
                 identifier: Optional[str] = None,
                 subject: Optional[str] = None,
                 custom: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the claim set for a new token.

    Standard claims are set first; custom claims are applied on top, so a
    custom claim with a registered name replaces the standard value.
    """
    claims: Dict[str, Any] = {
        ISSUED_AT: format_time(now),
        NOT_BEFORE: format_time(now),
        EXPIRATION: format_time(expiration),
    }

    if issuer:
        claims[ISSUER] = issuer
    if audience:
        claims[AUDIENCE] = audience
    if identifier:
        claims[TOKEN_ID] = identifier
    if subject:
        claims[SUBJECT] = subject

    for name, value in (custom or {}).items():
        if not isinstance(name, str):
            raise ClaimEncodingError(f"claim names must be strings, got {name!r}", claim=repr(name))
        claims[name] = value

    return claims


def _json_default(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return format_time(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _dumps(data: Any) -> bytes:
    return json.dumps(
        data, default=_json_default, allow_nan=False,
        separators=(',', ':'), ensure_ascii=False,
    ).encode('utf-8')


def _find_bad_claim(claims: Mapping[str, Any]) -> Optional[str]:
    for name, value in claims.items():
        try:
            _dumps(value)
        except (TypeError, ValueError):
            return name
    return None


def encode_claims(claims: Mapping[str, Any]) -> bytes:
    """Serialize a claim set to compact JSON bytes."""
    try:
        return _dumps(dict(claims))
    except (TypeError, ValueError) as e:
        name = _find_bad_claim(claims)
        raise ClaimEncodingError(
            f"claim {name!r} cannot be encoded: {e}" if name else f"claims cannot be encoded: {e}",
            claim=name,
        ) from e


def decode_claims(payload: bytes) -> Dict[str, Any]:
    """Deserialize a decrypted or verified payload into a claim dict."""
    try:
        claims = json.loads(payload)
    except (UnicodeDecodeError, ValueError) as e:
        raise TokenParseError(f"token payload is not valid JSON: {e}") from e
    if not isinstance(claims, dict):
        raise TokenParseError("token payload must be a JSON object")
    return claims


def encode_footer(footer: Union[str, bytes, Mapping[str, Any], None]) -> bytes:
    """Encode a footer; dict footers become compact JSON."""
    if footer is None:
        return b''
    if isinstance(footer, bytes):
        return footer
    if isinstance(footer, str):
        return footer.encode('utf-8')
    if isinstance(footer, Mapping):
        try:
            return _dumps(dict(footer))
        except (TypeError, ValueError) as e:
            raise ClaimEncodingError(f"footer cannot be encoded: {e}", claim='footer') from e
    raise ClaimEncodingError(
        f"footer must be str, bytes or a mapping, not {type(footer).__name__}",
        claim='footer',
    )
