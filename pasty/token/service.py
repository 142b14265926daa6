"""
PASETO v4 token service.

A TokenService is bound to one purpose for its lifetime:

* ``public`` tokens are signed with the Ed25519 secret key and verified
  with the matching public key;
* ``local`` tokens are encrypted and decrypted with the symmetric key.

Both kinds of key material are generated at construction unless supplied,
but only the one selected by the purpose is ever used. A service given only
a public key verifies public tokens and cannot issue them.
"""

import base64
import binascii
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Optional, Union

import pyseto
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from ..util.config import ENV_PREFIX
from . import claims as registered
from .config import TokenServiceConfig
from .errors import (
    KeyMaterialError,
    SignatureOrDecryptionError,
    TokenIssueError,
    TokenParseError,
    TokenValidationError,
)
from .keys import (
    KeyPair,
    generate_key_pair,
    generate_symmetric_key,
    load_key_pair_from_pem,
    load_public_key_from_pem,
    load_symmetric_key_from_base64,
    paseto_local_key,
    paseto_public_key,
    public_key_to_pem,
)
from .rules import Rule, check_all, default_rules
from .types import ParsedToken, Purpose, TokenOptions, ValidationResult

logger = logging.getLogger(__name__)

TOKEN_VERSION = "v4"

_SEGMENT = re.compile(r"[A-Za-z0-9_-]+")

Footer = Union[str, bytes, Mapping[str, Any], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and validates PASETO v4 tokens for a single purpose."""

    def __init__(self,
                 purpose: Union[str, Purpose] = Purpose.PUBLIC,
                 issuer: Optional[str] = None,
                 audience: Optional[str] = None,
                 identifier: Optional[str] = None,
                 *,
                 leeway: timedelta = timedelta(0),
                 default_expiry: timedelta = timedelta(hours=1),
                 key_pair: Optional[KeyPair] = None,
                 symmetric_key: Optional[bytes] = None,
                 public_key: Optional[Ed25519PublicKey] = None):
        # Rejected before any key material is touched.
        self._purpose = Purpose.parse(purpose)
        self._options = TokenOptions(
            issuer=issuer or None,
            audience=audience or None,
            identifier=identifier or None,
            leeway=leeway,
            default_expiry=default_expiry,
        )

        if public_key is not None:
            if key_pair is not None:
                raise KeyMaterialError("Pass either key_pair or public_key, not both")
            # Verify-only: public tokens can be validated but not issued.
            self._key_pair = None
            self._verify_key = public_key
            self._secret_key = None
        else:
            self._key_pair = key_pair or generate_key_pair()
            self._verify_key = self._key_pair.public_key
            self._secret_key = self._key_pair.paseto_secret_key()
        self._symmetric_key = symmetric_key if symmetric_key is not None else generate_symmetric_key()

        self._public_key = paseto_public_key(self._verify_key)
        self._local_key = paseto_local_key(self._symmetric_key)

        logger.info(f"Token service initialized (purpose={self._purpose.value}, "
                    f"verify_only={self._secret_key is None})")

    @classmethod
    def new(cls, purpose: Union[str, Purpose] = Purpose.PUBLIC, **options) -> "TokenService":
        """Create a service with fresh keys; ``purpose`` defaults to public."""
        return cls(purpose, **options)

    @classmethod
    def from_config(cls, config: TokenServiceConfig) -> "TokenService":
        """Create a service from configuration, loading keys it provides."""
        config.validate()

        key_pair = None
        if config.secret_key_pem:
            key_pair = load_key_pair_from_pem(config.secret_key_pem)

        public_key = None
        if config.public_key_pem and key_pair is None:
            public_key = load_public_key_from_pem(config.public_key_pem)

        symmetric_key = None
        if config.symmetric_key:
            symmetric_key = load_symmetric_key_from_base64(config.symmetric_key)

        return cls(
            config.purpose,
            issuer=config.issuer,
            audience=config.audience,
            identifier=config.identifier,
            leeway=config.leeway,
            default_expiry=config.default_expiry,
            key_pair=key_pair,
            symmetric_key=symmetric_key,
            public_key=public_key,
        )

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "TokenService":
        """Create a service from ``PASTY_*`` environment variables."""
        return cls.from_config(TokenServiceConfig.from_env(prefix))

    @classmethod
    def from_file(cls, file_path: str) -> "TokenService":
        """Create a service from a JSON or YAML configuration file."""
        return cls.from_config(TokenServiceConfig.from_file(file_path))

    @property
    def purpose(self) -> Purpose:
        return self._purpose

    @property
    def options(self) -> TokenOptions:
        return self._options

    @property
    def key_pair(self) -> Optional[KeyPair]:
        return self._key_pair

    @property
    def symmetric_key(self) -> bytes:
        return self._symmetric_key

    def public_key_pem(self) -> bytes:
        """The PEM public key other parties need to verify public tokens."""
        return public_key_to_pem(self._verify_key)

    def issue(self,
              expiration: registered.Expiration = None,
              claims: Optional[Mapping[str, Any]] = None,
              footer: Footer = None,
              *,
              subject: Optional[str] = None,
              implicit_assertion: bytes = b'') -> str:
        """
        Issue a token.

        Args:
            expiration: Absolute expiry, a timedelta from now, or None for
                the service's default expiry
            claims: Custom claims, set after the standard ones
            footer: Optional unencrypted footer (str, bytes or JSON mapping)
            subject: Optional ``sub`` claim
            implicit_assertion: Bytes bound to the token but not sent with it

        Returns:
            The serialized token

        Raises:
            ClaimEncodingError: a claim or the footer cannot be serialized
            KeyMaterialError: a public service holds no secret key
            TokenIssueError: the PASETO library rejected the token
        """
        if self._purpose is Purpose.PUBLIC and self._secret_key is None:
            raise KeyMaterialError("Service holds only a public key and cannot issue tokens")

        now = _now()
        expires_at = registered.resolve_expiration(expiration, now, self._options.default_expiry)

        payload = registered.build_claims(
            now,
            expires_at,
            issuer=self._options.issuer,
            audience=self._options.audience,
            identifier=self._options.identifier,
            subject=subject,
            custom=claims,
        )
        for name in claims or {}:
            logger.debug(f"Setting claim {name}")

        body = registered.encode_claims(payload)
        footer_bytes = registered.encode_footer(footer)

        if self._purpose is Purpose.PUBLIC:
            key = self._secret_key
        else:
            key = self._local_key

        try:
            token = pyseto.encode(key, body, footer=footer_bytes, implicit_assertion=implicit_assertion)
        except (pyseto.PysetoError, ValueError) as e:
            logger.error(f"Token issuance failed: {e}")
            raise TokenIssueError(f"Token issuance failed: {e}") from e

        return token.decode('ascii')

    def parse_public(self, token: Union[str, bytes], *,
                     rules: Optional[Iterable[Rule]] = None,
                     implicit_assertion: bytes = b'') -> ParsedToken:
        """Verify a public token with the public key and apply the rules."""
        return self._parse(token, Purpose.PUBLIC, self._public_key, rules, implicit_assertion)

    def parse_local(self, token: Union[str, bytes], *,
                    rules: Optional[Iterable[Rule]] = None,
                    implicit_assertion: bytes = b'') -> ParsedToken:
        """Decrypt a local token with the symmetric key and apply the rules."""
        return self._parse(token, Purpose.LOCAL, self._local_key, rules, implicit_assertion)

    def parse(self, token: Union[str, bytes], **kwargs) -> ParsedToken:
        """Parse with the validator matching the service's purpose."""
        if self._purpose is Purpose.PUBLIC:
            return self.parse_public(token, **kwargs)
        return self.parse_local(token, **kwargs)

    def validate_public(self, token: Union[str, bytes], **kwargs) -> ValidationResult:
        """Validate a public token; failures are reported, not raised."""
        return self._validate(self.parse_public, token, kwargs)

    def validate_local(self, token: Union[str, bytes], **kwargs) -> ValidationResult:
        """Validate a local token; failures are reported, not raised."""
        return self._validate(self.parse_local, token, kwargs)

    def validate(self, token: Union[str, bytes], **kwargs) -> ValidationResult:
        """Validate with the validator matching the service's purpose."""
        return self._validate(self.parse, token, kwargs)

    def _validate(self, parse, token, kwargs) -> ValidationResult:
        try:
            parsed = parse(token, **kwargs)
        except TokenValidationError as e:
            logger.warning(f"Token validation failed: {e.message}")
            return ValidationResult(
                valid=False,
                error=e,
                error_message=e.message,
                error_code=e.error_code,
            )
        return ValidationResult(valid=True, token=parsed)

    def _parse(self, token, purpose: Purpose, key, rules, implicit_assertion) -> ParsedToken:
        token = _check_header(token, purpose)

        try:
            decoded = pyseto.decode(key, token, implicit_assertion=implicit_assertion)
        except (pyseto.VerifyError, pyseto.DecryptError) as e:
            raise SignatureOrDecryptionError(f"Token {_failed_check(purpose)} failed") from e
        except (pyseto.PysetoError, ValueError) as e:
            raise TokenParseError(f"Token could not be parsed: {e}") from e

        parsed = ParsedToken(
            purpose=purpose,
            claims=registered.decode_claims(decoded.payload),
            footer=decoded.footer or b'',
        )

        active_rules = default_rules(self._options)
        if rules:
            active_rules.extend(rules)
        check_all(parsed, active_rules, _now())

        return parsed

    def __repr__(self) -> str:
        return f"TokenService(purpose={self._purpose.value!r}, options={self._options!r})"


def _failed_check(purpose: Purpose) -> str:
    return "signature verification" if purpose is Purpose.PUBLIC else "decryption"


def _check_header(token: Union[str, bytes], purpose: Purpose) -> str:
    if isinstance(token, bytes):
        try:
            token = token.decode('ascii')
        except UnicodeDecodeError as e:
            raise TokenParseError("Token must be ASCII") from e
    if not isinstance(token, str):
        raise TokenParseError(f"Token must be str or bytes, not {type(token).__name__}")

    parts = token.split('.')
    if len(parts) not in (3, 4):
        raise TokenParseError("Token is malformed")
    version, token_purpose = parts[0], parts[1]
    if version != TOKEN_VERSION:
        raise TokenParseError(f"Unsupported token version: {version!r}")
    if token_purpose != purpose.value:
        raise TokenParseError(
            f"Token purpose is {token_purpose!r}, expected {purpose.value!r}",
            details={'expected': purpose.value, 'actual': token_purpose},
        )
    for part in parts[2:]:
        _check_segment(part)
    return token


def _check_segment(segment: str) -> None:
    # Unpadded, canonical base64url only; an empty footer is not a footer.
    if not _SEGMENT.fullmatch(segment):
        raise TokenParseError("Token segment is not unpadded base64url")
    try:
        raw = base64.urlsafe_b64decode(segment + '=' * (-len(segment) % 4))
    except (binascii.Error, ValueError) as e:
        raise TokenParseError("Token segment is not valid base64url") from e
    if base64.urlsafe_b64encode(raw).rstrip(b'=').decode('ascii') != segment:
        raise TokenParseError("Token segment is not canonical base64url")


def new(purpose: Union[str, Purpose] = Purpose.PUBLIC, **options) -> TokenService:
    """Package-level convenience constructor."""
    return TokenService.new(purpose, **options)
