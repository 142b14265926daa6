"""
Tests for TokenService issuance and validation.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

import pasty
from pasty.token import (
    ClaimEncodingError,
    ClaimPredicateMismatchError,
    ExpiredOrNotYetValidError,
    InvalidPurposeError,
    KeyMaterialError,
    IssuedBy,
    Purpose,
    SignatureOrDecryptionError,
    Subject,
    TokenExpiredError,
    TokenNotYetValidError,
    TokenParseError,
    TokenService,
    TokenValidationError,
    ValidationResult,
    load_public_key_from_pem,
)


def _flip_char(token: str, offset: int = 20) -> str:
    """Replace one base64url character in the token body."""
    index = token.index('.', 3) + 1 + offset
    replacement = 'A' if token[index] != 'A' else 'B'
    return token[:index] + replacement + token[index + 1:]


_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"

TAMPER_SUFFIXES = ["=", "==", ".", "!", "~", " ", "\n"]


def _issue_with_spare_bits(service: TokenService) -> str:
    """Issue a footerless token whose last character carries unused bits."""
    for size in range(3):
        token = service.issue(timedelta(hours=1), {"pad": "x" * size})
        if len(token.split(".")[2]) % 4:
            return token
    raise AssertionError("every token body was a whole number of base64 quanta")


def _set_spare_bit(token: str) -> str:
    """Change the last character without changing the decoded bytes."""
    last = _ALPHABET.index(token[-1])
    return token[:-1] + _ALPHABET[last ^ 1]


class TestConstruction:
    """Test service construction and purpose handling."""

    @pytest.mark.parametrize("purpose, expected", [
        ("public", Purpose.PUBLIC),
        ("local", Purpose.LOCAL),
        ("PUBLIC", Purpose.PUBLIC),
        ("Local", Purpose.LOCAL),
        (Purpose.LOCAL, Purpose.LOCAL),
    ])
    def test_valid_purposes(self, purpose, expected):
        """Test that local and public construct in any case"""
        service = TokenService(purpose)
        assert service.purpose is expected
        assert len(service.symmetric_key) == 32
        assert service.key_pair is not None

    @pytest.mark.parametrize("purpose", ["secret", "", "v4.public", None, 42])
    def test_invalid_purpose(self, purpose):
        """Test that any other purpose is rejected"""
        with pytest.raises(InvalidPurposeError) as exc_info:
            TokenService(purpose)
        assert exc_info.value.error_code == "INVALID_PURPOSE"
        assert isinstance(exc_info.value, ValueError)

    def test_default_purpose_is_public(self):
        """Test that the default purpose is public"""
        assert TokenService().purpose is Purpose.PUBLIC
        assert pasty.new().purpose is Purpose.PUBLIC

    def test_new_passes_options(self):
        """Test the package-level convenience constructor"""
        service = pasty.new("local", issuer="example.com", leeway=timedelta(seconds=5))
        assert service.purpose is Purpose.LOCAL
        assert service.options.issuer == "example.com"
        assert service.options.leeway == timedelta(seconds=5)

    def test_fresh_keys_per_service(self):
        """Test that services do not share key material"""
        first = TokenService("public")
        second = TokenService("public")
        assert first.public_key_pem() != second.public_key_pem()
        assert first.symmetric_key != second.symmetric_key

    def test_empty_options_are_unset(self):
        """Test that empty strings disable the claim predicates"""
        service = TokenService("public", issuer="", audience="", identifier="")
        assert service.options.issuer is None
        assert service.options.audience is None
        assert service.options.identifier is None

    def test_negative_leeway_rejected(self):
        """Test that a negative leeway is rejected"""
        with pytest.raises(ValueError):
            TokenService("public", leeway=timedelta(seconds=-1))

    def test_bad_symmetric_key_rejected(self):
        """Test that a symmetric key of the wrong size is rejected"""
        with pytest.raises(pasty.PastyError):
            TokenService("local", symmetric_key=b"short")


class TestIssue:
    """Test token issuance."""

    def test_public_token_format(self, public_service):
        """Test that public services produce v4.public tokens"""
        token = public_service.issue(timedelta(hours=1))
        assert isinstance(token, str)
        assert token.startswith("v4.public.")

    def test_local_token_format(self, local_service):
        """Test that local services produce v4.local tokens"""
        token = local_service.issue(timedelta(hours=1))
        assert token.startswith("v4.local.")

    def test_standard_claims(self, clock):
        """Test that standard claims are set from the clock and options"""
        service = TokenService(
            "public", issuer="example.com", audience="api.example.com", identifier="token-1"
        )
        token = service.issue(timedelta(minutes=30), subject="alice")
        parsed = service.parse_public(token)

        assert parsed.issued_at == clock.now
        assert parsed.not_before == clock.now
        assert parsed.expiration == clock.now + timedelta(minutes=30)
        assert parsed.issuer == "example.com"
        assert parsed.audience == "api.example.com"
        assert parsed.identifier == "token-1"
        assert parsed.subject == "alice"

    def test_absolute_expiration(self, clock, public_service):
        """Test an absolute expiration datetime"""
        expires = clock.now + timedelta(hours=2)
        parsed = public_service.parse(public_service.issue(expires))
        assert parsed.expiration == expires

    def test_naive_expiration_is_utc(self, clock, public_service):
        """Test that naive datetimes are taken as UTC"""
        expires = datetime(2026, 10, 17, 13, 0, 0)
        parsed = public_service.parse(public_service.issue(expires))
        assert parsed.expiration == expires.replace(tzinfo=timezone.utc)

    def test_default_expiry(self, clock):
        """Test that a missing expiration uses the default expiry"""
        service = TokenService("local", default_expiry=timedelta(minutes=10))
        parsed = service.parse(service.issue())
        assert parsed.expiration == clock.now + timedelta(minutes=10)

    def test_invalid_expiration_type(self, public_service):
        """Test that unsupported expiration types are rejected"""
        with pytest.raises(TypeError):
            public_service.issue("tomorrow")

    def test_custom_claims(self, public_service):
        """Test that custom claims round trip"""
        claims = {"foo": "bar", "count": 3, "roles": ["a", "b"], "nested": {"x": None}}
        parsed = public_service.parse(public_service.issue(timedelta(hours=1), claims))
        assert parsed.custom_claims == claims
        assert parsed.get("foo") == "bar"

    def test_custom_claim_overrides_standard(self, public_service):
        """Test that custom claims are applied after the standard ones"""
        parsed = public_service.parse(
            public_service.issue(timedelta(hours=1), {"sub": "override"}, subject="alice")
        )
        assert parsed.subject == "override"

    def test_datetime_claim_encoded(self, local_service):
        """Test that datetime claim values are encoded as RFC 3339"""
        when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        parsed = local_service.parse(local_service.issue(timedelta(hours=1), {"when": when}))
        assert parsed.get("when") == "2026-01-02T03:04:05+00:00"

    @pytest.mark.parametrize("purpose", ["public", "local"])
    @pytest.mark.parametrize("value", [lambda: None, {1, 2}, object(), float("nan")])
    def test_unserializable_claim(self, purpose, value):
        """Test that unserializable claims fail issuance"""
        service = TokenService(purpose)
        with pytest.raises(ClaimEncodingError) as exc_info:
            service.issue(timedelta(hours=1), {"ok": 1, "foo": value})
        assert exc_info.value.claim == "foo"
        assert exc_info.value.error_code == "CLAIM_ENCODING_ERROR"

    def test_service_usable_after_error(self, public_service):
        """Test that the service keeps working after a failed issuance"""
        with pytest.raises(ClaimEncodingError):
            public_service.issue(timedelta(hours=1), {"foo": lambda: None})
        assert public_service.validate(public_service.issue(timedelta(hours=1))).valid

    def test_issuance_not_idempotent(self, clock, public_service):
        """Test that identical inputs at different times give different tokens"""
        expires = clock.now + timedelta(hours=1)
        first = public_service.issue(expires, {"foo": "bar"})
        clock.advance(timedelta(seconds=1))
        second = public_service.issue(expires, {"foo": "bar"})
        assert first != second

    def test_local_tokens_differ_at_same_instant(self, clock, local_service):
        """Test that local encryption uses a fresh nonce"""
        first = local_service.issue(timedelta(hours=1))
        second = local_service.issue(timedelta(hours=1))
        assert first != second


class TestFooter:
    """Test footer handling."""

    @pytest.mark.parametrize("purpose", ["public", "local"])
    def test_string_footer(self, purpose):
        """Test that a string footer is attached and returned"""
        service = TokenService(purpose)
        token = service.issue(timedelta(hours=1), footer="key-id-1")
        assert len(token.split(".")) == 4
        assert service.parse(token).footer == b"key-id-1"

    def test_json_footer(self, local_service):
        """Test a mapping footer"""
        token = local_service.issue(timedelta(hours=1), footer={"kid": "k1", "v": 2})
        assert local_service.parse(token).footer_json() == {"kid": "k1", "v": 2}

    def test_no_footer(self, public_service):
        """Test that tokens without a footer have three parts"""
        token = public_service.issue(timedelta(hours=1))
        assert len(token.split(".")) == 3
        assert public_service.parse(token).footer == b""

    def test_unserializable_footer(self, public_service):
        """Test that an unserializable mapping footer fails issuance"""
        with pytest.raises(ClaimEncodingError):
            public_service.issue(timedelta(hours=1), footer={"kid": object()})

    def test_tampered_footer_rejected(self, public_service):
        """Test that the footer is covered by the signature"""
        token = public_service.issue(timedelta(hours=1), footer="kid-1")
        head, _ = token.rsplit(".", 1)
        forged = head + "." + "a2lkLTI"  # base64url("kid-2")
        result = public_service.validate_public(forged)
        assert not result.valid
        assert isinstance(result.error, SignatureOrDecryptionError)

    @pytest.mark.parametrize("suffix", ["=", ".", "!"])
    def test_footer_suffix_rejected(self, public_service, suffix):
        """Test that characters appended after a footer are rejected"""
        token = public_service.issue(timedelta(hours=1), footer="kid-1")
        result = public_service.validate_public(token + suffix)
        assert isinstance(result.error, TokenParseError)


class TestValidatePublic:
    """Test public token validation."""

    def test_round_trip(self, public_service):
        """Test that a public token validates with the same service"""
        token = public_service.issue(timedelta(hours=1), {"foo": "bar"})
        result = public_service.validate_public(token)

        assert isinstance(result, ValidationResult)
        assert result.valid is True
        assert result.error is None
        assert bool(result) is True
        assert result.token.get("foo") == "bar"

    def test_expired(self, public_service):
        """Test that an expired token fails with a temporal error"""
        token = public_service.issue(timedelta(hours=-1))
        result = public_service.validate_public(token)

        assert result.valid is False
        assert isinstance(result.error, TokenExpiredError)
        assert isinstance(result.error, ExpiredOrNotYetValidError)
        assert result.error_code == "EXPIRED_TOKEN"

    def test_appended_character(self, public_service):
        """Test that appending a character invalidates the token"""
        token = public_service.issue(timedelta(hours=1))
        result = public_service.validate_public(token + "1")
        assert result.valid is False
        assert isinstance(result.error, TokenValidationError)

    @pytest.mark.parametrize("suffix", TAMPER_SUFFIXES)
    def test_appended_non_token_character(self, public_service, suffix):
        """Test that padding, separators and foreign characters are rejected"""
        token = public_service.issue(timedelta(hours=1))
        result = public_service.validate_public(token + suffix)
        assert result.valid is False
        assert isinstance(result.error, TokenParseError)

    def test_non_canonical_last_character(self, public_service):
        """Test that a last character differing only in unused bits is rejected"""
        token = _issue_with_spare_bits(public_service)
        assert public_service.validate_public(token).valid
        result = public_service.validate_public(_set_spare_bit(token))
        assert result.valid is False
        assert isinstance(result.error, TokenParseError)

    def test_altered_character(self, public_service):
        """Test that altering one character fails signature verification"""
        token = public_service.issue(timedelta(hours=1))
        result = public_service.validate_public(_flip_char(token))
        assert result.valid is False
        assert isinstance(result.error, SignatureOrDecryptionError)
        assert result.error_code == "INVALID_SIGNATURE"

    def test_other_service_key(self, public_service):
        """Test that a token signed by another key is rejected"""
        token = TokenService("public").issue(timedelta(hours=1))
        result = public_service.validate_public(token)
        assert isinstance(result.error, SignatureOrDecryptionError)

    def test_shared_public_key(self, public_service):
        """Test that a service holding the same key pair verifies the token"""
        verifier = TokenService("public", key_pair=public_service.key_pair)
        token = public_service.issue(timedelta(hours=1))
        assert verifier.validate_public(token).valid

    @pytest.mark.parametrize("token", ["", "garbage", "v4.public", "v2.public.abc", "v4.secret.abc"])
    def test_malformed(self, public_service, token):
        """Test that malformed tokens fail to parse"""
        result = public_service.validate_public(token)
        assert result.valid is False
        assert isinstance(result.error, TokenParseError)
        assert result.error_code == "INVALID_TOKEN"

    def test_bytes_token(self, public_service):
        """Test that tokens may be passed as bytes"""
        token = public_service.issue(timedelta(hours=1))
        assert public_service.validate_public(token.encode("ascii")).valid

    def test_parse_raises(self, public_service):
        """Test that parse_public raises instead of reporting"""
        token = public_service.issue(timedelta(hours=-1))
        with pytest.raises(TokenExpiredError):
            public_service.parse_public(token)

    def test_to_dict(self, public_service):
        """Test the validation result dictionary"""
        result = public_service.validate_public("garbage")
        data = result.to_dict()
        assert data["valid"] is False
        assert data["error_code"] == "INVALID_TOKEN"
        assert "validated_at" in data


class TestValidateLocal:
    """Test local token validation."""

    def test_round_trip(self, local_service):
        """Test that a local token validates with the same service"""
        token = local_service.issue(timedelta(hours=1), {"foo": "bar"})
        result = local_service.validate_local(token)
        assert result.valid is True
        assert result.error is None
        assert result.token.custom_claims == {"foo": "bar"}

    def test_expired(self, local_service):
        """Test that an expired local token fails with a temporal error"""
        result = local_service.validate_local(local_service.issue(timedelta(seconds=-5)))
        assert result.valid is False
        assert isinstance(result.error, TokenExpiredError)

    def test_appended_character(self, local_service):
        """Test that appending a character invalidates the token"""
        token = local_service.issue(timedelta(hours=1))
        result = local_service.validate_local(token + "1")
        assert result.valid is False
        assert isinstance(result.error, TokenValidationError)

    @pytest.mark.parametrize("suffix", TAMPER_SUFFIXES)
    def test_appended_non_token_character(self, local_service, suffix):
        """Test that padding, separators and foreign characters are rejected"""
        token = local_service.issue(timedelta(hours=1))
        result = local_service.validate_local(token + suffix)
        assert result.valid is False
        assert isinstance(result.error, TokenParseError)

    def test_non_canonical_last_character(self, local_service):
        """Test that a last character differing only in unused bits is rejected"""
        token = _issue_with_spare_bits(local_service)
        assert local_service.validate_local(token).valid
        result = local_service.validate_local(_set_spare_bit(token))
        assert result.valid is False
        assert isinstance(result.error, TokenParseError)

    def test_altered_character(self, local_service):
        """Test that altering one character fails decryption"""
        token = local_service.issue(timedelta(hours=1))
        result = local_service.validate_local(_flip_char(token, offset=40))
        assert result.valid is False
        assert isinstance(result.error, SignatureOrDecryptionError)

    def test_other_symmetric_key(self, local_service):
        """Test that a token encrypted with another key is rejected"""
        token = TokenService("local").issue(timedelta(hours=1))
        result = local_service.validate_local(token)
        assert isinstance(result.error, SignatureOrDecryptionError)

    def test_claims_are_confidential(self, local_service):
        """Test that local token claims are not readable in the token"""
        token = local_service.issue(timedelta(hours=1), {"secret": "hunter2"})
        assert "hunter2" not in token
        assert "c2VjcmV0" not in token


class TestPurposeMismatch:
    """Test that validators only accept their own purpose."""

    def test_public_token_local_validator(self, public_service):
        """Test a public token against the local validator"""
        token = public_service.issue(timedelta(hours=1))
        result = public_service.validate_local(token)
        assert result.valid is False
        assert isinstance(result.error, TokenParseError)

    def test_local_token_public_validator(self, local_service):
        """Test a local token against the public validator"""
        token = local_service.issue(timedelta(hours=1))
        result = local_service.validate_public(token)
        assert result.valid is False
        assert isinstance(result.error, TokenParseError)

    def test_validate_dispatches_on_purpose(self, public_service, local_service):
        """Test that validate picks the matching validator"""
        assert public_service.validate(public_service.issue(timedelta(hours=1))).valid
        assert local_service.validate(local_service.issue(timedelta(hours=1))).valid
        assert not local_service.validate(public_service.issue(timedelta(hours=1))).valid


class TestTemporal:
    """Test the validity window."""

    def test_not_yet_valid(self, clock):
        """Test that a token from the future is rejected"""
        service = TokenService("public")
        clock.advance(timedelta(hours=1))
        token = service.issue(timedelta(hours=1))
        clock.advance(timedelta(hours=-1))

        result = service.validate(token)
        assert result.valid is False
        assert isinstance(result.error, TokenNotYetValidError)
        assert result.error_code == "NOT_YET_VALID"

    def test_expires_at_boundary(self, clock, local_service):
        """Test that a token is invalid from its expiration instant"""
        token = local_service.issue(timedelta(minutes=5))
        clock.advance(timedelta(minutes=5) - timedelta(microseconds=1))
        assert local_service.validate(token).valid
        clock.advance(timedelta(microseconds=1))
        assert isinstance(local_service.validate(token).error, TokenExpiredError)

    def test_leeway(self, clock):
        """Test that leeway tolerates small clock differences"""
        service = TokenService("public", leeway=timedelta(seconds=30))
        token = service.issue(timedelta(seconds=10))
        clock.advance(timedelta(seconds=20))
        assert service.validate(token).valid
        clock.advance(timedelta(seconds=30))
        assert not service.validate(token).valid


class TestClaimPredicates:
    """Test issuer, audience and identifier enforcement."""

    @pytest.mark.parametrize("purpose", ["public", "local"])
    def test_matching_predicates(self, purpose):
        """Test that matching configured claims validate"""
        service = TokenService(
            purpose, issuer="example.com", audience="example.com", identifier="example.com"
        )
        result = service.validate(service.issue(timedelta(hours=1)))
        assert result.valid is True
        assert result.token.issuer == "example.com"

    @pytest.mark.parametrize("field, claim", [
        ("issuer", "iss"),
        ("audience", "aud"),
        ("identifier", "jti"),
    ])
    @pytest.mark.parametrize("purpose", ["public", "local"])
    def test_mismatched_predicate(self, purpose, field, claim):
        """Test that a differing configured claim fails validation"""
        values = {"issuer": "example.com", "audience": "example.com", "identifier": "example.com"}
        issuer = TokenService(purpose, **{**values, field: "wrong.com"})
        verifier = TokenService(
            purpose, **values, key_pair=issuer.key_pair, symmetric_key=issuer.symmetric_key
        )

        result = verifier.validate(issuer.issue(timedelta(hours=1)))
        assert result.valid is False
        assert isinstance(result.error, ClaimPredicateMismatchError)
        assert result.error.claim == claim
        assert result.error.expected == "example.com"
        assert result.error.actual == "wrong.com"
        assert result.error_code == "CLAIM_MISMATCH"

    def test_missing_predicate_claim(self):
        """Test that a required claim absent from the token fails"""
        issuer = TokenService("public")
        verifier = TokenService("public", audience="example.com", key_pair=issuer.key_pair)
        result = verifier.validate(issuer.issue(timedelta(hours=1)))
        assert isinstance(result.error, ClaimPredicateMismatchError)
        assert result.error.actual is None

    def test_custom_claim_cannot_spoof_audience(self):
        """Test that overriding aud with a custom claim is caught"""
        service = TokenService("local", audience="example.com")
        token = service.issue(timedelta(hours=1), {"aud": "wrong.com"})
        assert isinstance(service.validate(token).error, ClaimPredicateMismatchError)

    def test_extra_rules(self, public_service):
        """Test caller supplied rules"""
        token = public_service.issue(timedelta(hours=1), subject="alice")
        assert public_service.validate(token, rules=[Subject("alice")]).valid

        result = public_service.validate(token, rules=[IssuedBy("example.com")])
        assert isinstance(result.error, ClaimPredicateMismatchError)


class TestImplicitAssertion:
    """Test implicit assertions."""

    @pytest.mark.parametrize("purpose", ["public", "local"])
    def test_matching_assertion(self, purpose):
        """Test that the same implicit assertion validates"""
        service = TokenService(purpose)
        token = service.issue(timedelta(hours=1), implicit_assertion=b"tenant-1")
        assert service.validate(token, implicit_assertion=b"tenant-1").valid

    @pytest.mark.parametrize("purpose", ["public", "local"])
    def test_mismatched_assertion(self, purpose):
        """Test that a different implicit assertion fails"""
        service = TokenService(purpose)
        token = service.issue(timedelta(hours=1), implicit_assertion=b"tenant-1")
        result = service.validate(token, implicit_assertion=b"tenant-2")
        assert isinstance(result.error, SignatureOrDecryptionError)


class TestVerifyOnly:
    """Test services holding only a public key."""

    def _verifier(self, source, **options):
        public_key = load_public_key_from_pem(source.public_key_pem())
        return TokenService("public", public_key=public_key, **options)

    def test_validates_public_tokens(self, public_service):
        """Test that the exported public key verifies issued tokens"""
        verifier = self._verifier(public_service, issuer="example.com")
        token = TokenService(
            "public", issuer="example.com", key_pair=public_service.key_pair
        ).issue(timedelta(hours=1), {"foo": "bar"})

        result = verifier.validate_public(token)
        assert result.valid is True
        assert result.token.get("foo") == "bar"

    def test_cannot_issue(self, public_service):
        """Test that a verify-only service refuses to issue"""
        verifier = self._verifier(public_service)
        with pytest.raises(KeyMaterialError) as exc_info:
            verifier.issue(timedelta(hours=1))
        assert exc_info.value.error_code == "INVALID_KEY"

    def test_holds_no_key_pair(self, public_service):
        """Test that no secret key is exposed"""
        verifier = self._verifier(public_service)
        assert verifier.key_pair is None
        assert verifier.public_key_pem() == public_service.public_key_pem()

    def test_rejects_other_signer(self, public_service):
        """Test that tokens from another key fail verification"""
        verifier = self._verifier(public_service)
        token = TokenService("public").issue(timedelta(hours=1))
        assert isinstance(verifier.validate(token).error, SignatureOrDecryptionError)

    def test_key_pair_and_public_key_conflict(self, public_service):
        """Test that a key pair and a public key cannot both be given"""
        with pytest.raises(KeyMaterialError):
            TokenService(
                "public",
                key_pair=public_service.key_pair,
                public_key=public_service.key_pair.public_key,
            )


class TestConcurrency:
    """Test concurrent use of one service."""

    @pytest.mark.parametrize("purpose", ["public", "local"])
    def test_parallel_issue_and_validate(self, purpose):
        """Test issuing and validating from several threads"""
        service = TokenService(purpose)
        barrier = threading.Barrier(4)

        def work(i):
            barrier.wait()
            token = service.issue(timedelta(hours=1), {"n": i})
            return service.validate(token).token.get("n")

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(work, range(4)))

        assert results == [0, 1, 2, 3]
