"""
Validation rules applied to a token after its signature or encryption
has been verified.

Each rule raises a TokenValidationError subclass when the token does not
satisfy it.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from . import claims as registered
from .errors import (
    ClaimPredicateMismatchError,
    TokenExpiredError,
    TokenNotYetValidError,
)
from .types import ParsedToken, TokenOptions


class Rule(ABC):
    """Abstract validation rule."""

    @abstractmethod
    def check(self, token: ParsedToken, now: datetime) -> None:
        """Raise if ``token`` violates the rule at time ``now``."""
        pass


class ClaimEquals(Rule):
    """
    Require a string claim to equal an expected value.

    Comparison is exact and case-sensitive, issuer included; a
    case-folding issuer match is not offered.
    """

    def __init__(self, claim: str, expected: str):
        self.claim = claim
        self.expected = expected

    def check(self, token: ParsedToken, now: datetime) -> None:
        actual = token.get(self.claim)
        if actual is None:
            raise ClaimPredicateMismatchError(self.claim, self.expected)
        if actual != self.expected:
            raise ClaimPredicateMismatchError(self.claim, self.expected, actual)


class IssuedBy(ClaimEquals):
    """Require the ``iss`` claim."""

    def __init__(self, issuer: str):
        super().__init__(registered.ISSUER, issuer)


class IdentifiedBy(ClaimEquals):
    """Require the ``jti`` claim."""

    def __init__(self, identifier: str):
        super().__init__(registered.TOKEN_ID, identifier)


class Subject(ClaimEquals):
    """Require the ``sub`` claim."""

    def __init__(self, subject: str):
        super().__init__(registered.SUBJECT, subject)


class ForAudience(Rule):
    """
    Require the ``aud`` claim.

    Tokens from other issuers may carry a list of audiences; the rule
    passes when the expected audience is one of them.
    """

    def __init__(self, audience: str):
        self.audience = audience

    def check(self, token: ParsedToken, now: datetime) -> None:
        actual = token.audience
        if actual is None:
            raise ClaimPredicateMismatchError(registered.AUDIENCE, self.audience)
        if isinstance(actual, list):
            if self.audience not in actual:
                raise ClaimPredicateMismatchError(registered.AUDIENCE, self.audience, actual)
        elif actual != self.audience:
            raise ClaimPredicateMismatchError(registered.AUDIENCE, self.audience, actual)


class NotExpired(Rule):
    """Reject tokens whose ``exp`` has passed. A missing ``exp`` is rejected."""

    def __init__(self, leeway: timedelta = timedelta(0)):
        self.leeway = leeway

    def check(self, token: ParsedToken, now: datetime) -> None:
        expiration = token.expiration
        if expiration is None:
            raise TokenExpiredError("Token has no expiration")
        if now >= expiration + self.leeway:
            raise TokenExpiredError(
                f"Token expired at {registered.format_time(expiration)}",
                details={'exp': registered.format_time(expiration)},
            )


class NotBefore(Rule):
    """Reject tokens used before their ``nbf``. A missing ``nbf`` passes."""

    def __init__(self, leeway: timedelta = timedelta(0)):
        self.leeway = leeway

    def check(self, token: ParsedToken, now: datetime) -> None:
        not_before = token.not_before
        if not_before is not None and now + self.leeway < not_before:
            raise TokenNotYetValidError(
                f"Token is not valid before {registered.format_time(not_before)}",
                details={'nbf': registered.format_time(not_before)},
            )


class ValidAt(Rule):
    """
    Require the token to be valid at a fixed moment: issued before it,
    usable from it and not expired at it.
    """

    def __init__(self, moment: datetime, leeway: timedelta = timedelta(0)):
        self.moment = registered.as_utc(moment)
        self.leeway = leeway

    def check(self, token: ParsedToken, now: datetime) -> None:
        issued_at = token.issued_at
        if issued_at is not None and self.moment + self.leeway < issued_at:
            raise TokenNotYetValidError(
                f"Token was issued after {registered.format_time(self.moment)}",
                details={'iat': registered.format_time(issued_at)},
            )
        NotBefore(self.leeway).check(token, self.moment)
        NotExpired(self.leeway).check(token, self.moment)


def default_rules(options: TokenOptions) -> List[Rule]:
    """Temporal rules plus the configured issuer, audience and identifier."""
    rules: List[Rule] = [NotBefore(options.leeway), NotExpired(options.leeway)]

    if options.issuer:
        rules.append(IssuedBy(options.issuer))
    if options.audience:
        rules.append(ForAudience(options.audience))
    if options.identifier:
        rules.append(IdentifiedBy(options.identifier))

    return rules


def check_all(token: ParsedToken, rules: List[Rule], now: Optional[datetime] = None) -> None:
    """Run every rule in order; the first failure propagates."""
    moment = registered.as_utc(now) if now is not None else datetime.now(timezone.utc)
    for rule in rules:
        rule.check(token, moment)
