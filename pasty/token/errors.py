"""
Token error classes for pasty.
"""


class PastyError(Exception):
    """Base pasty error."""

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "PASTY_ERROR"
        self.details = details or {}


class InvalidPurposeError(PastyError, ValueError):
    """Token purpose is neither local nor public."""

    def __init__(self, purpose, details: dict = None):
        message = f"purpose must be either local or public, got {purpose!r}"
        super().__init__(message, "INVALID_PURPOSE", details)
        self.purpose = purpose


class KeyMaterialError(PastyError):
    """Key material could not be loaded."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "INVALID_KEY", details)


class ClaimEncodingError(PastyError):
    """A claim or footer value cannot be serialized."""

    def __init__(self, message: str, claim: str = None, details: dict = None):
        details = dict(details or {})
        if claim is not None:
            details.setdefault('claim', claim)
        super().__init__(message, "CLAIM_ENCODING_ERROR", details)
        self.claim = claim


class TokenIssueError(PastyError):
    """The PASETO library refused to build the token."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "ISSUE_ERROR", details)


class TokenValidationError(PastyError):
    """Base class for every reason a token is rejected."""

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        super().__init__(message, error_code or "VALIDATION_ERROR", details)


class TokenParseError(TokenValidationError):
    """Token is malformed or of the wrong version or purpose."""

    def __init__(self, message: str = "Token is malformed", details: dict = None):
        super().__init__(message, "INVALID_TOKEN", details)


class SignatureOrDecryptionError(TokenValidationError):
    """Signature verification or authenticated decryption failed."""

    def __init__(self, message: str = "Token signature or encryption is invalid", details: dict = None):
        super().__init__(message, "INVALID_SIGNATURE", details)


class ClaimPredicateMismatchError(TokenValidationError):
    """A required claim is missing or does not hold the expected value."""

    def __init__(self, claim: str, expected=None, actual=None, details: dict = None):
        if actual is None:
            message = f"token has no {claim} claim"
        else:
            message = f"token {claim} claim {actual!r} does not match {expected!r}"
        details = dict(details or {})
        details.update({'claim': claim, 'expected': expected, 'actual': actual})
        super().__init__(message, "CLAIM_MISMATCH", details)
        self.claim = claim
        self.expected = expected
        self.actual = actual


class ExpiredOrNotYetValidError(TokenValidationError):
    """Token is outside its validity window."""

    def __init__(self, message: str, error_code: str = None, details: dict = None):
        super().__init__(message, error_code or "TEMPORAL_ERROR", details)


class TokenExpiredError(ExpiredOrNotYetValidError):
    """Token has expired."""

    def __init__(self, message: str = "Token has expired", details: dict = None):
        super().__init__(message, "EXPIRED_TOKEN", details)


class TokenNotYetValidError(ExpiredOrNotYetValidError):
    """Token is not valid yet."""

    def __init__(self, message: str = "Token is not valid yet", details: dict = None):
        super().__init__(message, "NOT_YET_VALID", details)
