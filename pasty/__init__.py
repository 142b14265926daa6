"""
pasty Python Package

PASETO v4 token issuance and validation on top of pyseto.
"""

__version__ = "0.1.0"

from .token.service import TokenService, new
from .token.config import TokenServiceConfig
from .token.types import (
    Purpose,
    TokenOptions,
    ParsedToken,
    ValidationResult,
)
from .token.errors import (
    PastyError,
    InvalidPurposeError,
    ClaimEncodingError,
    TokenValidationError,
)

__all__ = [
    "TokenService",
    "TokenServiceConfig",
    "new",
    "Purpose",
    "TokenOptions",
    "ParsedToken",
    "ValidationResult",
    "PastyError",
    "InvalidPurposeError",
    "ClaimEncodingError",
    "TokenValidationError",
]
