# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Package token issues and validates PASETO v4 tokens.

This package provides:
- Public (Ed25519 signed) and local (symmetric encrypted) tokens
- Standard claims: iat, nbf, exp, iss, aud, jti, sub
- Custom claims, footers and implicit assertions
- Validation rules for issuer, audience, identifier and validity window
- Key generation, import and export

Cryptography and token encoding are delegated to pyseto.
"""

from .types import (
    Purpose,
    TokenOptions,
    ParsedToken,
    ValidationResult,
)

from .config import TokenServiceConfig

from .service import (
    TokenService,
    new,
)

from .keys import (
    KeyPair,
    generate_key_pair,
    generate_symmetric_key,
    load_key_pair_from_pem,
    load_public_key_from_pem,
    public_key_to_pem,
    load_key_pair_from_env,
    symmetric_key_to_base64,
    load_symmetric_key_from_base64,
    load_symmetric_key_from_env,
)

from .rules import (
    Rule,
    ClaimEquals,
    IssuedBy,
    ForAudience,
    IdentifiedBy,
    Subject,
    NotExpired,
    NotBefore,
    ValidAt,
)

from .errors import (
    PastyError,
    InvalidPurposeError,
    KeyMaterialError,
    ClaimEncodingError,
    TokenIssueError,
    TokenValidationError,
    TokenParseError,
    SignatureOrDecryptionError,
    ClaimPredicateMismatchError,
    ExpiredOrNotYetValidError,
    TokenExpiredError,
    TokenNotYetValidError,
)

__all__ = [
    # Types
    'Purpose',
    'TokenOptions',
    'ParsedToken',
    'ValidationResult',
    'TokenServiceConfig',

    # Service
    'TokenService',
    'new',

    # Keys
    'KeyPair',
    'generate_key_pair',
    'generate_symmetric_key',
    'load_key_pair_from_pem',
    'load_public_key_from_pem',
    'public_key_to_pem',
    'load_key_pair_from_env',
    'symmetric_key_to_base64',
    'load_symmetric_key_from_base64',
    'load_symmetric_key_from_env',

    # Rules
    'Rule',
    'ClaimEquals',
    'IssuedBy',
    'ForAudience',
    'IdentifiedBy',
    'Subject',
    'NotExpired',
    'NotBefore',
    'ValidAt',

    # Errors
    'PastyError',
    'InvalidPurposeError',
    'KeyMaterialError',
    'ClaimEncodingError',
    'TokenIssueError',
    'TokenValidationError',
    'TokenParseError',
    'SignatureOrDecryptionError',
    'ClaimPredicateMismatchError',
    'ExpiredOrNotYetValidError',
    'TokenExpiredError',
    'TokenNotYetValidError',
]
