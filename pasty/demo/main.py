"""
pasty Demo Application

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

This demo shows the token lifecycle:
- Service creation from PASTY_* environment variables
- Token issuance with custom claims and a footer
- Token validation
- Rejection of tampered, expired and mismatched tokens
"""

import sys
from datetime import timedelta

from pasty.token.config import TokenServiceConfig
from pasty.token.errors import PastyError
from pasty.token.service import TokenService


def main() -> int:
    """Main demo function"""
    print("pasty Demo Application")
    print("=" * 50)
    print()

    try:
        config = TokenServiceConfig.from_env()
        service = TokenService.from_config(config)
        print("✓ Created token service from environment")
        print(f"  - Purpose: {service.purpose.value}")
        print(f"  - Issuer: {service.options.issuer or '-'}")
        print(f"  - Audience: {service.options.audience or '-'}")
        print(f"  - Identifier: {service.options.identifier or '-'}")
        print(f"  - Default Expiry: {service.options.default_expiry}")
        print()

    except (PastyError, ValueError) as e:
        print(f"✗ Error creating token service: {e}")
        return 1

    print("Step 1: Token Issuance")
    print("-" * 40)

    try:
        token = service.issue(
            timedelta(minutes=5),
            {"user": "demo", "roles": ["reader"]},
            footer={"kid": "demo-key"},
        )
        print("✓ Token issued successfully")
        print(f"  - Token: {token[:40]}...")
        print()

    except PastyError as e:
        print(f"✗ Token issuance failed: {e}")
        return 1

    print("Step 2: Token Validation")
    print("-" * 40)

    result = service.validate(token)
    if not result.valid:
        print(f"✗ Token validation failed: {result.error_message}")
        return 1
    print("✓ Token validated successfully")
    print(f"  - Claims: {result.token.custom_claims}")
    print(f"  - Footer: {result.token.footer.decode('utf-8')}")
    print(f"  - Expires: {result.token.expiration}")
    print()

    print("Step 3: Tampered Token")
    print("-" * 40)

    result = service.validate(token + "1")
    if result.valid:
        print("✗ Tampered token was accepted")
        return 1
    print(f"✓ Tampered token rejected ({result.error_code})")
    print()

    print("Step 4: Expired Token")
    print("-" * 40)

    expired = service.issue(timedelta(seconds=-1))
    result = service.validate(expired)
    if result.valid:
        print("✗ Expired token was accepted")
        return 1
    print(f"✓ Expired token rejected ({result.error_code})")
    print()

    print("Step 5: Audience Mismatch")
    print("-" * 40)

    verifier = TokenService(
        service.purpose,
        audience="wrong.example.com",
        key_pair=service.key_pair,
        symmetric_key=service.symmetric_key,
    )
    result = verifier.validate(token)
    if result.valid:
        print("✗ Token with mismatched audience was accepted")
        return 1
    print(f"✓ Mismatched audience rejected ({result.error_code})")
    print()

    print("Demo completed successfully!")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nDemo interrupted by user")
        sys.exit(1)
