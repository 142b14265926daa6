"""
Basic pasty usage example.

This example demonstrates the fundamental pasty operations:
- Creating public and local token services
- Issuing tokens with custom claims and a footer
- Sharing the public key with a verifying party
- Handling validation failures
"""

from datetime import timedelta

import pasty
from pasty.token import KeyMaterialError, TokenService, load_public_key_from_pem


def public_example():
    """Sign a token and verify it elsewhere with the exported key"""
    print("Public Tokens")
    print("=" * 30)

    issuer = pasty.new("public", issuer="auth.example.com", audience="api.example.com")
    print("✓ Created signing service")

    token = issuer.issue(timedelta(minutes=15), {"user_id": "user-123", "scope": ["read"]},
                         footer={"kid": "key-1"})
    print(f"✓ Issued token: {token[:40]}...")

    # The verifying party only receives the public key, shipped as PEM.
    pem = issuer.public_key_pem()
    verifier = TokenService(
        "public",
        issuer="auth.example.com",
        audience="api.example.com",
        public_key=load_public_key_from_pem(pem),
    )

    result = verifier.validate(token)
    if result:
        print(f"✓ Verified claims: {result.token.custom_claims}")
        print(f"  Footer: {result.token.footer_json()}")
    else:
        print(f"✗ Verification failed: {result.error_message}")

    try:
        verifier.issue(timedelta(minutes=15))
    except KeyMaterialError as e:
        print(f"✓ Verifier cannot sign: {e.message}")
    print()


def local_example():
    """Encrypt a token and show the validation failure modes"""
    print("Local Tokens")
    print("=" * 30)

    service = pasty.new("local", default_expiry=timedelta(minutes=5))
    token = service.issue(claims={"session": "abc"})
    print("✓ Issued encrypted token")

    for label, candidate in [
        ("fresh", token),
        ("tampered", token + "1"),
        ("expired", service.issue(timedelta(seconds=-1))),
    ]:
        result = service.validate(candidate)
        status = "valid" if result.valid else f"rejected ({result.error_code})"
        print(f"  {label}: {status}")
    print()


def main():
    """Run all examples"""
    print("pasty Basic Usage Examples")
    print("=" * 50)
    print()

    public_example()
    local_example()

    print("Examples completed.")


if __name__ == "__main__":
    main()
