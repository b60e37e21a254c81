"""Secret key material for signed cookies.

Secrets are kept in configuration as hex strings and decoded to raw bytes
when a signer is built.
"""

import secrets

DEFAULT_SECRET_BYTES = 32
SESSION_TOKEN_BYTES = 32


def generate_secure_hex(length: int = DEFAULT_SECRET_BYTES) -> str:
    """
    Generate a cryptographically secure random hex string.

    Args:
        length: Number of random bytes (the result has 2 * length characters)

    Returns:
        Hex-encoded random bytes
    """
    if length <= 0:
        raise ValueError("length must be positive")
    return secrets.token_hex(length)


def decode_secret(value: str) -> bytes:
    """
    Decode a hex-encoded secret.

    Raises:
        ValueError: If the value is empty or not valid hex
    """
    if not value:
        raise ValueError("secret must not be empty")
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise ValueError(f"secret is not valid hex: {e}") from e


def generate_session_token() -> str:
    """New opaque session token: 256 bits of entropy, hex encoded."""
    return secrets.token_hex(SESSION_TOKEN_BYTES)
