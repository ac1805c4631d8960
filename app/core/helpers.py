"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- Token and numeric code generation (cryptographic)
- Retry backoff calculation

Usage:
    from core.helpers import backoff_delay, generate_numeric_code, generate_token

    token = generate_token(4)          # 8 hex characters
    code = generate_numeric_code(6)    # e.g. "048213"
    time.sleep(backoff_delay(attempt=2, base=0.05))
"""

from __future__ import annotations

import random
import secrets
import string


def generate_token(length: int = 32) -> str:
    """
    Generate a cryptographically secure random token.

    Args:
        length: Number of bytes (resulting string is 2x length in hex)

    Returns:
        Hexadecimal token string
    """
    return secrets.token_hex(length)


def generate_numeric_code(length: int = 6) -> str:
    """
    Generate a random numeric code, zero-padded to length digits.

    Example:
        code = generate_numeric_code(6)  # "904117"
    """
    return "".join(secrets.choice(string.digits) for _ in range(length))


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Jitter prevents thundering herd when multiple workers retry simultaneously.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)

    Returns:
        Delay in seconds with jitter (0-25% of calculated delay)

    Example:
        # Attempt 0: 1.0 - 1.25 seconds
        # Attempt 2: 4.0 - 5.0 seconds
        delay = backoff_delay(attempt=2)
    """
    delay = min(base * (2**attempt), max_delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter
