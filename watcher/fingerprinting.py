"""
Content fingerprinting system for efficient change detection.

This module provides:
- A 32-bit rolling hash compatible with fingerprints stored by earlier releases
- An optional SHA-256 fingerprint for stronger collision resistance
- Fingerprint comparison
"""

import hashlib
from typing import Iterator

import structlog

logger = structlog.get_logger(__name__)

ROLLING32 = "rolling32"
SHA256 = "sha256"
SUPPORTED_ALGORITHMS = (ROLLING32, SHA256)


def _utf16_code_units(content: str) -> Iterator[int]:
    """Yield the UTF-16 code units of a string."""
    data = content.encode("utf-16-le")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def rolling_hash32(content: str) -> int:
    """
    Compute the order-sensitive rolling hash ``h = h * 31 + c``.

    Arithmetic wraps with signed 32-bit overflow, one step per UTF-16 code unit.

    Args:
        content: Text to hash

    Returns:
        Signed 32-bit hash value
    """
    value = 0
    for unit in _utf16_code_units(content):
        value = ((value << 5) - value + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value


class ContentFingerprinter:
    """Content fingerprinting for normalized page content."""

    def __init__(self, algorithm: str = ROLLING32):
        """
        Initialize the fingerprinting system.

        Args:
            algorithm: Fingerprint algorithm (rolling32 or sha256)
        """
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"algorithm must be one of: {list(SUPPORTED_ALGORITHMS)}")
        self.algorithm = algorithm
        self.logger = logger.bind(component="fingerprinter")

    def fingerprint(self, normalized: str) -> str:
        """
        Generate the fingerprint of normalized content.

        Args:
            normalized: Normalized content

        Returns:
            Fingerprint string
        """
        if self.algorithm == SHA256:
            value = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
        else:
            value = str(rolling_hash32(normalized))

        self.logger.debug(
            "Generated fingerprint",
            algorithm=self.algorithm,
            fingerprint=value[:16],
            content_length=len(normalized)
        )

        return value

    def fingerprints_differ(self, old_fingerprint: str, new_fingerprint: str) -> bool:
        """Return True when two fingerprints indicate different content."""
        return old_fingerprint != new_fingerprint
