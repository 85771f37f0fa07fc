"""
SHA-256 Hashing

Thin wrapper around the SHA-256 implementation of the `cryptography`
package. Block identity, proof-of-work and storage keys are all derived
from these helpers, so every digest in the ledger goes through one place.

Components:
- One-shot digest of a byte string
- Incremental digest over several byte strings
- Reusable hashing state (copied per nonce attempt while mining)
"""

from typing import Iterable

from cryptography.hazmat.primitives import hashes


DIGEST_SIZE = 32  # 256-bit digest


def new_state() -> hashes.Hash:
    """Return a fresh incremental SHA-256 state."""
    return hashes.Hash(hashes.SHA256())


def sha256(data: bytes) -> bytes:
    """
    Compute the SHA-256 hash of the input data.

    Args:
        data: Input bytes to hash

    Returns:
        256-bit (32-byte) digest as bytes

    Example:
        >>> sha256(b"hello").hex()
        '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
    """
    state = new_state()
    state.update(data)
    return state.finalize()


def sha256_parts(parts: Iterable[bytes]) -> bytes:
    """
    Compute SHA-256 over the concatenation of several byte strings.

    Equivalent to ``sha256(b"".join(parts))`` without building the
    joined buffer.
    """
    state = new_state()
    for part in parts:
        state.update(part)
    return state.finalize()


def sha256_hex(data: bytes) -> str:
    """
    Compute SHA-256 hash and return as hexadecimal string.

    Args:
        data: Input bytes to hash

    Returns:
        64-character hexadecimal string
    """
    return sha256(data).hex()


# Self-test when run directly
if __name__ == "__main__":
    # Test vectors from NIST
    test_cases = [
        (b"", "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"),
        (b"abc", "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"),
        (b"The quick brown fox jumps over the lazy dog",
         "d7a8fbb307d7809469ca9abcb0082e4f8d5651e46d3cdb762d02d0bf37c9e592"),
    ]

    print("SHA-256 Test")
    print("=" * 60)

    all_passed = True
    for data, expected in test_cases:
        result = sha256_hex(data)
        passed = result == expected
        all_passed = all_passed and passed
        print(f"{'✓ PASS' if passed else '✗ FAIL'}  {data[:40]!r}")

    print("=" * 60)
    print(f"Overall: {'All tests passed!' if all_passed else 'Some tests failed!'}")
