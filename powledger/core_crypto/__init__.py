# Core Cryptography Module
"""
Core cryptographic primitives including:
- SHA-256 hashing (one-shot and incremental)
"""
