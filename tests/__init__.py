# powledger Test Suite
"""
Test suite including:
- Unit tests
- Integration tests
- Security tests (invalid inputs, tampered records)

Run with: pytest
"""
