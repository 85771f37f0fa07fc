# powledger
"""
Proof-of-work ledger:
- Blocks chained by SHA-256 with an adjustable difficulty target
- Multi-threaded nonce search
- One-file-per-block persistence with startup replay
- Background flushing with a blocking shutdown handshake
- Query and transaction-publishing API
"""

__version__ = "0.1.0"
