"""
Repositories for the ledger, price alerts and fundamentals.

SQLite implementations live in ``*_repo.py``; ``memory`` holds in-memory
equivalents satisfying the same ``protocols``.
"""
