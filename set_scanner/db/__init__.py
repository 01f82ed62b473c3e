"""
SQLite persistence: connection management, schema DDL and repositories.
"""
