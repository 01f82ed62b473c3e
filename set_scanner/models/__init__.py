"""Pydantic models shared across the scanner."""
