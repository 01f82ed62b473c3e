"""
set_scanner: a technical-analysis scanner for stocks listed on the Stock
Exchange of Thailand.
"""

__version__ = "0.1.0"
