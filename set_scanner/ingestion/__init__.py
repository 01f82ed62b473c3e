"""
Market-data ingestion.

Modules
-------
yahoo_client : async Yahoo Finance chart / quoteSummary client with a
               fixture mode for offline runs.
"""
