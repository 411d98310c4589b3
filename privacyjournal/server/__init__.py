"""
HTTP API for the journal store.
"""
