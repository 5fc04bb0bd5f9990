"""
POS Sales Snapshot

Pseudonymizes multi-brand point-of-sale exports and precomputes the analytics
snapshot consumed by the reporting front end.
"""

__version__ = "1.0.0"
