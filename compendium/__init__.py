"""
Compendium - Law Record Ingestion Pipeline

Reconciles law records against the Record Store, moves their full text
through one-time upload sessions, and bulk-imports compendium CSV files.
"""

__version__ = "0.1.0"
