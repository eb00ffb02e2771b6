"""
OOREP reference-data seeding.

Extracts the OOREP repertory/remedy dataset (SQL dump or live PostgreSQL),
normalizes it into the clinic knowledge-base schema and idempotently loads
it into MongoDB.
"""

__version__ = "1.0.0"
