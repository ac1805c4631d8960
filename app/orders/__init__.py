"""
Orders app.

Customer orders spanning several sellers. Each order keeps its vendor
groups (one per seller) and child orders (per-seller fulfilment records).
Payment confirmation and money distribution are handled by the
settlement app.
"""
