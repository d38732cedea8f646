"""
Trading API Package.

HTTP surface of the ledger: one procedure per operation.
"""
