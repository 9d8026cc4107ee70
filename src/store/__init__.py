"""Index database layer.

This package owns the SQLite paths/versions schema, cursor derivation,
and transactional batch writes for the sync driver.
"""
