"""Feed synchronization pipeline.

This package fetches module index batches, reconciles batch overlap,
and drives the resumable fetch, merge, persist loop.
"""
