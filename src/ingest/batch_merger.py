"""Batch overlap reconciliation.

The feed has no opaque cursor token. Each request repeats the record at
the ``since`` timestamp as its first element, so the merger strips that
overlap and flags batches that do not start where the cursor says.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from core.types import FeedRecord, ProtocolAnomaly, ReconcileResult


class OverlapPolicy(Protocol):
    """Strategy for reconciling a fetched batch against the cursor."""

    def reconcile(
        self,
        cursor: FeedRecord | None,
        fetched: Sequence[FeedRecord],
    ) -> ReconcileResult: ...


class InclusiveOverlapPolicy:
    """Overlap policy for feeds whose ``since`` parameter is inclusive."""

    def reconcile(
        self,
        cursor: FeedRecord | None,
        fetched: Sequence[FeedRecord],
    ) -> ReconcileResult:
        """Remove the expected overlap record from a fetched batch.

        Args:
            cursor: Last persisted record, or None for an empty index.
            fetched: Records returned by the feed, in feed order.

        Returns:
            Records to insert plus an anomaly when the batch did not start
            at the cursor. An empty ``records_to_insert`` means caught up.
        """
        if cursor is None or not fetched:
            return ReconcileResult(records_to_insert=tuple(fetched))
        first_record = fetched[0]
        if first_record == cursor:
            return ReconcileResult(records_to_insert=tuple(fetched[1:]))
        anomaly = ProtocolAnomaly(expected=cursor, received=first_record)
        return ReconcileResult(records_to_insert=tuple(fetched), anomaly=anomaly)


DEFAULT_OVERLAP_POLICY: OverlapPolicy = InclusiveOverlapPolicy()


def reconcile_batch(
    cursor: FeedRecord | None,
    fetched: Sequence[FeedRecord],
    policy: OverlapPolicy = DEFAULT_OVERLAP_POLICY,
) -> ReconcileResult:
    """Reconcile a batch with the given policy, defaulting to inclusive overlap."""
    return policy.reconcile(cursor, fetched)
