"""QA module for source reconciliation.

This module compares what the persisted store holds against what the live
vendor API reports for the same sales, to surface batch-sync lag and
price drift.

Example:
    >>> from vending_core.qa import reconcile
    >>>
    >>> result = reconcile(persisted_records, live_records)
    >>> print(result.summary)
    >>> if result.has_discrepancies:
    ...     print(result.only_live)

"""

from vending_core.qa.api import ReconciliationResult, reconcile

__all__ = ["ReconciliationResult", "reconcile"]
