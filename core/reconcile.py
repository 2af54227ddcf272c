from dataclasses import dataclass
from enum import Enum
from typing import Any

from core.errors import CountMismatchError
from core.paginator import WalkResult

SAMPLE_SIZE = 5


class Outcome(Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    INCONSISTENT = "inconsistent"


@dataclass
class Reconciliation:
    outcome: Outcome
    warning: str | None = None
    meta: dict[str, Any] | None = None


def reconcile(walk: WalkResult) -> Reconciliation:
    """Classify a walk against the site's self-reported total.

    A walk cut short by the page budget (or an early exit) is Partial whatever
    the count. A full walk whose count disagrees with a positive expected count
    is Inconsistent. Without an expected count there is nothing to check.
    """
    got = len(walk.items)
    expected = walk.expected_count

    if walk.pages_scraped < walk.total_pages:
        shortfall = f"{got}/{expected}" if expected else f"{got}"
        return Reconciliation(
            Outcome.PARTIAL,
            warning=(
                f"Partial result: walked {walk.pages_scraped} of {walk.total_pages} pages "
                f"({shortfall} listings). Raise maxPages to collect the rest."
            ),
        )

    if expected and expected > 0 and got != expected:
        return Reconciliation(
            Outcome.INCONSISTENT,
            meta={
                "expectedCount": expected,
                "got": got,
                "pagesScraped": walk.pages_scraped,
                "pageSize": walk.page_size,
                "sample": [item.to_dict() for item in walk.items[:SAMPLE_SIZE]],
            },
        )

    return Reconciliation(Outcome.COMPLETE)


def ensure_consistent(reconciliation: Reconciliation) -> Reconciliation:
    if reconciliation.outcome is Outcome.INCONSISTENT:
        meta = reconciliation.meta or {}
        raise CountMismatchError(
            f"Count mismatch after pagination: expected {meta.get('expectedCount')}, "
            f"got {meta.get('got')}",
            meta=meta,
        )
    return reconciliation
