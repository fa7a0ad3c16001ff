"""Resolve the target business's rank inside one cell's result list."""

import logging
from typing import Optional, Sequence, Tuple

from rankgrid.core.matcher import matching_rule
from rankgrid.models import ResultRecord, TargetBusiness

logger = logging.getLogger(__name__)


def record_rank(record: ResultRecord, position: int) -> int:
    """Prefer the grouped rank, then the absolute rank, then the 1-based position."""
    if record.rank_group is not None:
        return record.rank_group
    if record.rank_absolute is not None:
        return record.rank_absolute
    return position


def find_match(
    records: Sequence[ResultRecord], target: Optional[TargetBusiness]
) -> Tuple[Optional[ResultRecord], Optional[int]]:
    # Without an identifying signal nothing can be matched; never assume rank 1.
    if target is None or not target.has_signal():
        return None, None

    for position, record in enumerate(records or (), start=1):
        rule = matching_rule(record, target)
        if rule:
            rank = record_rank(record, position)
            logger.debug("Target found at rank %s (position %d, rule=%s)", rank, position, rule)
            return record, rank
    return None, None


def extract_rank(records: Sequence[ResultRecord], target: Optional[TargetBusiness]) -> Optional[int]:
    """Return the first matching record's rank, or None when the target is absent."""
    _, rank = find_match(records, target)
    return rank
