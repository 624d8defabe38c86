"""Flat-file dataset to datasource matching.

Uploading a CSV/Excel file creates a FILE datasource, but the resulting
dataset carries no reference to it. The matcher pairs them using the shared
name and the proximity of creation/update timestamps.

Known limitations:
- Matching relies on dataset names not changing after upload
- Two same-named uploads inside the time window can be mis-assigned
- Datasources left behind by file replacements appear unused
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, Optional, Protocol, Sequence

from libs.models import AssetRecord

__all__ = [
    "FILE_SOURCE_TYPE",
    "MatchResult",
    "DatasourceMatcher",
    "FlatFileDatasourceMatcher",
    "get_flat_file_datasource_revision",
]

logger = logging.getLogger(__name__)

FILE_SOURCE_TYPE = "FILE"
DEFAULT_MATCH_WINDOW = timedelta(minutes=2)


@dataclass(frozen=True)
class MatchResult:
    """Best datasource candidate for a flat-file dataset."""

    datasource_id: str
    time_diff: timedelta
    matched_by: Literal["creation", "update"]


class DatasourceMatcher(Protocol):
    """Heuristic datasource lookup for datasets that declare no datasources."""

    def match(
        self, dataset: AssetRecord, datasources: Sequence[AssetRecord]
    ) -> Optional[MatchResult]:
        ...


class FlatFileDatasourceMatcher:
    """
    Match a dataset to the FILE datasource uploaded alongside it.

    Candidates are datasources with the same name and source type FILE. For
    each candidate the smaller of |dataset created - datasource created| and
    |dataset updated - datasource created| is used; the smallest difference
    strictly inside the window wins.
    """

    def __init__(self, max_time_diff: timedelta = DEFAULT_MATCH_WINDOW) -> None:
        self.max_time_diff = max_time_diff

    def match(
        self, dataset: AssetRecord, datasources: Sequence[AssetRecord]
    ) -> Optional[MatchResult]:
        candidates = [
            ds
            for ds in datasources
            if ds.asset_name == dataset.asset_name
            and (ds.metadata.source_type or "").upper() == FILE_SOURCE_TYPE
            and ds.created_time is not None
        ]
        if not candidates:
            logger.debug(f"No FILE datasources found with name: {dataset.asset_name}")
            return None

        best: Optional[MatchResult] = None
        for datasource in candidates:
            creation_diff = _abs_diff(dataset.created_time, datasource.created_time)
            update_diff = _abs_diff(dataset.last_updated_time, datasource.created_time)
            if creation_diff is None and update_diff is None:
                continue

            if update_diff is None or (creation_diff is not None and creation_diff < update_diff):
                min_diff, matched_by = creation_diff, "creation"
            else:
                min_diff, matched_by = update_diff, "update"

            if min_diff < self.max_time_diff and (best is None or min_diff < best.time_diff):
                best = MatchResult(
                    datasource_id=datasource.asset_id,
                    time_diff=min_diff,
                    matched_by=matched_by,
                )

        if best:
            logger.debug(
                f"Matched flat file dataset {dataset.asset_id} to datasource {best.datasource_id} "
                f"(time diff: {round(best.time_diff.total_seconds())}s, matched by: {best.matched_by})"
            )
        return best


def get_flat_file_datasource_revision(
    datasource_name: str,
    datasource_created_time: datetime,
    datasources: Sequence[AssetRecord],
) -> int:
    """
    Get the 1-based revision of a flat-file datasource.

    Revisions are ordered by creation time among datasources sharing a name.
    Returns 0 when the datasource is not in the list. For two uploads of
    "sales.csv", the later upload is revision 2.
    """
    same_name = sorted(
        (ds for ds in datasources if ds.asset_name == datasource_name and ds.created_time),
        key=lambda ds: ds.created_time,
    )
    for index, datasource in enumerate(same_name):
        if datasource.created_time == datasource_created_time:
            return index + 1
    return 0


def _abs_diff(left: Optional[datetime], right: Optional[datetime]) -> Optional[timedelta]:
    if left is None or right is None:
        return None
    return abs(left - right)
