"""Override reconciliation: merging expanded series with RECURRENCE-ID records."""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Optional

from .models import MasterRecord, Occurrence
from .rrule_expander import WeeklyRecurrenceExpander

logger = logging.getLogger(__name__)

OverrideKey = tuple[str, datetime]


class OverrideReconciler:
    """Merges expanded series with the override records that replace or cancel instances."""

    def __init__(self, expander: WeeklyRecurrenceExpander):
        self.expander = expander

    def reconcile(
        self,
        records: Iterable[MasterRecord],
        now: datetime,
        horizon: Optional[datetime] = None,
    ) -> list[Occurrence]:
        """Turn parsed records into the final, sorted and de-duplicated occurrence list.

        Args:
            records: Records in feed order
            now: Reference time passed to the expander
            horizon: Bound for open-ended series (default now + horizon months)

        Returns:
            Occurrences sorted by start, unique by (start, title)
        """
        records = list(records)
        overrides = self._collect_recurrence_overrides(records)

        occurrences: list[Occurrence] = []
        suppressed_total = 0
        for record in records:
            if record.uid is None:
                occurrences.append(record.to_occurrence())
                continue

            if record.is_override:
                continue

            instances = self._series_instances(record, now, horizon)
            filtered, suppressed = self._filter_overridden_occurrences(instances, overrides)
            suppressed_total += suppressed
            occurrences.extend(filtered)

        for override in overrides.values():
            if override.is_cancelled:
                logger.debug(
                    "Cancelled instance %s of uid=%s", override.recurrence_key, override.uid
                )
                continue
            occurrences.append(override.to_occurrence())

        if suppressed_total:
            logger.debug("Suppressed %d instances replaced by overrides", suppressed_total)

        occurrences.sort(key=lambda occurrence: occurrence.start)
        return deduplicate_occurrences(occurrences)

    def _series_instances(
        self,
        master: MasterRecord,
        now: datetime,
        horizon: Optional[datetime],
    ) -> list[Occurrence]:
        """The master's own instance (unless excluded) followed by its expansion."""
        instances = []
        if master.is_excluded(master.start):
            logger.debug("Original instance of %r is excluded by EXDATE", master.title)
        else:
            instances.append(master.to_occurrence())
        instances.extend(self.expander.expand(master, now, horizon))
        return instances

    def _collect_recurrence_overrides(
        self, records: list[MasterRecord]
    ) -> dict[OverrideKey, MasterRecord]:
        """Index override records by (uid, recurrence key in UTC).

        A later override for the same key replaces an earlier one.
        """
        overrides: dict[OverrideKey, MasterRecord] = {}
        for record in records:
            key_utc = record.recurrence_key_utc()
            if record.uid is None or key_utc is None:
                continue
            key = (record.uid, key_utc)
            if key in overrides:
                logger.debug("Duplicate override for uid=%s at %s, keeping the later one", *key)
            overrides[key] = record
        return overrides

    def _filter_overridden_occurrences(
        self,
        instances: list[Occurrence],
        overrides: dict[OverrideKey, MasterRecord],
    ) -> tuple[list[Occurrence], int]:
        """Drop instances whose (uid, start) is claimed by an override.

        Returns:
            Tuple of (kept instances, number suppressed)
        """
        if not overrides:
            return instances, 0

        kept = []
        suppressed = 0
        for instance in instances:
            if instance.uid is not None and (instance.uid, instance.start.astimezone(UTC)) in overrides:
                suppressed += 1
                continue
            kept.append(instance)
        return kept, suppressed


def deduplicate_occurrences(occurrences: Iterable[Occurrence]) -> list[Occurrence]:
    """Keep the first occurrence for every (start, title) pair, preserving order."""
    seen: set[tuple[datetime, str]] = set()
    unique = []
    for occurrence in occurrences:
        key = (occurrence.start, occurrence.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(occurrence)
    return unique
