"""
Aggregation engine: pure functions over already-fetched rows.

Nothing here performs I/O or mutates its inputs. Every function makes a
single pass over each collection it receives, so rebuilding the all-users
aggregate costs O(users + entries + addresses), not O(users x entries).

TimeEntry.csi_division stores the task *name*, not a task id. All code that
relies on that denormalization goes through `_division_key`.
"""

import calendar
import logging
import math
from collections import defaultdict
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

from timetracker.schemas.csi_task import CSITask, CSITaskWithStats
from timetracker.schemas.job_address import JobAddress
from timetracker.schemas.stats import GroupStats, UserAggregate, UserStats
from timetracker.schemas.time_entry import TimeEntry
from timetracker.schemas.user import User

log = logging.getLogger(__name__)

T = TypeVar("T")

FIRST_HALF = "first-half"
SECOND_HALF = "second-half"
UNASSIGNED_DIVISION = "Unassigned"

SECONDS_PER_HOUR = 3600

# year -> month (0-11) -> biweek period -> entries
YearMonthBiweekGroups = Dict[int, Dict[int, Dict[str, List[TimeEntry]]]]


def _duration(entry: TimeEntry) -> int:
    """Duration in seconds; missing or null counts as zero."""
    return entry.duration or 0


def _hours(seconds: float) -> float:
    hours = seconds / SECONDS_PER_HOUR
    return hours if math.isfinite(hours) else 0.0


def _division_key(entry: TimeEntry) -> str:
    return entry.csi_division or UNASSIGNED_DIVISION


def _as_aware(value: datetime) -> datetime:
    # Naive timestamps from the store are UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _entry_timestamp(entry: TimeEntry) -> Optional[datetime]:
    stamp = entry.created_at or entry.start_time
    return _as_aware(stamp) if stamp else None


def _group_by(items: Iterable[T], key: Callable[[T], Hashable]) -> Dict[Hashable, List[T]]:
    grouped: Dict[Hashable, List[T]] = defaultdict(list)
    for item in items:
        grouped[key(item)].append(item)
    return grouped


def compute_user_stats(entries: Sequence[TimeEntry], job_addresses: Sequence[JobAddress]) -> UserStats:
    total_seconds = 0
    division_breakdown: Dict[str, int] = {}
    last_entry: Optional[datetime] = None

    for entry in entries:
        seconds = _duration(entry)
        total_seconds += seconds
        division = _division_key(entry)
        division_breakdown[division] = division_breakdown.get(division, 0) + seconds
        stamp = _entry_timestamp(entry)
        if stamp is not None and (last_entry is None or stamp > last_entry):
            last_entry = stamp

    return UserStats(
        total_entries=len(entries),
        total_hours=_hours(total_seconds),
        division_breakdown=division_breakdown,
        last_entry=last_entry,
        total_addresses=len(job_addresses),
    )


def compute_all_users_aggregate(
    users: Sequence[User],
    all_entries: Sequence[TimeEntry],
    all_job_addresses: Sequence[JobAddress],
) -> Dict[str, UserAggregate]:
    """
    Per-user totals keyed by username.

    Entries and addresses are bucketed by owning user id once up front; each
    user's stats are then computed from its own bucket.
    """
    entries_by_user = _group_by(all_entries, lambda e: e.user_id)
    addresses_by_user = _group_by(all_job_addresses, lambda a: a.user_id)

    aggregate: Dict[str, UserAggregate] = {}
    for user in users:
        user_entries = entries_by_user.get(user.id, [])
        user_addresses = addresses_by_user.get(user.id, [])
        aggregate[user.username] = UserAggregate(
            user=user.to_public(),
            stats=compute_user_stats(user_entries, user_addresses),
            job_address_count=len(user_addresses),
            entry_count=len(user_entries),
        )

    log.debug(f"Aggregated {len(all_entries)} entries and {len(all_job_addresses)} addresses for {len(users)} users")
    return aggregate


def compute_task_usage_stats(tasks: Sequence[CSITask], all_entries: Sequence[TimeEntry]) -> List[CSITaskWithStats]:
    """
    Catalog tasks with usage count, hours (one decimal) and distinct users.
    Entries whose division matches no catalog task are left out.
    """
    entries_by_division = _group_by(all_entries, lambda e: e.csi_division)

    tasks_with_stats = []
    for task in tasks:
        task_entries = entries_by_division.get(task.name, [])
        total_seconds = sum(_duration(e) for e in task_entries)
        unique_users = {e.user_id for e in task_entries if e.user_id is not None}
        tasks_with_stats.append(CSITaskWithStats(
            **task.model_dump(),
            usage_count=len(task_entries),
            total_hours=round(_hours(total_seconds), 1),
            unique_user_count=len(unique_users),
        ))
    return tasks_with_stats


def biweek_period(day_of_month: int) -> str:
    return FIRST_HALF if day_of_month <= 15 else SECOND_HALF


def biweek_label(period: str) -> str:
    return "1st - 15th" if period == FIRST_HALF else "16th - End"


def month_name(month_index: int) -> str:
    """Month name for a 0-based month index."""
    return calendar.month_name[month_index + 1]


def entry_calendar_date(entry: TimeEntry, tz: Optional[tzinfo] = None) -> Optional[date]:
    """
    The date an entry is filed under: its calendar `date` when set, else the
    date of its creation timestamp (converted to `tz` when given).
    """
    if entry.date is not None:
        return entry.date
    stamp = entry.created_at or entry.start_time
    if stamp is None:
        return None
    if tz is not None:
        stamp = _as_aware(stamp).astimezone(tz)
    return stamp.date()


def group_by_year_month_biweek(entries: Iterable[TimeEntry], tz: Optional[tzinfo] = None) -> YearMonthBiweekGroups:
    grouped: YearMonthBiweekGroups = {}
    for entry in entries:
        day = entry_calendar_date(entry, tz)
        if day is None:
            log.warning(f"Time entry {entry.id} has no date or timestamp, leaving it out of the grouping")
            continue
        months = grouped.setdefault(day.year, {})
        periods = months.setdefault(day.month - 1, {})
        periods.setdefault(biweek_period(day.day), []).append(entry)
    return grouped


def compute_group_stats(entries: Iterable[TimeEntry]) -> GroupStats:
    count = 0
    total_seconds = 0
    user_ids = set()
    for entry in entries:
        count += 1
        total_seconds += _duration(entry)
        if entry.user_id is not None:
            user_ids.add(entry.user_id)
    return GroupStats(count=count, total_hours=_hours(total_seconds), unique_user_count=len(user_ids))


def top_n_by_value(breakdown: Mapping[Any, float], n: int = 5) -> List[Tuple[Any, float]]:
    """Largest values first; ties keep their original order (sorted() is stable)."""
    if n <= 0:
        return []
    return sorted(breakdown.items(), key=lambda item: item[1], reverse=True)[:n]


def deduplicate_addresses(addresses: Iterable[Any]) -> List[str]:
    """Unique non-blank address labels in first-seen order. Accepts rows or strings."""
    seen = {}
    for item in addresses:
        if isinstance(item, str):
            label = item
        elif isinstance(item, Mapping):
            label = item.get("address")
        else:
            label = getattr(item, "address", None)
        if label and label.strip() and label not in seen:
            seen[label] = None
    return list(seen)
