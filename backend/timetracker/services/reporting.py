"""Hours reports over time entries, grouped by the dimensions a caller keeps."""

import csv
import io
from typing import Dict, List, Sequence, Tuple

from timetracker.schemas.report import Report, ReportFilter, ReportRow
from timetracker.schemas.time_entry import TimeEntryWithUser
from timetracker.services.aggregation import SECONDS_PER_HOUR, entry_calendar_date

NOT_AVAILABLE = "N/A"
UNKNOWN_WORKER = "Unknown"


def _entry_date_label(entry: TimeEntryWithUser) -> str:
    day = entry_calendar_date(entry)
    return day.isoformat() if day else NOT_AVAILABLE


def _entry_hours(entry: TimeEntryWithUser) -> float:
    return (entry.duration or 0) / SECONDS_PER_HOUR


def filter_entries(entries: Sequence[TimeEntryWithUser], report_filter: ReportFilter) -> List[TimeEntryWithUser]:
    """Inclusive date range plus job, task and worker selections (empty selection = no filter)."""
    selected = []
    for entry in entries:
        day = entry_calendar_date(entry)
        if report_filter.start_date and (day is None or day < report_filter.start_date):
            continue
        if report_filter.end_date and (day is None or day > report_filter.end_date):
            continue
        if report_filter.job_addresses and entry.job_address not in report_filter.job_addresses:
            continue
        if report_filter.tasks and entry.csi_division not in report_filter.tasks:
            continue
        if report_filter.user_ids and entry.user_id not in report_filter.user_ids:
            continue
        selected.append(entry)
    return selected


def report_headers(report_filter: ReportFilter) -> List[str]:
    headers = ["Date"]
    if not report_filter.all_jobs:
        headers.append("Job")
    if not report_filter.all_tasks:
        headers.append("Task")
    if not report_filter.all_workers:
        headers.append("Worker")
    headers.append("Hours")
    return headers


def build_report(entries: Sequence[TimeEntryWithUser], report_filter: ReportFilter) -> Report:
    """
    Build report rows from `entries`.

    Every dimension whose "all" flag is unset becomes part of the grouping key,
    together with the date. With every flag set the whole selection collapses
    into a single "All" row.
    """
    selected = filter_entries(entries, report_filter)
    headers = report_headers(report_filter)

    if report_filter.all_jobs and report_filter.all_tasks and report_filter.all_workers:
        total = sum(_entry_hours(e) for e in selected)
        return Report(headers=headers, rows=[ReportRow(date="All", hours=round(total, 2))])

    groups: Dict[Tuple[str, ...], ReportRow] = {}
    for entry in selected:
        row = ReportRow(date=_entry_date_label(entry))
        if not report_filter.all_jobs:
            row.job = entry.job_address or NOT_AVAILABLE
        if not report_filter.all_tasks:
            row.task = entry.csi_division or NOT_AVAILABLE
        if not report_filter.all_workers:
            row.worker = entry.user_name or UNKNOWN_WORKER

        if not (report_filter.all_jobs or report_filter.all_tasks or report_filter.all_workers):
            # Nothing collapsed: one row per entry
            row.hours = _entry_hours(entry)
            groups[(str(len(groups)),)] = row
            continue

        key = (row.job or "", row.task or "", row.worker or "", row.date)
        if key not in groups:
            groups[key] = row
        groups[key].hours += _entry_hours(entry)

    rows = [row.model_copy(update={"hours": round(row.hours, 2)}) for row in groups.values()]
    return Report(headers=headers, rows=rows)


def report_to_csv(report: Report) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(report.headers)
    field_for_header = {"Date": "date", "Job": "job", "Task": "task", "Worker": "worker", "Hours": "hours"}
    for row in report.rows:
        values = []
        for header in report.headers:
            value = getattr(row, field_for_header[header])
            if header == "Hours":
                value = f"{value:.2f}"
            values.append(NOT_AVAILABLE if value is None else value)
        writer.writerow(values)
    return buffer.getvalue()
