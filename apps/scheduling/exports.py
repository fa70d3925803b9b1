"""CSV and printable exports of the working copy of the grid."""

from __future__ import annotations

import csv
import io

from .editor import ScheduleEditor


def _format_hours(hours: float) -> str:
    return f"{hours:g}" if hours else ""


def grid_rows(editor: ScheduleEditor, employees) -> list[dict]:
    """One row per employee: cells aligned with ``editor.dates`` plus the total."""
    rows = []
    for employee in employees:
        employee_id = str(employee.pk)
        cells = [editor.entry_at(employee_id, day) for day in editor.dates]
        total = sum(entry.hours or 0 for entry in cells if entry is not None)
        rows.append({
            "employee": employee,
            "cells": cells,
            "slots": list(zip(editor.dates, cells)),
            "total": total,
        })
    return rows


def schedule_csv(editor: ScheduleEditor, employees) -> str:
    """Render the grid as CSV with every field quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(["Employee", *[day.isoformat() for day in editor.dates], "TotalHours"])
    for row in grid_rows(editor, employees):
        hours = [_format_hours(entry.hours) if entry else "" for entry in row["cells"]]
        writer.writerow([row["employee"].name, *hours, f"{row['total']:g}"])
    return buffer.getvalue()


def day_totals(rows: list[dict]) -> list[dict]:
    """Hours and number of scheduled employees per column of ``rows``."""
    if not rows:
        return []
    totals = []
    for column in zip(*(row["cells"] for row in rows)):
        entries = [entry for entry in column if entry is not None]
        totals.append({
            "hours": sum(entry.hours or 0 for entry in entries),
            "staffed": len(entries),
        })
    return totals
