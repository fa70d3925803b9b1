"""
Database side of the schedule editor.

``DjangoShiftStore`` implements the editor's ShiftStore contract with the ORM.
The session helpers keep one editor per browser session.
"""

from __future__ import annotations

import logging
import operator
from datetime import date
from functools import reduce

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import Q

from .editor import ScheduleEditor, ShiftEntry, ShiftKey, ShiftStoreError
from .models import Employee, Shift

logger = logging.getLogger(__name__)

SESSION_KEY = "schedule_editor"


class DjangoShiftStore:
    """Upserts and deletes shifts keyed on (employee, work_date)."""

    def upsert_shifts(self, entries: list[ShiftEntry]) -> None:
        rows = [
            Shift(
                employee_id=entry.employee_id,
                work_date=entry.work_date,
                kind=entry.kind.value,
                hours=entry.hours,
            )
            for entry in entries
        ]
        try:
            with transaction.atomic():
                Shift.objects.bulk_create(
                    rows,
                    update_conflicts=True,
                    unique_fields=["employee", "work_date"],
                    update_fields=["kind", "hours", "updated_at"],
                )
        except (DatabaseError, ValidationError, ValueError) as exc:
            raise ShiftStoreError(f"Upsert of {len(rows)} shifts failed: {exc}") from exc

    def delete_shifts(self, keys: list[ShiftKey]) -> None:
        if not keys:
            return
        condition = reduce(
            operator.or_,
            (Q(employee_id=employee_id, work_date=work_date) for employee_id, work_date in keys),
        )
        try:
            with transaction.atomic():
                Shift.objects.filter(condition).delete()
        except (DatabaseError, ValidationError, ValueError) as exc:
            raise ShiftStoreError(f"Delete of {len(keys)} shifts failed: {exc}") from exc


def load_shifts(employee_ids: list[str], start: date, end: date) -> list[ShiftEntry]:
    """Persisted entries for the given employees, ``start`` to ``end`` inclusive."""
    shifts = Shift.objects.filter(
        employee_id__in=employee_ids,
        work_date__range=(start, end),
    )
    return [shift.to_entry() for shift in shifts]


def new_editor() -> ScheduleEditor:
    return ScheduleEditor(
        fill_hours=settings.SCHEDULE_FILL_HOURS,
        delete_batch_size=settings.SCHEDULE_DELETE_BATCH_SIZE,
    )


def hydrate_editor(dates: list[date]) -> ScheduleEditor:
    """Fresh editor for ``dates`` with all active employees."""
    employee_ids = [str(pk) for pk in Employee.objects.filter(is_active=True).values_list("pk", flat=True)]
    editor = new_editor()
    shifts = load_shifts(employee_ids, dates[0], dates[-1]) if dates else []
    editor.hydrate(employee_ids, dates, shifts)
    logger.debug("Hydrated editor with %d shifts for %d employees", len(shifts), len(employee_ids))
    return editor


def load_editor(session) -> ScheduleEditor | None:
    data = session.get(SESSION_KEY)
    if not data:
        return None
    try:
        return ScheduleEditor.from_dict(data)
    except (KeyError, TypeError, ValueError):
        logger.warning("Discarding unreadable schedule editor state from session")
        del session[SESSION_KEY]
        return None


def store_editor(session, editor: ScheduleEditor) -> None:
    session[SESSION_KEY] = editor.to_dict()
