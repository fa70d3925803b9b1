"""
Edit state for the shift grid.

The editor owns the working copy of the visible shifts, the buffer of edits
that have not been written to the database yet, and the undo/redo history.
Views rebuild it from the session on every request (see ``to_dict`` and
``from_dict``), mutate it, and store it back.

Every operation carries the entry that occupied its cell when it was applied
(``prior``), so any batch can be reversed exactly, deletes included.

Persistence goes through a ``ShiftStore``. Saving is last-write-wins: there is
no version check against other sessions, and a failure halfway through (for
example upserts committed, deletes rejected) is not rolled back. The buffer is
kept intact on failure so the same operations can be retried.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Iterator, Protocol, Union

from .dates import is_weekday, parse_iso_date

logger = logging.getLogger(__name__)

ShiftKey = tuple[str, date]


class ShiftKind(str, Enum):
    NORMAL = "normal"
    LOCKED = "locked"
    ABSENT = "absent"
    HOLIDAY = "holiday"

    @property
    def carries_hours(self) -> bool:
        return self in (ShiftKind.NORMAL, ShiftKind.LOCKED)


class InvalidCellChange(ValueError):
    """Raised before any mutation when a cell edit is malformed."""


class ShiftStoreError(Exception):
    """Raised by a ShiftStore when a write is rejected."""


@dataclass(frozen=True)
class ShiftEntry:
    """Hours (or absence status) for one employee on one date."""

    employee_id: str
    work_date: date
    kind: ShiftKind = ShiftKind.NORMAL
    hours: float | None = None

    @property
    def key(self) -> ShiftKey:
        return (self.employee_id, self.work_date)

    def to_dict(self) -> dict:
        return {
            "employee_id": self.employee_id,
            "work_date": self.work_date.isoformat(),
            "kind": self.kind.value,
            "hours": self.hours,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ShiftEntry":
        kind = ShiftKind(data.get("kind", ShiftKind.NORMAL))
        hours = data.get("hours") if kind.carries_hours else None
        return cls(
            employee_id=str(data["employee_id"]),
            work_date=parse_iso_date(data["work_date"]),
            kind=kind,
            hours=float(hours) if hours is not None else None,
        )


@dataclass(frozen=True)
class Upsert:
    entry: ShiftEntry
    prior: ShiftEntry | None = None

    @property
    def key(self) -> ShiftKey:
        return self.entry.key

    def apply(self, entries: dict[ShiftKey, ShiftEntry]) -> None:
        entries[self.key] = self.entry

    def inverse(self) -> "EditOperation":
        if self.prior is None:
            return Delete(self.entry.employee_id, self.entry.work_date, prior=self.entry)
        return Upsert(self.prior, prior=self.entry)


@dataclass(frozen=True)
class Delete:
    employee_id: str
    work_date: date
    prior: ShiftEntry | None = None

    @property
    def key(self) -> ShiftKey:
        return (self.employee_id, self.work_date)

    def apply(self, entries: dict[ShiftKey, ShiftEntry]) -> None:
        entries.pop(self.key, None)

    def inverse(self) -> "EditOperation":
        if self.prior is None:
            return Delete(self.employee_id, self.work_date)
        return Upsert(self.prior)


EditOperation = Union[Upsert, Delete]


def operation_to_dict(op: EditOperation) -> dict:
    prior = op.prior.to_dict() if op.prior is not None else None
    if isinstance(op, Upsert):
        return {"op": "upsert", "entry": op.entry.to_dict(), "prior": prior}
    return {
        "op": "delete",
        "employee_id": op.employee_id,
        "work_date": op.work_date.isoformat(),
        "prior": prior,
    }


def operation_from_dict(data: dict) -> EditOperation:
    prior = ShiftEntry.from_dict(data["prior"]) if data.get("prior") else None
    if data["op"] == "upsert":
        return Upsert(ShiftEntry.from_dict(data["entry"]), prior=prior)
    if data["op"] == "delete":
        return Delete(str(data["employee_id"]), parse_iso_date(data["work_date"]), prior=prior)
    raise ValueError(f"Unknown operation: {data['op']!r}")


class ShiftStore(Protocol):
    """Persistent side of the editor. Both calls may raise ShiftStoreError."""

    def upsert_shifts(self, entries: list[ShiftEntry]) -> None:
        ...

    def delete_shifts(self, keys: list[ShiftKey]) -> None:
        ...


class SaveStatus(str, Enum):
    SAVED = "saved"
    NOTHING_TO_SAVE = "nothing_to_save"
    FAILED = "failed"


@dataclass(frozen=True)
class ShiftChange:
    """A saved change relative to what was previously persisted."""

    NEW = "new"
    CHANGED = "changed"
    DELETED = "deleted"

    kind: str
    before: ShiftEntry | None
    after: ShiftEntry | None

    @property
    def employee_id(self) -> str:
        return (self.after or self.before).employee_id

    @property
    def work_date(self) -> date:
        return (self.after or self.before).work_date


@dataclass
class SaveResult:
    status: SaveStatus
    upserted: int = 0
    deleted: int = 0
    changes: list[ShiftChange] = field(default_factory=list)
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status != SaveStatus.FAILED


def _chunks(items: list, size: int) -> Iterator[list]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ScheduleEditor:
    """Working copy, pending buffer and undo history for one grid session."""

    def __init__(self, *, fill_hours: float = 8.0, delete_batch_size: int = 500):
        if delete_batch_size < 1:
            raise ValueError("delete_batch_size must be positive")
        self.fill_hours = float(fill_hours)
        self.delete_batch_size = delete_batch_size

        self.employees: list[str] = []
        self.dates: list[date] = []
        self.entries: dict[ShiftKey, ShiftEntry] = {}
        # Last known persisted state, used to classify saved changes.
        self.baseline: dict[ShiftKey, ShiftEntry] = {}
        self.pending: dict[ShiftKey, EditOperation] = {}
        self.undo_stack: list[list[EditOperation]] = []
        self.redo_stack: list[list[EditOperation]] = []

    # -- state ---------------------------------------------------------------

    @property
    def dirty(self) -> bool:
        """True while there are edits that have not been saved."""
        return bool(self.pending)

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def hydrate(
        self,
        employees: Iterable[str],
        dates: Iterable[date],
        shifts: Iterable[ShiftEntry],
    ) -> None:
        """Replace all state with persisted data for the given grid."""
        self.employees = [str(e) for e in employees]
        self.dates = list(dates)
        self.entries = {entry.key: entry for entry in shifts}
        self.baseline = dict(self.entries)
        self.pending = {}
        self.undo_stack = []
        self.redo_stack = []

    def discard_changes(self) -> None:
        """Drop unsaved edits and history, returning to the persisted state."""
        self.entries = dict(self.baseline)
        self.pending = {}
        self.undo_stack = []
        self.redo_stack = []

    def forget_employees(self, employee_ids: Iterable[str]) -> int:
        """
        Remove employees from the grid along with their cells, pending edits
        and history. Returns the number of pending edits dropped.
        """
        gone = {str(e) for e in employee_ids} & set(self.employees)
        if not gone:
            return 0

        def keep(key: ShiftKey) -> bool:
            return key[0] not in gone

        dropped = sum(1 for key in self.pending if not keep(key))
        self.employees = [e for e in self.employees if e not in gone]
        self.entries = {k: v for k, v in self.entries.items() if keep(k)}
        self.baseline = {k: v for k, v in self.baseline.items() if keep(k)}
        self.pending = {k: v for k, v in self.pending.items() if keep(k)}
        for stack in (self.undo_stack, self.redo_stack):
            batches = [[op for op in batch if keep(op.key)] for batch in stack]
            stack[:] = [batch for batch in batches if batch]
        return dropped

    def entry_at(self, employee_id: str, work_date: date) -> ShiftEntry | None:
        return self.entries.get((str(employee_id), work_date))

    def total_hours(self, employee_id: str) -> float:
        employee_id = str(employee_id)
        return sum(
            entry.hours or 0
            for (eid, _), entry in self.entries.items()
            if eid == employee_id
        )

    # -- edits ---------------------------------------------------------------

    def apply_cell_change(
        self,
        employee_id: str,
        work_date: date | str,
        hours: float | str | None,
        kind: ShiftKind | str = ShiftKind.NORMAL,
    ) -> EditOperation:
        """
        Set one cell and record the change.

        Positive hours write an hour-carrying entry, zero or empty hours clear
        the cell. Absent and holiday cells never carry hours.
        """
        if not employee_id:
            raise InvalidCellChange("employee_id is required")
        try:
            work_date = parse_iso_date(work_date)
        except (TypeError, ValueError):
            raise InvalidCellChange(f"Invalid work date: {work_date!r}") from None
        try:
            kind = ShiftKind(kind)
        except ValueError:
            raise InvalidCellChange(f"Unknown shift kind: {kind!r}") from None
        if hours in ("", None):
            hours = None
        else:
            try:
                hours = float(hours)
            except (TypeError, ValueError):
                raise InvalidCellChange(f"Invalid hours: {hours!r}") from None
            if not math.isfinite(hours):
                raise InvalidCellChange(f"Invalid hours: {hours!r}")
            if hours < 0:
                raise InvalidCellChange("Hours cannot be negative")

        employee_id = str(employee_id)
        if employee_id not in self.employees:
            raise InvalidCellChange(f"Unknown employee: {employee_id!r}")
        if work_date not in self.dates:
            raise InvalidCellChange(f"{work_date.isoformat()} is outside the visible range")
        prior = self.entries.get((employee_id, work_date))

        if not kind.carries_hours:
            op: EditOperation = Upsert(ShiftEntry(employee_id, work_date, kind), prior=prior)
        elif hours:
            op = Upsert(ShiftEntry(employee_id, work_date, kind, hours), prior=prior)
        else:
            op = Delete(employee_id, work_date, prior=prior)

        self._commit([op])
        return op

    def auto_generate(self) -> int:
        """
        Fill every empty weekday cell of an active employee with a normal shift.

        All generated entries form a single undo batch. Returns how many were
        created; 0 leaves the editor untouched.
        """
        batch: list[EditOperation] = []
        for day in self.dates:
            if not is_weekday(day):
                continue
            for employee_id in self.employees:
                if (employee_id, day) in self.entries:
                    continue
                entry = ShiftEntry(employee_id, day, ShiftKind.NORMAL, self.fill_hours)
                batch.append(Upsert(entry))

        if not batch:
            logger.debug("Auto-fill found no empty weekday cells")
            return 0

        self._commit(batch)
        logger.info("Auto-filled %d shifts", len(batch))
        return len(batch)

    def undo(self) -> bool:
        if not self.undo_stack:
            return False
        batch = self.undo_stack.pop()
        for op in reversed(batch):
            inverse = op.inverse()
            inverse.apply(self.entries)
            self._buffer(inverse)
        self.redo_stack.append(batch)
        return True

    def redo(self) -> bool:
        if not self.redo_stack:
            return False
        batch = self.redo_stack.pop()
        for op in batch:
            op.apply(self.entries)
            self._buffer(op)
        self.undo_stack.append(batch)
        return True

    def _commit(self, batch: list[EditOperation]) -> None:
        for op in batch:
            op.apply(self.entries)
            self._buffer(op)
        self.undo_stack.append(batch)
        self.redo_stack.clear()

    def _buffer(self, op: EditOperation) -> None:
        # Latest edit per cell wins and moves to the end.
        self.pending.pop(op.key, None)
        self.pending[op.key] = op

    # -- persistence ---------------------------------------------------------

    def save_all(self, store: ShiftStore) -> SaveResult:
        """Write the pending buffer through ``store``."""
        if not self.pending:
            return SaveResult(SaveStatus.NOTHING_TO_SAVE)

        operations = list(self.pending.values())
        upserts = [op.entry for op in operations if isinstance(op, Upsert)]
        deletes = [op.key for op in operations if isinstance(op, Delete)]

        try:
            if upserts:
                store.upsert_shifts(upserts)
            for chunk in _chunks(deletes, self.delete_batch_size):
                store.delete_shifts(chunk)
        except ShiftStoreError as exc:
            logger.warning("Saving %d shift changes failed: %s", len(operations), exc)
            return SaveResult(SaveStatus.FAILED, error=str(exc))

        changes = self._classify(operations)
        for op in operations:
            op.apply(self.baseline)
        self.pending = {}

        logger.info("Saved %d upserts and %d deletes", len(upserts), len(deletes))
        return SaveResult(
            SaveStatus.SAVED,
            upserted=len(upserts),
            deleted=len(deletes),
            changes=changes,
        )

    def _classify(self, operations: list[EditOperation]) -> list[ShiftChange]:
        changes = []
        for op in operations:
            before = self.baseline.get(op.key)
            if isinstance(op, Upsert):
                if before is None:
                    changes.append(ShiftChange(ShiftChange.NEW, None, op.entry))
                elif before != op.entry:
                    changes.append(ShiftChange(ShiftChange.CHANGED, before, op.entry))
            elif before is not None:
                changes.append(ShiftChange(ShiftChange.DELETED, before, None))
        return changes

    # -- session serialization -----------------------------------------------

    def to_dict(self) -> dict:
        return {
            "fill_hours": self.fill_hours,
            "delete_batch_size": self.delete_batch_size,
            "employees": list(self.employees),
            "dates": [d.isoformat() for d in self.dates],
            "entries": [e.to_dict() for e in self.entries.values()],
            "baseline": [e.to_dict() for e in self.baseline.values()],
            "pending": [operation_to_dict(op) for op in self.pending.values()],
            "undo": [[operation_to_dict(op) for op in batch] for batch in self.undo_stack],
            "redo": [[operation_to_dict(op) for op in batch] for batch in self.redo_stack],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScheduleEditor":
        editor = cls(
            fill_hours=data.get("fill_hours", 8.0),
            delete_batch_size=data.get("delete_batch_size", 500),
        )
        editor.employees = [str(e) for e in data.get("employees", [])]
        editor.dates = [parse_iso_date(d) for d in data.get("dates", [])]
        for raw in data.get("entries", []):
            entry = ShiftEntry.from_dict(raw)
            editor.entries[entry.key] = entry
        for raw in data.get("baseline", []):
            entry = ShiftEntry.from_dict(raw)
            editor.baseline[entry.key] = entry
        for raw in data.get("pending", []):
            op = operation_from_dict(raw)
            editor.pending[op.key] = op
        editor.undo_stack = [[operation_from_dict(op) for op in batch] for batch in data.get("undo", [])]
        editor.redo_stack = [[operation_from_dict(op) for op in batch] for batch in data.get("redo", [])]
        return editor
