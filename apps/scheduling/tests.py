"""
Tests for the scheduling application.

This module tests:
- Date helpers
- The ScheduleEditor (edits, undo/redo, auto-fill, saving)
- The database store and session helpers
- Grid and employee views (HTMX endpoints)
- CSV export

Uses Django TestCase with pytest-django compatibility.
"""

import json
from datetime import date, timedelta
from types import SimpleNamespace
from unittest.mock import Mock, patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError
from django.test import Client, SimpleTestCase, TestCase
from django.urls import reverse

from apps.notifications.models import MailJob

from .dates import align_to_week_start, date_range, is_weekday, parse_iso_date
from .editor import (
    Delete,
    InvalidCellChange,
    SaveStatus,
    ScheduleEditor,
    ShiftChange,
    ShiftEntry,
    ShiftKind,
    ShiftStoreError,
    Upsert,
)
from .exports import day_totals, grid_rows, schedule_csv
from .models import Employee, Shift
from .stores import SESSION_KEY, DjangoShiftStore, hydrate_editor, load_editor, load_shifts

User = get_user_model()

MONDAY = date(2024, 1, 1)
TUESDAY = MONDAY + timedelta(days=1)
SATURDAY = MONDAY + timedelta(days=5)


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================


def create_user(username="testuser", password="testpass123", **kwargs):
    """Create and return a test user."""
    return User.objects.create_user(username=username, password=password, **kwargs)


def create_employee(name="Aino Virtanen", email=None, is_active=True, **kwargs):
    """Create and return a test Employee instance."""
    if email is None:
        email = f"{name.split()[0].lower()}@example.com"
    return Employee.objects.create(name=name, email=email, is_active=is_active, **kwargs)


def create_shift(employee=None, work_date=MONDAY, hours=8.0, kind=Shift.Kind.NORMAL):
    """Create and return a persisted Shift."""
    if employee is None:
        employee = create_employee()
    return Shift.objects.create(employee=employee, work_date=work_date, kind=kind, hours=hours)


def make_editor(entries=(), employees=("e1", "e2"), days=7, **kwargs):
    """Editor hydrated with the week starting MONDAY."""
    editor = ScheduleEditor(**kwargs)
    editor.hydrate(employees, date_range(MONDAY, days), entries)
    return editor


def session_editor(client):
    """The ScheduleEditor stored in the test client's session."""
    return ScheduleEditor.from_dict(client.session[SESSION_KEY])


# =============================================================================
# DATE HELPER TESTS
# =============================================================================


class DateHelperTests(SimpleTestCase):
    """Tests for the grid date helpers."""

    def test_align_to_monday(self):
        """A Wednesday aligns back to its Monday."""
        self.assertEqual(align_to_week_start(date(2024, 1, 3)), MONDAY)

    def test_align_monday_is_unchanged(self):
        self.assertEqual(align_to_week_start(MONDAY, "monday"), MONDAY)

    def test_align_to_sunday(self):
        """With a Sunday week start, Monday aligns to the previous day."""
        self.assertEqual(align_to_week_start(MONDAY, "sunday"), date(2023, 12, 31))

    def test_unknown_week_start_raises(self):
        with self.assertRaises(ValueError):
            align_to_week_start(MONDAY, "friday")

    def test_date_range(self):
        days = date_range(MONDAY, 3)

        self.assertEqual(days, [MONDAY, TUESDAY, MONDAY + timedelta(days=2)])

    def test_is_weekday(self):
        self.assertTrue(is_weekday(MONDAY))
        self.assertFalse(is_weekday(SATURDAY))
        self.assertFalse(is_weekday(SATURDAY + timedelta(days=1)))

    def test_parse_iso_date(self):
        self.assertEqual(parse_iso_date("2024-01-01"), MONDAY)
        self.assertIs(parse_iso_date(MONDAY), MONDAY)

    def test_parse_iso_date_invalid(self):
        with self.assertRaises(ValueError):
            parse_iso_date("2024-13-01")


# =============================================================================
# EDITOR TESTS
# =============================================================================


class ScheduleEditorStateTests(SimpleTestCase):
    """Tests for hydration and derived state."""

    def setUp(self):
        self.editor = make_editor([ShiftEntry("e1", MONDAY, ShiftKind.NORMAL, 6.0)])

    def test_hydrate_starts_clean(self):
        """A freshly hydrated editor has nothing pending and no history."""
        self.assertFalse(self.editor.dirty)
        self.assertFalse(self.editor.can_undo)
        self.assertFalse(self.editor.can_redo)
        self.assertEqual(self.editor.entry_at("e1", MONDAY).hours, 6.0)
        self.assertEqual(len(self.editor.dates), 7)

    def test_total_hours(self):
        self.editor.apply_cell_change("e1", TUESDAY, "4")

        self.assertEqual(self.editor.total_hours("e1"), 10.0)
        self.assertEqual(self.editor.total_hours("e2"), 0)

    def test_invalid_delete_batch_size(self):
        with self.assertRaises(ValueError):
            ScheduleEditor(delete_batch_size=0)

    def test_discard_changes_restores_baseline(self):
        self.editor.apply_cell_change("e1", MONDAY, "")
        self.editor.apply_cell_change("e2", MONDAY, "3")

        self.editor.discard_changes()

        self.assertFalse(self.editor.dirty)
        self.assertFalse(self.editor.can_undo)
        self.assertEqual(self.editor.entry_at("e1", MONDAY).hours, 6.0)
        self.assertIsNone(self.editor.entry_at("e2", MONDAY))

    def test_session_serialization_keeps_history(self):
        """State survives a trip through JSON, as it does in the session."""
        self.editor.apply_cell_change("e2", MONDAY, "7.5")
        self.editor.apply_cell_change("e1", MONDAY, "")
        self.editor.undo()

        restored = ScheduleEditor.from_dict(json.loads(json.dumps(self.editor.to_dict())))

        self.assertEqual(restored.entries, self.editor.entries)
        self.assertEqual(restored.baseline, self.editor.baseline)
        self.assertEqual(restored.pending, self.editor.pending)
        self.assertEqual(restored.undo_stack, self.editor.undo_stack)
        self.assertEqual(restored.redo_stack, self.editor.redo_stack)
        self.assertEqual(restored.dates, self.editor.dates)

    def test_forget_employees_drops_their_edits_and_history(self):
        self.editor.apply_cell_change("e2", MONDAY, "4")
        self.editor.apply_cell_change("e1", TUESDAY, "3")
        self.editor.auto_generate()

        dropped = self.editor.forget_employees(["e1", "unknown"])

        self.assertGreater(dropped, 0)
        self.assertEqual(self.editor.employees, ["e2"])
        self.assertTrue(all(key[0] == "e2" for key in self.editor.entries))
        self.assertTrue(all(key[0] == "e2" for key in self.editor.pending))
        self.assertNotIn(("e1", MONDAY), self.editor.baseline)
        self.assertEqual(len(self.editor.undo_stack), 2)

        self.editor.undo()
        self.editor.undo()
        self.assertEqual(self.editor.entries, {})

    def test_forget_employees_not_in_grid(self):
        self.editor.apply_cell_change("e2", MONDAY, "4")

        self.assertEqual(self.editor.forget_employees(["e9"]), 0)
        self.assertEqual(len(self.editor.pending), 1)


class ApplyCellChangeTests(SimpleTestCase):
    """Tests for ScheduleEditor.apply_cell_change."""

    def setUp(self):
        self.editor = make_editor([ShiftEntry("e1", MONDAY, ShiftKind.NORMAL, 6.0)])

    def test_positive_hours_create_entry(self):
        op = self.editor.apply_cell_change("e2", "2024-01-01", "7.5")

        self.assertIsInstance(op, Upsert)
        self.assertEqual(self.editor.entry_at("e2", MONDAY).hours, 7.5)
        self.assertTrue(self.editor.dirty)
        self.assertTrue(self.editor.can_undo)
        self.assertFalse(self.editor.can_redo)

    def test_zero_hours_delete_entry(self):
        op = self.editor.apply_cell_change("e1", MONDAY, 0)

        self.assertIsInstance(op, Delete)
        self.assertEqual(op.prior.hours, 6.0)
        self.assertIsNone(self.editor.entry_at("e1", MONDAY))

    def test_empty_hours_delete_entry(self):
        self.editor.apply_cell_change("e1", MONDAY, "")

        self.assertIsNone(self.editor.entry_at("e1", MONDAY))

    def test_absence_kind_carries_no_hours(self):
        self.editor.apply_cell_change("e1", MONDAY, "8", kind="absent")

        entry = self.editor.entry_at("e1", MONDAY)
        self.assertEqual(entry.kind, ShiftKind.ABSENT)
        self.assertIsNone(entry.hours)

    def test_locked_kind_keeps_hours(self):
        self.editor.apply_cell_change("e2", MONDAY, "5", kind=ShiftKind.LOCKED)

        entry = self.editor.entry_at("e2", MONDAY)
        self.assertEqual(entry.kind, ShiftKind.LOCKED)
        self.assertEqual(entry.hours, 5.0)

    def test_invalid_input_leaves_editor_untouched(self):
        """Malformed edits raise before anything is mutated."""
        bad_edits = [
            ("e1", MONDAY, "abc", ShiftKind.NORMAL),
            ("e1", MONDAY, "-1", ShiftKind.NORMAL),
            ("e1", "2024-13-01", "4", ShiftKind.NORMAL),
            ("e1", MONDAY, "4", "overtime"),
            ("", MONDAY, "4", ShiftKind.NORMAL),
            ("e1", MONDAY, "nan", ShiftKind.NORMAL),
            ("e1", MONDAY, "inf", ShiftKind.NORMAL),
            ("e1", MONDAY, "-inf", ShiftKind.LOCKED),
            ("e9", MONDAY, "4", ShiftKind.NORMAL),
            ("e1", MONDAY - timedelta(days=1), "4", ShiftKind.NORMAL),
            ("e1", "2030-06-01", "", ShiftKind.HOLIDAY),
        ]
        for employee_id, work_date, hours, kind in bad_edits:
            with self.subTest(employee_id=employee_id, work_date=work_date, hours=hours, kind=kind):
                with self.assertRaises(InvalidCellChange):
                    self.editor.apply_cell_change(employee_id, work_date, hours, kind=kind)

        self.assertFalse(self.editor.dirty)
        self.assertFalse(self.editor.can_undo)
        self.assertEqual(self.editor.entry_at("e1", MONDAY).hours, 6.0)

    def test_rejects_employee_outside_grid(self):
        with self.assertRaisesMessage(InvalidCellChange, "Unknown employee: 'e9'"):
            self.editor.apply_cell_change("e9", MONDAY, "4")

        self.assertEqual(self.editor.pending, {})

    def test_rejects_date_outside_grid(self):
        with self.assertRaisesMessage(InvalidCellChange, "2024-01-08 is outside the visible range"):
            self.editor.apply_cell_change("e1", MONDAY + timedelta(days=7), "4")

        self.assertEqual(self.editor.pending, {})

    def test_rejects_non_finite_hours(self):
        for hours in ("nan", "NaN", "inf", float("nan")):
            with self.subTest(hours=hours):
                with self.assertRaises(InvalidCellChange):
                    self.editor.apply_cell_change("e2", MONDAY, hours)

        self.assertIsNone(self.editor.entry_at("e2", MONDAY))

    def test_last_write_wins_per_cell(self):
        self.editor.apply_cell_change("e2", MONDAY, "4")
        self.editor.apply_cell_change("e2", MONDAY, "5")

        self.assertEqual(len(self.editor.pending), 1)
        self.assertEqual(self.editor.pending[("e2", MONDAY)].entry.hours, 5.0)

    def test_repeated_edit_moves_to_end_of_buffer(self):
        self.editor.apply_cell_change("e2", MONDAY, "4")
        self.editor.apply_cell_change("e1", TUESDAY, "3")
        self.editor.apply_cell_change("e2", MONDAY, "5")

        self.assertEqual(list(self.editor.pending), [("e1", TUESDAY), ("e2", MONDAY)])

    def test_new_edit_clears_redo(self):
        self.editor.apply_cell_change("e2", MONDAY, "4")
        self.editor.undo()
        self.assertTrue(self.editor.can_redo)

        self.editor.apply_cell_change("e2", TUESDAY, "2")

        self.assertFalse(self.editor.can_redo)


class UndoRedoTests(SimpleTestCase):
    """Tests for undo and redo."""

    def setUp(self):
        self.editor = make_editor([ShiftEntry("e1", MONDAY, ShiftKind.NORMAL, 6.0)])

    def test_undo_and_redo_on_empty_history(self):
        self.assertFalse(self.editor.undo())
        self.assertFalse(self.editor.redo())

    def test_undo_restores_previous_value(self):
        self.editor.apply_cell_change("e1", MONDAY, "8")

        self.assertTrue(self.editor.undo())

        self.assertEqual(self.editor.entry_at("e1", MONDAY).hours, 6.0)
        self.assertTrue(self.editor.can_redo)
        self.assertFalse(self.editor.can_undo)

    def test_undo_of_delete_restores_entry(self):
        self.editor.apply_cell_change("e1", MONDAY, "")

        self.editor.undo()

        self.assertEqual(self.editor.entry_at("e1", MONDAY).hours, 6.0)

    def test_undo_of_new_entry_removes_it(self):
        self.editor.apply_cell_change("e2", MONDAY, "4")

        self.editor.undo()

        self.assertIsNone(self.editor.entry_at("e2", MONDAY))
        self.assertIsInstance(self.editor.pending[("e2", MONDAY)], Delete)

    def test_redo_reapplies(self):
        self.editor.apply_cell_change("e1", MONDAY, "8")
        self.editor.undo()

        self.assertTrue(self.editor.redo())

        self.assertEqual(self.editor.entry_at("e1", MONDAY).hours, 8.0)
        self.assertTrue(self.editor.can_undo)
        self.assertFalse(self.editor.can_redo)

    def test_undo_is_recorded_in_pending(self):
        """Undoing an edit leaves its net effect pending, which saves as no change."""
        self.editor.apply_cell_change("e1", MONDAY, "8")
        self.editor.undo()
        store = Mock()

        result = self.editor.save_all(store)

        self.assertEqual(result.status, SaveStatus.SAVED)
        self.assertEqual(result.changes, [])
        store.upsert_shifts.assert_called_once_with([ShiftEntry("e1", MONDAY, ShiftKind.NORMAL, 6.0)])


class AutoGenerateTests(SimpleTestCase):
    """Tests for ScheduleEditor.auto_generate."""

    def setUp(self):
        self.editor = make_editor([ShiftEntry("e1", MONDAY, ShiftKind.NORMAL, 6.0)], fill_hours=7.5)

    def test_fills_empty_weekday_cells(self):
        created = self.editor.auto_generate()

        # 5 weekdays x 2 employees, minus the existing entry
        self.assertEqual(created, 9)
        self.assertEqual(self.editor.entry_at("e2", MONDAY).hours, 7.5)
        self.assertEqual(self.editor.entry_at("e1", MONDAY).hours, 6.0)
        self.assertIsNone(self.editor.entry_at("e1", SATURDAY))

    def test_fills_as_single_undo_batch(self):
        self.editor.auto_generate()

        self.editor.undo()

        self.assertEqual(list(self.editor.entries), [("e1", MONDAY)])
        self.assertFalse(self.editor.can_undo)

    def test_nothing_to_fill_is_a_no_op(self):
        self.editor.auto_generate()
        history = len(self.editor.undo_stack)

        self.assertEqual(self.editor.auto_generate(), 0)
        self.assertEqual(len(self.editor.undo_stack), history)

    def test_skips_absence_cells(self):
        self.editor.apply_cell_change("e2", TUESDAY, "", kind="holiday")

        self.editor.auto_generate()

        self.assertEqual(self.editor.entry_at("e2", TUESDAY).kind, ShiftKind.HOLIDAY)


class SaveAllTests(SimpleTestCase):
    """Tests for ScheduleEditor.save_all with a mocked store."""

    def setUp(self):
        self.editor = make_editor([
            ShiftEntry("e1", MONDAY, ShiftKind.NORMAL, 6.0),
            ShiftEntry("e2", TUESDAY, ShiftKind.NORMAL, 5.0),
        ])
        self.store = Mock()

    def test_nothing_to_save(self):
        result = self.editor.save_all(self.store)

        self.assertEqual(result.status, SaveStatus.NOTHING_TO_SAVE)
        self.assertTrue(result.ok)
        self.store.upsert_shifts.assert_not_called()
        self.store.delete_shifts.assert_not_called()

    def test_save_writes_and_classifies_changes(self):
        self.editor.apply_cell_change("e1", MONDAY, "7")
        self.editor.apply_cell_change("e2", MONDAY, "4")
        self.editor.apply_cell_change("e2", TUESDAY, "")

        result = self.editor.save_all(self.store)

        self.assertEqual(result.status, SaveStatus.SAVED)
        self.assertEqual(result.upserted, 2)
        self.assertEqual(result.deleted, 1)
        kinds = {(c.employee_id, c.work_date): c.kind for c in result.changes}
        self.assertEqual(kinds, {
            ("e1", MONDAY): ShiftChange.CHANGED,
            ("e2", MONDAY): ShiftChange.NEW,
            ("e2", TUESDAY): ShiftChange.DELETED,
        })
        self.store.delete_shifts.assert_called_once_with([("e2", TUESDAY)])

    def test_successful_save_clears_pending_and_updates_baseline(self):
        self.editor.apply_cell_change("e1", MONDAY, "7")

        self.editor.save_all(self.store)

        self.assertFalse(self.editor.dirty)
        self.assertEqual(self.editor.baseline[("e1", MONDAY)].hours, 7.0)
        # History survives a save
        self.assertTrue(self.editor.can_undo)

    def test_failed_save_keeps_pending(self):
        self.editor.apply_cell_change("e1", MONDAY, "7")
        self.store.upsert_shifts.side_effect = ShiftStoreError("database is locked")

        result = self.editor.save_all(self.store)

        self.assertEqual(result.status, SaveStatus.FAILED)
        self.assertFalse(result.ok)
        self.assertEqual(result.error, "database is locked")
        self.assertTrue(self.editor.dirty)
        self.assertEqual(self.editor.baseline[("e1", MONDAY)].hours, 6.0)

    def test_retry_after_failure_succeeds(self):
        self.editor.apply_cell_change("e1", MONDAY, "7")
        self.store.upsert_shifts.side_effect = [ShiftStoreError("busy"), None]

        self.editor.save_all(self.store)
        result = self.editor.save_all(self.store)

        self.assertEqual(result.status, SaveStatus.SAVED)
        self.assertEqual(self.store.upsert_shifts.call_count, 2)

    def test_deletes_are_sent_in_batches(self):
        entries = [ShiftEntry("e1", day, ShiftKind.NORMAL, 8.0) for day in date_range(MONDAY, 5)]
        editor = make_editor(entries, delete_batch_size=2)
        for entry in entries:
            editor.apply_cell_change("e1", entry.work_date, "")

        result = editor.save_all(self.store)

        self.assertEqual(result.deleted, 5)
        self.assertEqual(self.store.delete_shifts.call_count, 3)
        self.store.upsert_shifts.assert_not_called()


class EditorScenarioTests(SimpleTestCase):
    """End to end sequences on an editor."""

    def test_edit_undo_redo_on_empty_grid(self):
        day = date(2025, 8, 18)
        editor = ScheduleEditor()
        editor.hydrate(["e1"], date_range(day, 7), [])

        editor.apply_cell_change("e1", "2025-08-18", 8)
        self.assertEqual(editor.entries, {("e1", day): ShiftEntry("e1", day, ShiftKind.NORMAL, 8.0)})
        self.assertEqual(len(editor.pending), 1)
        self.assertEqual(len(editor.undo_stack), 1)

        editor.undo()
        self.assertEqual(editor.entries, {})
        self.assertEqual(len(editor.redo_stack), 1)

        editor.redo()
        self.assertEqual(editor.entry_at("e1", day).hours, 8.0)

    def test_failed_save_keeps_whole_buffer(self):
        entries = [ShiftEntry("e2", day, ShiftKind.NORMAL, 8.0) for day in (MONDAY, TUESDAY)]
        editor = make_editor(entries)
        for day in date_range(MONDAY, 3):
            editor.apply_cell_change("e1", day, "6")
        editor.apply_cell_change("e2", MONDAY, "")
        editor.apply_cell_change("e2", TUESDAY, "")
        before = dict(editor.pending)
        store = Mock()
        store.upsert_shifts.side_effect = ShiftStoreError("network down")

        result = editor.save_all(store)

        self.assertEqual(result.status, SaveStatus.FAILED)
        self.assertEqual(editor.pending, before)
        self.assertEqual(len(editor.pending), 5)
        self.assertTrue(editor.dirty)
        self.assertEqual(editor.entry_at("e1", MONDAY).hours, 6.0)
        store.delete_shifts.assert_not_called()

    def test_fold_is_last_write_wins(self):
        editor = make_editor()
        edits = [("e1", MONDAY, "4"), ("e2", MONDAY, "5"), ("e1", MONDAY, "7"), ("e2", MONDAY, "0")]
        for employee_id, day, hours in edits:
            editor.apply_cell_change(employee_id, day, hours)

        self.assertEqual(editor.entries, {("e1", MONDAY): ShiftEntry("e1", MONDAY, ShiftKind.NORMAL, 7.0)})


# =============================================================================
# MODEL TESTS
# =============================================================================


class ShiftModelTests(TestCase):
    """Tests for the Shift model."""

    def test_one_shift_per_employee_and_day(self):
        employee = create_employee()
        create_shift(employee=employee)

        with self.assertRaises(IntegrityError):
            create_shift(employee=employee, hours=4.0)

    def test_to_entry(self):
        shift = create_shift(hours=7.5)

        entry = shift.to_entry()

        self.assertEqual(entry, ShiftEntry(str(shift.employee_id), MONDAY, ShiftKind.NORMAL, 7.5))

    def test_to_entry_drops_hours_for_absence(self):
        shift = create_shift(kind=Shift.Kind.ABSENT, hours=8.0)

        self.assertIsNone(shift.to_entry().hours)

    def test_str(self):
        shift = create_shift(hours=8.0)

        self.assertEqual(str(shift), "Aino Virtanen 2024-01-01: 8 h")


# =============================================================================
# STORE TESTS
# =============================================================================


class DjangoShiftStoreTests(TestCase):
    """Tests for the ORM-backed ShiftStore."""

    def setUp(self):
        self.employee = create_employee()
        self.employee_id = str(self.employee.pk)
        self.store = DjangoShiftStore()

    def test_upsert_creates_rows(self):
        self.store.upsert_shifts([
            ShiftEntry(self.employee_id, MONDAY, ShiftKind.NORMAL, 8.0),
            ShiftEntry(self.employee_id, TUESDAY, ShiftKind.ABSENT, None),
        ])

        self.assertEqual(Shift.objects.count(), 2)
        self.assertEqual(Shift.objects.get(work_date=TUESDAY).kind, Shift.Kind.ABSENT)

    def test_upsert_updates_existing_row(self):
        create_shift(employee=self.employee, hours=8.0)

        self.store.upsert_shifts([ShiftEntry(self.employee_id, MONDAY, ShiftKind.NORMAL, 4.0)])

        self.assertEqual(Shift.objects.count(), 1)
        self.assertEqual(Shift.objects.get().hours, 4.0)

    def test_delete_removes_only_given_keys(self):
        create_shift(employee=self.employee, work_date=MONDAY)
        create_shift(employee=self.employee, work_date=TUESDAY)

        self.store.delete_shifts([(self.employee_id, MONDAY)])

        self.assertEqual(list(Shift.objects.values_list("work_date", flat=True)), [TUESDAY])

    def test_delete_with_no_keys(self):
        create_shift(employee=self.employee)

        self.store.delete_shifts([])

        self.assertEqual(Shift.objects.count(), 1)

    def test_database_error_is_wrapped(self):
        with patch.object(Shift.objects, "bulk_create", side_effect=DatabaseError("locked")):
            with self.assertRaises(ShiftStoreError):
                self.store.upsert_shifts([ShiftEntry(self.employee_id, MONDAY, ShiftKind.NORMAL, 8.0)])

    def test_invalid_employee_id_is_wrapped(self):
        with self.assertRaises(ShiftStoreError):
            self.store.delete_shifts([("not-a-uuid", MONDAY)])


class EditorLoadingTests(TestCase):
    """Tests for hydrating editors and the session helpers."""

    def test_load_shifts_filters_by_range(self):
        employee = create_employee()
        create_shift(employee=employee, work_date=MONDAY)
        create_shift(employee=employee, work_date=MONDAY + timedelta(days=10))

        entries = load_shifts([str(employee.pk)], MONDAY, MONDAY + timedelta(days=6))

        self.assertEqual([e.work_date for e in entries], [MONDAY])

    def test_hydrate_editor_uses_active_employees(self):
        active = create_employee("Aino Virtanen")
        create_employee("Eero Entinen", is_active=False)
        create_shift(employee=active)

        editor = hydrate_editor(date_range(MONDAY, 7))

        self.assertEqual(editor.employees, [str(active.pk)])
        self.assertEqual(editor.entry_at(str(active.pk), MONDAY).hours, 8.0)
        self.assertFalse(editor.dirty)

    def test_hydrate_editor_reads_settings(self):
        with self.settings(SCHEDULE_FILL_HOURS=6.0, SCHEDULE_DELETE_BATCH_SIZE=50):
            editor = hydrate_editor(date_range(MONDAY, 7))

        self.assertEqual(editor.fill_hours, 6.0)
        self.assertEqual(editor.delete_batch_size, 50)

    def test_load_editor_empty_session(self):
        self.assertIsNone(load_editor({}))

    def test_load_editor_discards_corrupt_state(self):
        session = {SESSION_KEY: {"dates": ["not a date"]}}

        self.assertIsNone(load_editor(session))
        self.assertNotIn(SESSION_KEY, session)


# =============================================================================
# EXPORT TESTS
# =============================================================================


class ExportTests(SimpleTestCase):
    """Tests for grid rows and CSV rendering."""

    def setUp(self):
        self.editor = make_editor(
            [
                ShiftEntry("e1", MONDAY, ShiftKind.NORMAL, 8.0),
                ShiftEntry("e1", TUESDAY, ShiftKind.NORMAL, 4.5),
                ShiftEntry("e2", MONDAY, ShiftKind.ABSENT, None),
            ],
            days=2,
        )
        self.employees = [
            SimpleNamespace(pk="e1", name="Aino"),
            SimpleNamespace(pk="e2", name='Bertta "B"'),
        ]

    def test_grid_rows(self):
        rows = grid_rows(self.editor, self.employees)

        self.assertEqual(rows[0]["total"], 12.5)
        self.assertEqual(rows[1]["total"], 0)
        self.assertEqual(rows[0]["slots"][1], (TUESDAY, self.editor.entry_at("e1", TUESDAY)))
        self.assertIsNone(rows[1]["cells"][1])

    def test_schedule_csv(self):
        lines = schedule_csv(self.editor, self.employees).splitlines()

        self.assertEqual(lines[0], '"Employee","2024-01-01","2024-01-02","TotalHours"')
        self.assertEqual(lines[1], '"Aino","8","4.5","12.5"')
        self.assertEqual(lines[2], '"Bertta ""B""","","","0"')

    def test_day_totals(self):
        totals = day_totals(grid_rows(self.editor, self.employees))

        self.assertEqual(totals, [{"hours": 8.0, "staffed": 2}, {"hours": 4.5, "staffed": 1}])
        self.assertEqual(day_totals([]), [])


# =============================================================================
# GRID VIEW TESTS
# =============================================================================


class GridViewTests(TestCase):
    """Tests for grid_view."""

    def setUp(self):
        self.client = Client()
        self.user = create_user()
        self.client.login(username="testuser", password="testpass123")

    def test_login_required(self):
        self.client.logout()

        response = self.client.get(reverse("scheduling:grid"))

        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse("login"), response.url)

    def test_grid_view_returns_200(self):
        response = self.client.get(reverse("scheduling:grid"))

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "scheduling/grid.html")
        self.assertEqual(len(response.context["dates"]), 14)

    def test_grid_view_with_start(self):
        employee = create_employee()
        create_shift(employee=employee)

        response = self.client.get(reverse("scheduling:grid"), {"start": "2024-01-01"})

        self.assertEqual(response.context["dates"][0], MONDAY)
        rows = response.context["rows"]
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["total"], 8.0)
        self.assertFalse(response.context["dirty"])

    def test_grid_view_skips_inactive_employees(self):
        create_employee("Aino Virtanen")
        create_employee("Eero Entinen", is_active=False)

        response = self.client.get(reverse("scheduling:grid"))

        names = [row["employee"].name for row in response.context["rows"]]
        self.assertEqual(names, ["Aino Virtanen"])

    def test_htmx_request_returns_partial(self):
        response = self.client.get(reverse("scheduling:grid"), HTTP_HX_REQUEST="true")

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "scheduling/partials/_grid.html")
        self.assertTemplateNotUsed(response, "scheduling/grid.html")

    def test_changing_range_discards_unsaved_edits_with_warning(self):
        employee = create_employee()
        self.client.get(reverse("scheduling:grid"), {"start": "2024-01-01"})
        self.client.post(reverse("scheduling:cell_update"), {
            "employee_id": str(employee.pk), "work_date": "2024-01-02", "hours": "5",
        })

        response = self.client.get(reverse("scheduling:grid"), {"start": "2024-01-08"})

        self.assertContains(response, "Tallentamattomat muutokset hylättiin")
        self.assertFalse(response.context["dirty"])


class GridEditViewTests(TestCase):
    """Tests for the grid editing endpoints."""

    def setUp(self):
        self.client = Client()
        self.user = create_user()
        self.client.login(username="testuser", password="testpass123")
        self.employee = create_employee()
        self.client.get(reverse("scheduling:grid"), {"start": "2024-01-01"})

    def post_cell(self, hours="7.5", work_date="2024-01-01", **extra):
        data = {"employee_id": str(self.employee.pk), "work_date": work_date, "hours": hours}
        data.update(extra)
        return self.client.post(reverse("scheduling:cell_update"), data, HTTP_HX_REQUEST="true")

    def test_cell_update_changes_editor_not_database(self):
        response = self.post_cell()

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.context["dirty"])
        self.assertEqual(session_editor(self.client).entry_at(str(self.employee.pk), MONDAY).hours, 7.5)
        self.assertEqual(Shift.objects.count(), 0)

    def test_cell_update_accepts_decimal_comma(self):
        self.post_cell(hours="6,5")

        self.assertEqual(session_editor(self.client).entry_at(str(self.employee.pk), MONDAY).hours, 6.5)

    def test_cell_update_invalid_hours_returns_400(self):
        response = self.post_cell(hours="many")

        self.assertEqual(response.status_code, 400)
        self.assertFalse(session_editor(self.client).dirty)

    def test_cell_update_non_finite_hours_returns_400(self):
        response = self.post_cell(hours="nan")

        self.assertEqual(response.status_code, 400)
        self.assertFalse(session_editor(self.client).dirty)

    def test_cell_update_unknown_employee_returns_400(self):
        response = self.post_cell(employee_id="bogus")

        self.assertEqual(response.status_code, 400)
        self.assertFalse(session_editor(self.client).dirty)

    def test_cell_update_date_outside_grid_returns_400(self):
        response = self.post_cell(work_date="2030-06-01")

        self.assertEqual(response.status_code, 400)
        self.assertFalse(session_editor(self.client).dirty)

    def test_rejected_edit_does_not_block_saving(self):
        self.post_cell(hours="8")
        self.post_cell(employee_id="bogus")

        self.client.post(reverse("scheduling:save"), HTTP_HX_REQUEST="true")

        self.assertEqual(Shift.objects.get().hours, 8.0)
        self.assertFalse(session_editor(self.client).dirty)

    def test_edits_for_deleted_employee_are_dropped(self):
        other = create_employee("Bertta Niemi")
        self.client.get(reverse("scheduling:grid"), {"start": "2024-01-08"})
        self.client.get(reverse("scheduling:grid"), {"start": "2024-01-01"})
        self.post_cell(hours="8")
        self.client.post(reverse("scheduling:cell_update"), {
            "employee_id": str(other.pk), "work_date": "2024-01-02", "hours": "6",
        }, HTTP_HX_REQUEST="true")
        other.delete()

        response = self.client.post(reverse("scheduling:save"), HTTP_HX_REQUEST="true")

        self.assertContains(response, "Poistetun työntekijän tallentamattomat muutokset hylättiin")
        self.assertContains(response, "Muutokset tallennettu")
        self.assertEqual(Shift.objects.get().employee, self.employee)
        self.assertNotIn(str(other.pk), session_editor(self.client).employees)

    def test_cell_update_requires_post(self):
        response = self.client.get(reverse("scheduling:cell_update"))

        self.assertEqual(response.status_code, 405)

    def test_non_htmx_edit_redirects(self):
        response = self.client.post(reverse("scheduling:cell_update"), {
            "employee_id": str(self.employee.pk), "work_date": "2024-01-01", "hours": "4",
        })

        self.assertRedirects(response, reverse("scheduling:grid"))

    def test_undo_and_redo(self):
        self.post_cell()

        self.client.post(reverse("scheduling:undo"), HTTP_HX_REQUEST="true")
        self.assertIsNone(session_editor(self.client).entry_at(str(self.employee.pk), MONDAY))

        self.client.post(reverse("scheduling:redo"), HTTP_HX_REQUEST="true")
        self.assertEqual(session_editor(self.client).entry_at(str(self.employee.pk), MONDAY).hours, 7.5)

    def test_undo_with_empty_history(self):
        response = self.client.post(reverse("scheduling:undo"), HTTP_HX_REQUEST="true")

        self.assertContains(response, "Ei kumottavaa")

    def test_auto_fill(self):
        response = self.client.post(reverse("scheduling:auto_fill"), HTTP_HX_REQUEST="true")

        # Two weeks of weekdays for one employee
        self.assertContains(response, "Autogeneroitu 10 vuoroa (8 h)")
        self.assertEqual(len(session_editor(self.client).pending), 10)
        self.assertEqual(Shift.objects.count(), 0)

    def test_save_writes_shifts_and_queues_notifications(self):
        self.post_cell()

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(reverse("scheduling:save"), HTTP_HX_REQUEST="true")

        self.assertContains(response, "Muutokset tallennettu")
        shift = Shift.objects.get()
        self.assertEqual(shift.hours, 7.5)
        self.assertEqual(shift.employee, self.employee)
        self.assertFalse(session_editor(self.client).dirty)

        job = MailJob.objects.get()
        self.assertEqual(job.type, MailJob.Type.EMPLOYEE_NEW_SHIFT)
        self.assertEqual(job.payload["employee_id"], str(self.employee.pk))
        self.assertEqual(job.payload["new_hours"], 7.5)

    def test_save_with_nothing_pending(self):
        response = self.client.post(reverse("scheduling:save"), follow=True)

        self.assertContains(response, "Ei tallennettavia muutoksia")

    def test_save_failure_keeps_edits(self):
        self.post_cell()
        store = Mock()
        store.upsert_shifts.side_effect = ShiftStoreError("disk full")

        with patch("apps.scheduling.views.DjangoShiftStore", return_value=store):
            response = self.client.post(reverse("scheduling:save"), HTTP_HX_REQUEST="true")

        self.assertContains(response, "Tallennus epäonnistui")
        self.assertTrue(session_editor(self.client).dirty)
        self.assertEqual(Shift.objects.count(), 0)
        self.assertEqual(MailJob.objects.count(), 0)

    def test_reload_discards_unsaved_edits(self):
        self.post_cell()

        self.client.post(reverse("scheduling:reload"), HTTP_HX_REQUEST="true")

        editor = session_editor(self.client)
        self.assertFalse(editor.dirty)
        self.assertEqual(editor.dates[0], MONDAY)

    def test_export_csv_includes_unsaved_edits(self):
        self.post_cell(hours="8")

        response = self.client.get(reverse("scheduling:export_csv"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv; charset=utf-8")
        self.assertIn('filename="schedule.csv"', response["Content-Disposition"])
        lines = response.content.decode().splitlines()
        self.assertTrue(lines[0].startswith('"Employee","2024-01-01"'))
        self.assertTrue(lines[1].startswith('"Aino Virtanen","8"'))
        self.assertTrue(lines[1].endswith('"8"'))

    def test_print_view(self):
        response = self.client.get(reverse("scheduling:print"))

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "scheduling/print.html")
        self.assertEqual(len(response.context["rows"]), 1)


# =============================================================================
# EMPLOYEE VIEW TESTS
# =============================================================================


class EmployeeViewTests(TestCase):
    """Tests for the employee management views."""

    def setUp(self):
        self.client = Client()
        self.user = create_user()
        self.client.login(username="testuser", password="testpass123")

    def test_employee_list(self):
        create_employee()

        response = self.client.get(reverse("scheduling:employees"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.context["employees"]), 1)

    def test_add_employee(self):
        response = self.client.post(reverse("scheduling:employee_add"), {
            "name": "Bertta Niemi", "email": "bertta@example.com", "department": "Sali",
        })

        self.assertRedirects(response, reverse("scheduling:employees"))
        employee = Employee.objects.get()
        self.assertEqual(employee.name, "Bertta Niemi")
        self.assertTrue(employee.is_active)

    def test_add_employee_requires_name_and_email(self):
        response = self.client.post(reverse("scheduling:employee_add"), {"name": "", "email": ""})

        self.assertEqual(response.status_code, 200)
        self.assertIn("Nimi on pakollinen", response.context["errors"])
        self.assertIn("Sähköposti on pakollinen", response.context["errors"])
        self.assertEqual(Employee.objects.count(), 0)

    def test_add_employee_rejects_duplicate_email(self):
        create_employee(email="aino@example.com")

        response = self.client.post(reverse("scheduling:employee_add"), {
            "name": "Toinen Aino", "email": "AINO@example.com",
        })

        self.assertEqual(response.status_code, 200)
        self.assertEqual(Employee.objects.count(), 1)

    def test_add_employee_rejects_invalid_email(self):
        response = self.client.post(reverse("scheduling:employee_add"), {
            "name": "Bertta", "email": "not-an-email",
        })

        self.assertIn("Sähköposti 'not-an-email' ei ole kelvollinen", response.context["errors"])

    def test_edit_employee(self):
        employee = create_employee()

        response = self.client.post(reverse("scheduling:employee_edit", kwargs={"pk": employee.pk}), {
            "name": "Aino Korhonen", "email": employee.email,
        })

        self.assertRedirects(response, reverse("scheduling:employees"))
        employee.refresh_from_db()
        self.assertEqual(employee.name, "Aino Korhonen")
        self.assertFalse(employee.is_active)

    def test_delete_employee_removes_shifts(self):
        employee = create_employee()
        create_shift(employee=employee)

        response = self.client.post(reverse("scheduling:employee_delete", kwargs={"pk": employee.pk}))

        self.assertRedirects(response, reverse("scheduling:employees"))
        self.assertEqual(Employee.objects.count(), 0)
        self.assertEqual(Shift.objects.count(), 0)

    def test_delete_requires_post(self):
        employee = create_employee()

        response = self.client.get(reverse("scheduling:employee_delete", kwargs={"pk": employee.pk}))

        self.assertEqual(response.status_code, 405)


class EmployeeScheduleViewTests(TestCase):
    """Tests for the read-only employee_schedule view."""

    def setUp(self):
        self.client = Client()
        self.user = create_user()
        self.client.login(username="testuser", password="testpass123")
        self.aino = create_employee("Aino Virtanen")
        self.bertta = create_employee("Bertta Niemi")
        create_employee("Eero Entinen", is_active=False)
        create_shift(employee=self.aino, work_date=MONDAY, hours=8.0)
        create_shift(employee=self.aino, work_date=TUESDAY, hours=6.0, kind=Shift.Kind.LOCKED)
        create_shift(employee=self.aino, work_date=MONDAY + timedelta(days=2), hours=None, kind=Shift.Kind.ABSENT)
        create_shift(employee=self.bertta, work_date=MONDAY, hours=4.0)
        create_shift(employee=self.bertta, work_date=TUESDAY, hours=None, kind=Shift.Kind.HOLIDAY)

    def get_schedule(self, employee=None, **params):
        employee = employee or self.aino
        params.setdefault("start", "2024-01-01")
        return self.client.get(
            reverse("scheduling:employee_schedule", kwargs={"pk": employee.pk}), params,
        )

    def test_login_required(self):
        self.client.logout()

        response = self.get_schedule()

        self.assertEqual(response.status_code, 302)

    def test_shows_only_selected_employee(self):
        response = self.get_schedule()

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "scheduling/employee_schedule.html")
        self.assertEqual([row["employee"] for row in response.context["rows"]], [self.aino])
        self.assertEqual(response.context["own_total"], 14.0)
        self.assertEqual(response.context["shift_days"], 3)
        self.assertEqual(response.context["free_days"], 11)
        self.assertEqual(response.context["day_totals"], [])
        self.assertFalse(response.context["show_all"])

    def test_renders_each_kind(self):
        response = self.get_schedule()

        self.assertContains(response, 'title="Normaali">8 h')
        self.assertContains(response, 'title="Lukittu">6 h')
        self.assertContains(response, 'title="Poissa">P')
        self.assertContains(response, "Näytä kaikki")

    def test_show_all_lists_active_employees(self):
        response = self.get_schedule(show_all="1")

        names = [row["employee"].name for row in response.context["rows"]]
        self.assertEqual(names, ["Aino Virtanen", "Bertta Niemi"])
        self.assertEqual(response.context["day_totals"][0], {"hours": 12.0, "staffed": 2})
        self.assertEqual(response.context["day_totals"][1], {"hours": 6.0, "staffed": 2})
        self.assertContains(response, 'title="Loma">L')
        self.assertContains(response, "Näytä vain omat")

    def test_ignores_unsaved_grid_edits(self):
        self.client.get(reverse("scheduling:grid"), {"start": "2024-01-01"})
        self.client.post(reverse("scheduling:cell_update"), {
            "employee_id": str(self.aino.pk), "work_date": "2024-01-01", "hours": "2",
        })

        response = self.get_schedule()

        self.assertEqual(response.context["rows"][0]["cells"][0].hours, 8.0)
        self.assertTrue(session_editor(self.client).dirty)

    def test_inactive_employee_is_still_viewable(self):
        inactive = Employee.objects.get(is_active=False)

        response = self.get_schedule(employee=inactive, show_all="1")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.context["rows"]), 3)

    def test_unknown_employee_returns_404(self):
        response = self.client.get(
            reverse("scheduling:employee_schedule", kwargs={"pk": "00000000-0000-0000-0000-000000000000"}),
        )

        self.assertEqual(response.status_code, 404)

    def test_employee_list_links_to_schedule(self):
        response = self.client.get(reverse("scheduling:employees"))

        self.assertContains(response, reverse("scheduling:employee_schedule", kwargs={"pk": self.aino.pk}))
