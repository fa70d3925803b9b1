"""
Views for the shift grid.

The grid is edited locally: every cell change, undo, redo and auto-fill
mutates the ScheduleEditor kept in the session, and nothing reaches the
database until the user saves.
"""

from __future__ import annotations

from datetime import timedelta
from functools import partial

from django.conf import settings
from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction
from django.db.models import Q
from django.http import HttpRequest, HttpResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST, require_http_methods

from apps.notifications.services import enqueue_shift_changes

from .dates import align_to_week_start, date_range, parse_iso_date
from .editor import InvalidCellChange, SaveStatus, ScheduleEditor, ShiftKind
from .exports import day_totals, grid_rows, schedule_csv
from .models import Employee, Shift
from .stores import DjangoShiftStore, hydrate_editor, load_editor, load_shifts, new_editor, store_editor


def _requested_dates(request: HttpRequest):
    """Dates for an explicit ?start=, or None when the request does not pick a range."""
    start = request.GET.get("start")
    if not start:
        return None
    try:
        start_date = parse_iso_date(start)
    except ValueError:
        return None
    return date_range(start_date, settings.SCHEDULE_DEFAULT_DAYS)


def _default_dates():
    start = align_to_week_start(timezone.localdate(), settings.SCHEDULE_WEEK_START)
    return date_range(start, settings.SCHEDULE_DEFAULT_DAYS)


def _get_editor(request: HttpRequest, dates=None) -> ScheduleEditor:
    """Session editor, rehydrated when missing or when another range is requested."""
    editor = load_editor(request.session)
    if editor is not None and (dates is None or editor.dates == dates):
        _forget_deleted_employees(request, editor)
        return editor
    if editor is not None and editor.dirty:
        messages.warning(request, "Tallentamattomat muutokset hylättiin")
    return hydrate_editor(dates or _default_dates())


def _forget_deleted_employees(request: HttpRequest, editor: ScheduleEditor) -> None:
    """Drop rows (and their pending edits) for employees deleted since the grid was loaded."""
    existing = {
        str(pk) for pk in Employee.objects.filter(pk__in=editor.employees).values_list("pk", flat=True)
    }
    if editor.forget_employees(set(editor.employees) - existing):
        messages.warning(request, "Poistetun työntekijän tallentamattomat muutokset hylättiin")


def _grid_context(editor: ScheduleEditor) -> dict:
    employees = Employee.objects.filter(pk__in=editor.employees)
    first = editor.dates[0] if editor.dates else timezone.localdate()
    return {
        "dates": editor.dates,
        "rows": grid_rows(editor, employees),
        "dirty": editor.dirty,
        "pending_count": len(editor.pending),
        "can_undo": editor.can_undo,
        "can_redo": editor.can_redo,
        "kinds": Shift.Kind.choices,
        "prev_start": first - timedelta(days=7),
        "next_start": first + timedelta(days=7),
    }


def _render_grid(request: HttpRequest, editor: ScheduleEditor) -> HttpResponse:
    store_editor(request.session, editor)
    if request.htmx:
        return render(request, "scheduling/partials/_grid.html", _grid_context(editor))
    return redirect("scheduling:grid")


@login_required
@require_GET
def grid_view(request: HttpRequest) -> HttpResponse:
    """Main grid - employees as rows, dates as columns."""
    editor = _get_editor(request, _requested_dates(request))
    store_editor(request.session, editor)
    template = "scheduling/partials/_grid.html" if request.htmx else "scheduling/grid.html"
    return render(request, template, _grid_context(editor))


@login_required
@require_POST
def cell_update(request: HttpRequest) -> HttpResponse:
    """HTMX endpoint to change one cell."""
    editor = _get_editor(request)
    try:
        editor.apply_cell_change(
            request.POST.get("employee_id", ""),
            request.POST.get("work_date", ""),
            request.POST.get("hours", "").replace(",", ".").strip(),
            kind=request.POST.get("kind") or ShiftKind.NORMAL,
        )
    except InvalidCellChange as exc:
        if request.htmx:
            return HttpResponse(str(exc), status=400)
        messages.error(request, str(exc))
        return redirect("scheduling:grid")
    return _render_grid(request, editor)


@login_required
@require_POST
def undo(request: HttpRequest) -> HttpResponse:
    editor = _get_editor(request)
    if not editor.undo():
        messages.info(request, "Ei kumottavaa")
    return _render_grid(request, editor)


@login_required
@require_POST
def redo(request: HttpRequest) -> HttpResponse:
    editor = _get_editor(request)
    if not editor.redo():
        messages.info(request, "Ei uudelleen tehtävää")
    return _render_grid(request, editor)


@login_required
@require_POST
def auto_fill(request: HttpRequest) -> HttpResponse:
    """Fill empty weekday cells with normal shifts."""
    editor = _get_editor(request)
    created = editor.auto_generate()
    if created:
        messages.success(request, f"Autogeneroitu {created} vuoroa ({editor.fill_hours:g} h)")
    else:
        messages.info(request, "Ei tyhjiä arkipäiviä täytettäväksi")
    return _render_grid(request, editor)


@login_required
@require_POST
def save_all(request: HttpRequest) -> HttpResponse:
    """Write pending changes to the database."""
    editor = _get_editor(request)
    result = editor.save_all(DjangoShiftStore())

    if result.status == SaveStatus.NOTHING_TO_SAVE:
        messages.info(request, "Ei tallennettavia muutoksia")
    elif result.status == SaveStatus.FAILED:
        messages.error(request, "Tallennus epäonnistui")
    else:
        messages.success(request, "Muutokset tallennettu")
        if result.changes:
            transaction.on_commit(partial(enqueue_shift_changes, result.changes), robust=True)

    return _render_grid(request, editor)


@login_required
@require_POST
def reload(request: HttpRequest) -> HttpResponse:
    """Drop unsaved changes and reload the current range from the database."""
    editor = _get_editor(request)
    editor = hydrate_editor(editor.dates or _default_dates())
    messages.info(request, "Vuorot ladattu uudelleen")
    return _render_grid(request, editor)


@login_required
@require_GET
def export_csv(request: HttpRequest) -> HttpResponse:
    """Download the grid as it is shown, unsaved edits included."""
    editor = _get_editor(request)
    employees = Employee.objects.filter(pk__in=editor.employees)
    response = HttpResponse(schedule_csv(editor, employees), content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = 'attachment; filename="schedule.csv"'
    return response


@login_required
@require_GET
def print_view(request: HttpRequest) -> HttpResponse:
    """Printable table of the grid."""
    editor = _get_editor(request)
    employees = Employee.objects.filter(pk__in=editor.employees)
    return render(request, "scheduling/print.html", {
        "dates": editor.dates,
        "rows": grid_rows(editor, employees),
    })


# =============================================================================
# Employee CRUD
# =============================================================================

def _employee_errors(name: str, email: str, exclude_pk=None) -> list[str]:
    errors = []
    if not name:
        errors.append("Nimi on pakollinen")
    if not email:
        errors.append("Sähköposti on pakollinen")
    else:
        try:
            validate_email(email)
        except ValidationError:
            errors.append(f"Sähköposti '{email}' ei ole kelvollinen")
        else:
            existing = Employee.objects.filter(email__iexact=email)
            if exclude_pk is not None:
                existing = existing.exclude(pk=exclude_pk)
            if existing.exists():
                errors.append(f"Sähköposti '{email}' on jo käytössä")
    return errors


@login_required
@require_GET
def employee_list(request: HttpRequest) -> HttpResponse:
    """List all employees for management."""
    employees = Employee.objects.all()
    return render(request, "scheduling/employees/list.html", {"employees": employees})


@login_required
@require_GET
def employee_schedule(request: HttpRequest, pk) -> HttpResponse:
    """
    Read-only schedule of one employee as saved in the database.

    ``?show_all=1`` adds every active employee with per-day totals, keeping
    the selected employee highlighted. Unsaved grid edits are not shown.
    """
    employee = get_object_or_404(Employee, pk=pk)
    show_all = request.GET.get("show_all") == "1"
    dates = _requested_dates(request) or _default_dates()

    if show_all:
        employees = Employee.objects.filter(Q(is_active=True) | Q(pk=employee.pk))
    else:
        employees = Employee.objects.filter(pk=employee.pk)
    employee_ids = [str(e.pk) for e in employees]

    view = new_editor()
    view.hydrate(employee_ids, dates, load_shifts(employee_ids, dates[0], dates[-1]))
    rows = grid_rows(view, employees)
    own = next(row for row in rows if row["employee"].pk == employee.pk)
    shift_days = sum(1 for entry in own["cells"] if entry is not None)

    return render(request, "scheduling/employee_schedule.html", {
        "employee": employee,
        "show_all": show_all,
        "dates": dates,
        "rows": rows,
        "day_totals": day_totals(rows) if show_all else [],
        "own_total": own["total"],
        "shift_days": shift_days,
        "free_days": len(dates) - shift_days,
        "prev_start": dates[0] - timedelta(days=7),
        "next_start": dates[0] + timedelta(days=7),
    })


@login_required
@require_http_methods(["GET", "POST"])
def employee_add(request: HttpRequest) -> HttpResponse:
    """Add a new employee."""
    if request.method == "POST":
        name = request.POST.get("name", "").strip()
        email = request.POST.get("email", "").strip()
        department = request.POST.get("department", "").strip()

        errors = _employee_errors(name, email)
        if not errors:
            Employee.objects.create(name=name, email=email, department=department)
            return redirect("scheduling:employees")

        return render(request, "scheduling/employees/form.html", {
            "errors": errors,
            "name": name,
            "email": email,
            "department": department,
        })

    return render(request, "scheduling/employees/form.html", {})


@login_required
@require_http_methods(["GET", "POST"])
def employee_edit(request: HttpRequest, pk) -> HttpResponse:
    """Edit an employee."""
    employee = get_object_or_404(Employee, pk=pk)

    if request.method == "POST":
        name = request.POST.get("name", "").strip()
        email = request.POST.get("email", "").strip()
        department = request.POST.get("department", "").strip()
        is_active = request.POST.get("is_active") == "on"

        errors = _employee_errors(name, email, exclude_pk=employee.pk)
        if not errors:
            employee.name = name
            employee.email = email
            employee.department = department
            employee.is_active = is_active
            employee.save()
            return redirect("scheduling:employees")

        return render(request, "scheduling/employees/form.html", {
            "employee": employee,
            "errors": errors,
            "name": name,
            "email": email,
            "department": department,
            "is_active": is_active,
        })

    return render(request, "scheduling/employees/form.html", {
        "employee": employee,
        "name": employee.name,
        "email": employee.email,
        "department": employee.department,
        "is_active": employee.is_active,
    })


@login_required
@require_POST
def employee_delete(request: HttpRequest, pk) -> HttpResponse:
    """Delete an employee and their shifts."""
    employee = get_object_or_404(Employee, pk=pk)
    employee.delete()
    return redirect("scheduling:employees")
