"""Views for absence requests."""

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.db.models import Case, IntegerField, Value, When
from django.http import HttpRequest, HttpResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.views.decorators.http import require_GET, require_POST, require_http_methods

from apps.scheduling.dates import parse_iso_date
from apps.scheduling.models import Employee

from .models import AbsenceRequest
from .services import decide_absence_request, submit_absence_request


@login_required
@require_GET
def absence_list(request: HttpRequest) -> HttpResponse:
    """All requests, pending ones first."""
    absences = (
        AbsenceRequest.objects.select_related("employee", "decided_by")
        .annotate(pending_first=Case(
            When(status=AbsenceRequest.Status.PENDING, then=Value(0)),
            default=Value(1),
            output_field=IntegerField(),
        ))
        .order_by("pending_first", "-submitted_at")
    )
    return render(request, "absences/list.html", {"absences": absences})


def _parse_date(value: str, label: str, errors: list[str]):
    if not value:
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        errors.append(f"{label} ei ole kelvollinen päivämäärä")
        return None


@login_required
@require_http_methods(["GET", "POST"])
def absence_add(request: HttpRequest) -> HttpResponse:
    """Submit a new absence request."""
    employees = Employee.objects.filter(is_active=True)

    if request.method == "POST":
        employee_id = request.POST.get("employee", "").strip()
        start_raw = request.POST.get("start_date", "").strip()
        end_raw = request.POST.get("end_date", "").strip()
        reason = request.POST.get("reason", "").strip()

        errors = []
        try:
            employee = employees.filter(pk=employee_id).first() if employee_id else None
        except ValidationError:
            employee = None
        if employee is None:
            errors.append("Työntekijä on pakollinen")
        start_date = _parse_date(start_raw, "Alkupäivä", errors)
        if not start_raw:
            errors.append("Alkupäivä on pakollinen")
        end_date = _parse_date(end_raw, "Loppupäivä", errors)

        if not errors:
            try:
                submit_absence_request(
                    employee=employee,
                    start_date=start_date,
                    end_date=end_date,
                    reason=reason,
                )
            except ValueError as exc:
                errors.append(str(exc))
            else:
                messages.success(request, "Poissaolopyyntö lähetetty")
                return redirect("absences:list")

        return render(request, "absences/form.html", {
            "employees": employees,
            "errors": errors,
            "employee_id": employee_id,
            "start_date": start_raw,
            "end_date": end_raw,
            "reason": reason,
        })

    return render(request, "absences/form.html", {"employees": employees})


@login_required
@require_POST
def absence_decide(request: HttpRequest, pk: int, decision: str) -> HttpResponse:
    """Approve or decline a pending request. Staff only."""
    if not request.user.is_staff:
        messages.error(request, "Vain ylläpito voi käsitellä poissaoloja")
        return redirect("absences:list")
    absence = get_object_or_404(AbsenceRequest.objects.select_related("employee"), pk=pk)
    try:
        decide_absence_request(
            absence,
            status=decision,
            by_user=request.user,
            admin_message=request.POST.get("admin_message", ""),
        )
    except ValueError as exc:
        messages.error(request, str(exc))
    else:
        if decision == AbsenceRequest.Status.APPROVED:
            messages.success(request, "Poissaolo hyväksytty")
        else:
            messages.success(request, "Poissaolo hylätty")
    return redirect("absences:list")
