"""REST API views."""

from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.absences.models import AbsenceRequest
from apps.scheduling.dates import align_to_week_start, parse_iso_date
from apps.scheduling.models import Employee, Shift

from .serializers import AbsenceRequestSerializer, EmployeeSerializer, ShiftSerializer


@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request: Request) -> Response:
    """Health check endpoint."""
    return Response({"status": "healthy", "service": "vuorolista"})


class EmployeeListView(APIView):
    """GET /api/v1/employees/ - List active employees."""
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        employees = Employee.objects.filter(is_active=True)
        data = EmployeeSerializer(employees, many=True).data
        return Response({"count": len(data), "results": data})


class ShiftListView(APIView):
    """GET /api/v1/shifts/?start=&end=&employee= - Persisted shifts in a date range."""
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        try:
            start = parse_iso_date(request.query_params["start"]) if request.query_params.get("start") else None
            end = parse_iso_date(request.query_params["end"]) if request.query_params.get("end") else None
        except ValueError:
            return Response({"detail": "Dates must be YYYY-MM-DD"}, status=status.HTTP_400_BAD_REQUEST)

        if start is None:
            start = align_to_week_start(timezone.localdate(), settings.SCHEDULE_WEEK_START)
        if end is None:
            end = start + timedelta(days=6)
        if end < start:
            return Response({"detail": "end must not be before start"}, status=status.HTTP_400_BAD_REQUEST)

        shifts = Shift.objects.select_related("employee").filter(work_date__range=(start, end))
        employee = request.query_params.get("employee")
        if employee:
            try:
                shifts = shifts.filter(employee_id=employee)
                data = ShiftSerializer(shifts, many=True).data
            except ValidationError:
                return Response({"detail": "Invalid employee id"}, status=status.HTTP_400_BAD_REQUEST)
        else:
            data = ShiftSerializer(shifts, many=True).data

        return Response({
            "start": start.isoformat(),
            "end": end.isoformat(),
            "count": len(data),
            "results": data,
        })


class AbsenceListView(APIView):
    """GET /api/v1/absences/?status= - List absence requests."""
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        absences = AbsenceRequest.objects.select_related("employee", "decided_by")
        status_filter = request.query_params.get("status")
        if status_filter:
            absences = absences.filter(status=status_filter)
        try:
            limit = min(int(request.query_params.get("limit", 50)), 200)
        except ValueError:
            return Response({"detail": "limit must be an integer"}, status=status.HTTP_400_BAD_REQUEST)
        data = AbsenceRequestSerializer(absences[:limit], many=True).data
        return Response({"count": len(data), "results": data})
