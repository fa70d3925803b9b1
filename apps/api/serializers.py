"""
Serializers for the REST API.

Provides read-only serializers for external systems to consume schedule data.
"""

from rest_framework import serializers

from apps.absences.models import AbsenceRequest
from apps.scheduling.models import Employee, Shift


class EmployeeSerializer(serializers.ModelSerializer):
    """Serializer for Employee model (grid row)."""

    class Meta:
        model = Employee
        fields = [
            "id",
            "name",
            "email",
            "department",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ShiftSerializer(serializers.ModelSerializer):
    """Serializer for a persisted shift with the employee name."""

    employee_name = serializers.CharField(source="employee.name", read_only=True)
    kind_display = serializers.CharField(source="get_kind_display", read_only=True)

    class Meta:
        model = Shift
        fields = [
            "id",
            "employee",
            "employee_name",
            "work_date",
            "kind",
            "kind_display",
            "hours",
            "updated_at",
        ]
        read_only_fields = fields


class AbsenceRequestSerializer(serializers.ModelSerializer):
    """Serializer for absence requests."""

    employee_name = serializers.CharField(source="employee.name", read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    decided_by_username = serializers.CharField(
        source="decided_by.username", read_only=True, allow_null=True
    )

    class Meta:
        model = AbsenceRequest
        fields = [
            "id",
            "employee",
            "employee_name",
            "start_date",
            "end_date",
            "reason",
            "status",
            "status_display",
            "submitted_at",
            "decided_at",
            "decided_by_username",
        ]
        read_only_fields = fields
