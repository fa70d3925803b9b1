"""
Tests for the REST API.

Covers token authentication, the health check and the read-only
employee, shift and absence endpoints.
"""

from datetime import date, timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone

from rest_framework.test import APIClient

from apps.absences.models import AbsenceRequest
from apps.scheduling.models import Employee, PersonalAccessToken, Shift

User = get_user_model()

MONDAY = date(2024, 1, 1)


def create_user(username="testuser", password="testpass123", **kwargs):
    """Create and return a test user."""
    return User.objects.create_user(username=username, password=password, **kwargs)


def create_token(user=None, label="Test Token", ttl_hours=None):
    """Create and return a PersonalAccessToken and its raw value."""
    if user is None:
        user = create_user()
    return PersonalAccessToken.issue(user=user, label=label, ttl_hours=ttl_hours)


def create_employee(name="Aino Virtanen", email="aino@example.com", **kwargs):
    """Create and return a test Employee instance."""
    return Employee.objects.create(name=name, email=email, **kwargs)


class AuthenticatedAPITestCase(TestCase):
    """Base class with a token-authenticated API client."""

    def setUp(self):
        self.client = APIClient()
        self.user = create_user()
        self.token, raw_token = create_token(user=self.user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {raw_token}")


# =============================================================================
# TOKEN TESTS
# =============================================================================


class PersonalAccessTokenModelTests(TestCase):
    """Tests for the PersonalAccessToken model."""

    def setUp(self):
        self.user = create_user()

    def test_issue_stores_hash_not_raw_token(self):
        token, raw = create_token(user=self.user)

        self.assertNotEqual(token.token_hash, raw)
        self.assertEqual(len(token.token_hash), 64)

    def test_authenticate_raw_token_updates_last_used(self):
        token, raw = create_token(user=self.user)

        found = PersonalAccessToken.authenticate_raw_token(raw)

        self.assertEqual(found, token)
        self.assertIsNotNone(found.last_used_at)

    def test_revoke_is_idempotent(self):
        token, raw = create_token(user=self.user)
        token.revoke()
        revoked_at = token.revoked_at

        token.revoke()

        self.assertEqual(token.revoked_at, revoked_at)
        self.assertIsNone(PersonalAccessToken.authenticate_raw_token(raw))

    def test_expiry(self):
        token, raw = create_token(user=self.user, ttl_hours=1)
        self.assertTrue(token.is_active())

        token.expires_at = timezone.now() - timedelta(minutes=1)
        token.save()

        self.assertTrue(token.is_expired)
        self.assertIsNone(PersonalAccessToken.authenticate_raw_token(raw))


class APIAuthenticationTests(TestCase):
    """Tests for API token authentication."""

    def setUp(self):
        self.client = APIClient()
        self.user = create_user()

    def test_unauthenticated_request_returns_401_or_403(self):
        response = self.client.get("/api/v1/employees/")

        self.assertIn(response.status_code, [401, 403])

    def test_valid_token_authentication(self):
        token_obj, raw_token = create_token(user=self.user)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {raw_token}")
        response = self.client.get("/api/v1/employees/")

        self.assertEqual(response.status_code, 200)

    def test_invalid_token_returns_401(self):
        self.client.credentials(HTTP_AUTHORIZATION="Bearer invalid-token")
        response = self.client.get("/api/v1/employees/")

        self.assertEqual(response.status_code, 401)

    def test_revoked_token_returns_401(self):
        token_obj, raw_token = create_token(user=self.user)
        token_obj.revoke()

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {raw_token}")
        response = self.client.get("/api/v1/employees/")

        self.assertEqual(response.status_code, 401)

    def test_session_authentication(self):
        self.client.login(username="testuser", password="testpass123")

        response = self.client.get("/api/v1/employees/")

        self.assertEqual(response.status_code, 200)

    def test_health_check_public(self):
        response = self.client.get("/api/health/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {"status": "healthy", "service": "vuorolista"})


# =============================================================================
# ENDPOINT TESTS
# =============================================================================


class EmployeeListAPITests(AuthenticatedAPITestCase):
    """Tests for GET /api/v1/employees/"""

    def test_returns_active_only(self):
        create_employee()
        create_employee("Eero Entinen", "eero@example.com", is_active=False)

        response = self.client.get("/api/v1/employees/")

        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["results"][0]["name"], "Aino Virtanen")


class ShiftListAPITests(AuthenticatedAPITestCase):
    """Tests for GET /api/v1/shifts/"""

    def setUp(self):
        super().setUp()
        self.aino = create_employee()
        self.bertta = create_employee("Bertta Niemi", "bertta@example.com")
        Shift.objects.create(employee=self.aino, work_date=MONDAY, hours=8.0)
        Shift.objects.create(employee=self.bertta, work_date=MONDAY + timedelta(days=1), kind=Shift.Kind.ABSENT)
        Shift.objects.create(employee=self.aino, work_date=MONDAY + timedelta(days=10), hours=4.0)

    def test_default_range_is_one_week_from_start(self):
        response = self.client.get("/api/v1/shifts/", {"start": "2024-01-01"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["end"], "2024-01-07")
        self.assertEqual(response.data["count"], 2)

    def test_explicit_range(self):
        response = self.client.get("/api/v1/shifts/", {"start": "2024-01-01", "end": "2024-01-31"})

        self.assertEqual(response.data["count"], 3)

    def test_shift_fields(self):
        response = self.client.get("/api/v1/shifts/", {"start": "2024-01-02", "end": "2024-01-02"})

        shift = response.data["results"][0]
        self.assertEqual(shift["employee_name"], "Bertta Niemi")
        self.assertEqual(shift["kind"], "absent")
        self.assertEqual(shift["kind_display"], "Poissa")
        self.assertIsNone(shift["hours"])

    def test_filter_by_employee(self):
        response = self.client.get(
            "/api/v1/shifts/",
            {"start": "2024-01-01", "end": "2024-01-31", "employee": str(self.aino.pk)},
        )

        self.assertEqual(response.data["count"], 2)

    def test_invalid_employee_returns_400(self):
        response = self.client.get("/api/v1/shifts/", {"start": "2024-01-01", "employee": "nope"})

        self.assertEqual(response.status_code, 400)

    def test_invalid_date_returns_400(self):
        response = self.client.get("/api/v1/shifts/", {"start": "01.01.2024"})

        self.assertEqual(response.status_code, 400)

    def test_end_before_start_returns_400(self):
        response = self.client.get("/api/v1/shifts/", {"start": "2024-01-10", "end": "2024-01-01"})

        self.assertEqual(response.status_code, 400)


class AbsenceListAPITests(AuthenticatedAPITestCase):
    """Tests for GET /api/v1/absences/"""

    def setUp(self):
        super().setUp()
        employee = create_employee()
        AbsenceRequest.objects.create(employee=employee, start_date=MONDAY, end_date=MONDAY)
        AbsenceRequest.objects.create(
            employee=employee,
            start_date=MONDAY + timedelta(days=7),
            end_date=MONDAY + timedelta(days=8),
            status=AbsenceRequest.Status.APPROVED,
            decided_by=self.user,
        )

    def test_list_absences(self):
        response = self.client.get("/api/v1/absences/")

        self.assertEqual(response.data["count"], 2)

    def test_filter_by_status(self):
        response = self.client.get("/api/v1/absences/", {"status": "approved"})

        self.assertEqual(response.data["count"], 1)
        absence = response.data["results"][0]
        self.assertEqual(absence["status_display"], "Hyväksytty")
        self.assertEqual(absence["decided_by_username"], "testuser")

    def test_pending_has_no_decider(self):
        response = self.client.get("/api/v1/absences/", {"status": "pending"})

        self.assertIsNone(response.data["results"][0]["decided_by_username"])

    def test_limit(self):
        response = self.client.get("/api/v1/absences/", {"limit": "1"})

        self.assertEqual(response.data["count"], 1)

    def test_invalid_limit_returns_400(self):
        response = self.client.get("/api/v1/absences/", {"limit": "all"})

        self.assertEqual(response.status_code, 400)
