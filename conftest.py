"""
Pytest configuration and shared fixtures for the Vuorolista project.

This module provides reusable fixtures for testing Django models, views, and API endpoints.
Fixtures are designed to work with pytest-django.
"""

import pytest
from datetime import date, timedelta

from django.contrib.auth import get_user_model
from django.test import Client
from django.utils import timezone

from rest_framework.test import APIClient


User = get_user_model()


# =============================================================================
# USER FIXTURES
# =============================================================================


@pytest.fixture
def user(db):
    """Create and return a standard test user."""
    return User.objects.create_user(
        username="testuser",
        password="testpass123",
        email="test@example.com",
    )


@pytest.fixture
def admin_user(db):
    """Create and return an admin/superuser."""
    return User.objects.create_superuser(
        username="admin",
        password="adminpass123",
        email="admin@example.com",
    )


# =============================================================================
# CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def client():
    """Provide a Django test client."""
    return Client()


@pytest.fixture
def authenticated_client(client, user):
    """Provide a Django test client logged in as the test user."""
    client.login(username="testuser", password="testpass123")
    return client


@pytest.fixture
def api_client():
    """Provide a DRF API test client."""
    return APIClient()


@pytest.fixture
def authenticated_api_client(api_client, user):
    """Provide an authenticated API client using token auth."""
    from apps.scheduling.models import PersonalAccessToken

    token_obj, raw_token = PersonalAccessToken.issue(
        user=user,
        label="Test Token",
    )
    api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {raw_token}")
    return api_client


# =============================================================================
# MODEL FIXTURES
# =============================================================================


@pytest.fixture
def employee(db):
    """Create and return an active Employee."""
    from apps.scheduling.models import Employee

    return Employee.objects.create(
        name="Aino Virtanen",
        email="aino@example.com",
        department="Keittiö",
    )


@pytest.fixture
def inactive_employee(db):
    """Create and return an inactive Employee."""
    from apps.scheduling.models import Employee

    return Employee.objects.create(
        name="Eero Entinen",
        email="eero@example.com",
        is_active=False,
    )


@pytest.fixture
def monday():
    """A fixed Monday, so weekday logic is deterministic."""
    return date(2024, 1, 1)


@pytest.fixture
def shift(db, employee, monday):
    """Create and return an eight hour Shift on Monday."""
    from apps.scheduling.models import Shift

    return Shift.objects.create(
        employee=employee,
        work_date=monday,
        kind=Shift.Kind.NORMAL,
        hours=8.0,
    )


@pytest.fixture
def absence_request(db, employee, monday):
    """Create and return a pending AbsenceRequest."""
    from apps.absences.models import AbsenceRequest

    return AbsenceRequest.objects.create(
        employee=employee,
        start_date=monday,
        end_date=monday + timedelta(days=2),
        reason="Lääkäri",
    )


@pytest.fixture
def app_settings(db):
    """Stored notification settings with one admin recipient."""
    from apps.notifications.models import AppSettings

    settings_obj = AppSettings(admin_notification_emails=["boss@example.com"])
    settings_obj.save()
    return settings_obj


@pytest.fixture
def access_token(db, user):
    """Create and return a PersonalAccessToken and its raw value as a tuple."""
    from apps.scheduling.models import PersonalAccessToken

    return PersonalAccessToken.issue(
        user=user,
        label="Test Token",
    )


@pytest.fixture
def expired_token(db, user):
    """Create and return an already-expired token."""
    from apps.scheduling.models import PersonalAccessToken

    token_obj, raw_token = PersonalAccessToken.issue(
        user=user,
        label="Expired Token",
        ttl_hours=1,
    )
    token_obj.expires_at = timezone.now() - timedelta(hours=1)
    token_obj.save()
    return token_obj, raw_token


@pytest.fixture
def revoked_token(db, user):
    """Create and return a revoked token."""
    from apps.scheduling.models import PersonalAccessToken

    token_obj, raw_token = PersonalAccessToken.issue(
        user=user,
        label="Revoked Token",
    )
    token_obj.revoke()
    return token_obj, raw_token


# =============================================================================
# COMPLEX SCENARIO FIXTURES
# =============================================================================


@pytest.fixture
def staffed_week(db, monday):
    """Two employees with a few stored shifts in the week starting Monday."""
    from apps.scheduling.models import Employee, Shift

    e1 = Employee.objects.create(name="Aada", email="aada@example.com")
    e2 = Employee.objects.create(name="Bertta", email="bertta@example.com")

    s1 = Shift.objects.create(employee=e1, work_date=monday, hours=8.0)
    s2 = Shift.objects.create(
        employee=e1, work_date=monday + timedelta(days=1), kind=Shift.Kind.ABSENT,
    )
    s3 = Shift.objects.create(employee=e2, work_date=monday + timedelta(days=2), hours=6.5)

    return {
        "employees": [e1, e2],
        "shifts": [s1, s2, s3],
        "dates": [monday + timedelta(days=i) for i in range(7)],
    }


# =============================================================================
# UTILITY FIXTURES
# =============================================================================


@pytest.fixture
def freeze_time():
    """
    Fixture that provides a context manager for freezing time.

    Usage:
        def test_something(freeze_time):
            with freeze_time(timezone.now()):
                # Time is frozen here
                pass
    """
    from unittest.mock import patch

    class TimeFreezer:
        def __call__(self, frozen_time):
            return patch("django.utils.timezone.now", return_value=frozen_time)

    return TimeFreezer()
