"""URL configuration for the REST API."""

from django.urls import path

from . import views

app_name = "api"

urlpatterns = [
    path("health/", views.health_check, name="health"),
    path("v1/employees/", views.EmployeeListView.as_view(), name="employees"),
    path("v1/shifts/", views.ShiftListView.as_view(), name="shifts"),
    path("v1/absences/", views.AbsenceListView.as_view(), name="absences"),
]
