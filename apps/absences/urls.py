"""URL configuration for absence requests."""

from django.urls import path

from . import views

app_name = "absences"

urlpatterns = [
    path("", views.absence_list, name="list"),
    path("add/", views.absence_add, name="add"),
    path("<int:pk>/approve/", views.absence_decide, {"decision": "approved"}, name="approve"),
    path("<int:pk>/decline/", views.absence_decide, {"decision": "declined"}, name="decline"),
]
