"""URL configuration for the shift grid."""

from django.urls import path

from . import views

app_name = "scheduling"

urlpatterns = [
    path("", views.grid_view, name="grid"),
    path("grid/cell/", views.cell_update, name="cell_update"),
    path("grid/undo/", views.undo, name="undo"),
    path("grid/redo/", views.redo, name="redo"),
    path("grid/auto-fill/", views.auto_fill, name="auto_fill"),
    path("grid/save/", views.save_all, name="save"),
    path("grid/reload/", views.reload, name="reload"),
    path("grid/export.csv", views.export_csv, name="export_csv"),
    path("grid/print/", views.print_view, name="print"),
    # Employee CRUD
    path("employees/", views.employee_list, name="employees"),
    path("employees/add/", views.employee_add, name="employee_add"),
    path("employees/<uuid:pk>/schedule/", views.employee_schedule, name="employee_schedule"),
    path("employees/<uuid:pk>/edit/", views.employee_edit, name="employee_edit"),
    path("employees/<uuid:pk>/delete/", views.employee_delete, name="employee_delete"),
]
