"""
Vuorolista Django applications package.

This package contains all Django apps for the shift scheduling system:
- core: Shared context processors and the source manifest export
- scheduling: Employees, shifts and the editable shift grid
- absences: Absence request workflow
- notifications: Notification settings, mail queue and dispatcher
- api: REST API endpoints for external integrations
"""
