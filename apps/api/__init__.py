"""
REST API application for Vuorolista.

Read-only endpoints for external systems:
- Employees and persisted shifts
- Absence requests
- Token-based authentication for API clients

Built with Django REST Framework.
"""
