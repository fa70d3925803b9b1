"""
Core application for Vuorolista.

Shared pieces used across the other apps:
- Template context processors
- The source manifest export (manage.py export_manifest)
"""
