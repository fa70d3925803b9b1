"""
Scheduling (shift grid) application.

This is the main application of Vuorolista. It handles:
- Employees, the rows of the grid
- Persisted shifts, one per employee and date
- The session-held editor with pending changes and undo/redo
- Auto-fill, save, CSV and printable exports
- HTMX-powered grid editing
"""
