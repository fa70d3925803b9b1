"""
Absence requests.

Employees ask for time off; an admin approves or declines. Submitting a
request queues an email to the admins, deciding one emails the employee.
"""
