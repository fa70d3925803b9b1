"""
Notifications.

- services: producers that queue mail jobs or email directly, never raising
- dispatcher: consumer that drains the MailJob queue (process_mail_jobs command)
- settings page for the AppSettings singleton
"""
