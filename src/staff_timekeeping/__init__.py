"""Staff timekeeping package.

Organized by feature modules (attendance, policies, timesheet, users, ...)
with a thin Flask controller layer over async service/repository layers.
"""
