"""
Notify app.

Turns a monitoring event into a PagerDuty Events API v2 call:
credentials → severity → rendered fields → envelope → delivery (with one
fallback attempt), optionally fanned out to several contacts.
"""

__version__ = "1.0.0"
