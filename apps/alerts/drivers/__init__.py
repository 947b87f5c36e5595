"""
Event drivers for ingesting monitoring events.
"""

from apps.alerts.drivers.base import BaseAlertDriver, Event, EventParseError
from apps.alerts.drivers.sensu import SensuEventDriver

__all__ = [
    "BaseAlertDriver",
    "Event",
    "EventParseError",
    "SensuEventDriver",
]
