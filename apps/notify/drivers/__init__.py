"""
Delivery drivers for sending incident events to incident-management APIs.
"""

from apps.notify.drivers.base import (
    BaseNotifyDriver,
    DeliveryResponse,
    IncidentEnvelope,
    IncidentLink,
    IncidentPayload,
)
from apps.notify.drivers.pagerduty import PagerDutyNotifyDriver

__all__ = [
    "BaseNotifyDriver",
    "DeliveryResponse",
    "IncidentEnvelope",
    "IncidentLink",
    "IncidentPayload",
    "PagerDutyNotifyDriver",
]
