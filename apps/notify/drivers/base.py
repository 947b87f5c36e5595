"""Base driver and data structures for incident delivery.

The data structures mirror the PagerDuty Events API v2 wire format. Empty
optional fields are left out of the serialized form, the same way the
Events API clients omit them.

Public API:
- IncidentPayload
- IncidentLink
- IncidentEnvelope
- DeliveryResponse
- BaseNotifyDriver
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

ACTION_TRIGGER = "trigger"
ACTION_RESOLVE = "resolve"


@dataclass
class IncidentLink:
    text: str
    href: str

    def to_dict(self) -> dict[str, str]:
        return {"text": self.text, "href": self.href}


@dataclass
class IncidentPayload:
    """The ``payload`` section of an Events API v2 event."""

    summary: str
    source: str
    severity: str

    timestamp: str = ""
    component: str = ""
    group: str = ""
    class_: str = ""
    details: Any = None  # string or any JSON-able structure

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "summary": self.summary,
            "source": self.source,
            "severity": str(self.severity),
        }
        if self.timestamp:
            data["timestamp"] = self.timestamp
        if self.component:
            data["component"] = self.component
        if self.group:
            data["group"] = self.group
        if self.class_:
            data["class"] = self.class_
        if self.details is not None:
            data["custom_details"] = self.details
        return data


@dataclass
class IncidentEnvelope:
    """A complete Events API v2 event."""

    routing_key: str
    action: str  # "trigger" or "resolve"
    dedup_key: str
    payload: Optional[IncidentPayload] = None

    client: str = ""
    client_url: str = ""
    links: list[IncidentLink] = field(default_factory=list)
    images: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "routing_key": self.routing_key,
            "event_action": self.action,
        }
        if self.dedup_key:
            data["dedup_key"] = self.dedup_key
        if self.images:
            data["images"] = list(self.images)
        if self.links:
            data["links"] = [link.to_dict() for link in self.links]
        if self.client:
            data["client"] = self.client
        if self.client_url:
            data["client_url"] = self.client_url
        if self.payload is not None:
            data["payload"] = self.payload.to_dict()
        return data


@dataclass
class DeliveryResponse:
    """Response body of the Events API (or one synthesized for relays)."""

    status: str = ""
    dedup_key: str = ""
    message: str = ""
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "DeliveryResponse":
        """Build a response from a decoded JSON body.

        Raises:
            ValueError: if the body is not a JSON object of the expected shape.
        """
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        errors = data.get("errors") or []
        if not isinstance(errors, list):
            raise ValueError("'errors' must be a list")
        return cls(
            status=str(data.get("status") or ""),
            dedup_key=str(data.get("dedup_key") or ""),
            message=str(data.get("message") or ""),
            errors=[str(e) for e in errors],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "dedup_key": self.dedup_key,
            "message": self.message,
            "errors": list(self.errors),
        }


class BaseNotifyDriver(ABC):
    """Abstract base class for incident delivery drivers."""

    name: str = "base"

    @abstractmethod
    def validate_config(self) -> bool:
        """Validate that the driver configuration is valid."""

    @abstractmethod
    def send(self, envelope: IncidentEnvelope, timeout: Optional[float] = None) -> DeliveryResponse:
        """Send an envelope and return the parsed response.

        Args:
            envelope: The event to deliver
            timeout: Seconds to wait for the exchange (None waits indefinitely)

        Returns:
            The DeliveryResponse on success

        Raises:
            DeliveryError: on network failure, timeout or an error response
        """
