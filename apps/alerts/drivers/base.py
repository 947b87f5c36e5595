"""Base driver and data structures for monitoring event ingestion.

Drivers normalize an incoming monitoring event (e.g. a Sensu Go event read
from the handler's stdin) into a common internal format that the notify
pipeline consumes.

Public API:
- Event
- EventParseError
- BaseAlertDriver
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class EventParseError(ValueError):
    """Raised when an inbound payload cannot be turned into an Event."""


@dataclass
class Event:
    """Standardized monitoring event that all drivers produce.

    An event always carries a check record; drivers refuse payloads that
    don't have one.
    """

    # Required fields
    entity_name: str
    check_name: str
    check_status: int  # 0 = OK, anything else is a problem

    # Optional fields with defaults
    check_output: str = ""
    timestamp: int = 0  # epoch seconds
    namespace: str = "default"
    annotations: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    check_annotations: dict[str, str] = field(default_factory=dict)
    check_labels: dict[str, str] = field(default_factory=dict)
    entity_annotations: dict[str, str] = field(default_factory=dict)
    entity_labels: dict[str, str] = field(default_factory=dict)
    raw_payload: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate and normalize fields after initialization."""
        if self.check_status is None or int(self.check_status) < 0:
            raise EventParseError(f"invalid check status: {self.check_status!r}")
        self.check_status = int(self.check_status)
        self.check_output = self.check_output or ""

    @property
    def is_resolution(self) -> bool:
        return self.check_status == 0

    def to_dict(self) -> dict[str, Any]:
        """Return the full event as a JSON-serializable dict.

        The raw payload is copied, never mutated, and the check output always
        reflects this instance (which may hold a truncated copy of the output).
        """
        data = copy.deepcopy(self.raw_payload) if self.raw_payload else {}

        metadata = data.setdefault("metadata", {})
        metadata.setdefault("namespace", self.namespace)
        metadata.setdefault("labels", dict(self.labels))
        metadata.setdefault("annotations", dict(self.annotations))

        entity = data.setdefault("entity", {})
        entity_meta = entity.setdefault("metadata", {})
        entity_meta.setdefault("name", self.entity_name)
        entity_meta.setdefault("namespace", self.namespace)
        entity_meta.setdefault("labels", dict(self.entity_labels))
        entity_meta.setdefault("annotations", dict(self.entity_annotations))

        check = data.setdefault("check", {})
        check_meta = check.setdefault("metadata", {})
        check_meta.setdefault("name", self.check_name)
        check_meta.setdefault("namespace", self.namespace)
        check_meta.setdefault("labels", dict(self.check_labels))
        check_meta.setdefault("annotations", dict(self.check_annotations))
        check["status"] = self.check_status
        check["output"] = self.check_output

        data.setdefault("timestamp", self.timestamp)
        return data

    def template_context(self) -> dict[str, Any]:
        """Build the variables available to field templates.

        Besides the raw Sensu fields, ``entity`` and ``check`` expose flat
        ``name``/``labels``/``annotations`` keys so templates can write
        ``{{ entity.name }}`` instead of ``{{ entity.metadata.name }}``.
        """
        event = self.to_dict()
        entity = {
            **event.get("entity", {}),
            "name": self.entity_name,
            "namespace": self.namespace,
            "labels": self.entity_labels,
            "annotations": self.entity_annotations,
        }
        check = {
            **event.get("check", {}),
            "name": self.check_name,
            "status": self.check_status,
            "output": self.check_output,
            "labels": self.check_labels,
            "annotations": self.check_annotations,
        }
        return {
            "event": event,
            "entity": entity,
            "check": check,
            "namespace": self.namespace,
            "timestamp": self.timestamp,
            "labels": self.labels,
            "annotations": self.annotations,
        }


class BaseAlertDriver(ABC):
    """Abstract base class for event source drivers."""

    name: str = "base"

    @abstractmethod
    def validate(self, payload: dict[str, Any]) -> bool:
        """Validate that a payload is from this source and can be parsed."""

    @abstractmethod
    def parse(self, payload: dict[str, Any]) -> Event:
        """Parse an incoming payload into an Event."""

    @staticmethod
    def _string_map(value: Any) -> dict[str, str]:
        """Coerce a labels/annotations mapping to ``dict[str, str]``."""
        if not isinstance(value, dict):
            return {}
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
