"""
Sensu Go driver.

Handles events piped to a Sensu Go handler on stdin.
See: https://docs.sensu.io/sensu-go/latest/observability-pipeline/observe-events/events/
"""

from typing import Any

from apps.alerts.drivers.base import BaseAlertDriver, Event, EventParseError


class SensuEventDriver(BaseAlertDriver):
    """
    Driver for Sensu Go events.

    Sensu sends events in the following format:
    {
        "timestamp": 1552594758,
        "metadata": {"namespace": "default", "labels": {...}, "annotations": {...}},
        "entity": {
            "entity_class": "agent",
            "metadata": {"name": "webserver01", "namespace": "default", "labels": {...}, "annotations": {...}},
            ...
        },
        "check": {
            "metadata": {"name": "check-http", "namespace": "default", "labels": {...}, "annotations": {...}},
            "status": 2,
            "output": "CRITICAL: HTTP 500",
            ...
        }
    }
    """

    name = "sensu"

    def validate(self, payload: dict[str, Any]) -> bool:
        """Check if this looks like a Sensu event with a check."""
        if not isinstance(payload, dict):
            return False
        return isinstance(payload.get("entity"), dict) and isinstance(payload.get("check"), dict)

    def parse(self, payload: dict[str, Any]) -> Event:
        """Parse a Sensu event payload."""
        if not isinstance(payload, dict):
            raise EventParseError("event payload must be a JSON object")
        if not isinstance(payload.get("check"), dict):
            raise EventParseError("event does not contain check")
        if not isinstance(payload.get("entity"), dict):
            raise EventParseError("event does not contain entity")

        metadata = payload.get("metadata") or {}
        entity = payload["entity"]
        entity_meta = entity.get("metadata") or {}
        check = payload["check"]
        check_meta = check.get("metadata") or {}

        namespace = (
            metadata.get("namespace")
            or entity_meta.get("namespace")
            or check_meta.get("namespace")
            or "default"
        )

        status = check.get("status", 0)
        try:
            status = int(status)
        except (TypeError, ValueError):
            raise EventParseError(f"invalid check status: {status!r}")

        try:
            timestamp = int(payload.get("timestamp") or 0)
        except (TypeError, ValueError):
            raise EventParseError(f"invalid event timestamp: {payload.get('timestamp')!r}")

        return Event(
            entity_name=str(entity_meta.get("name", "")),
            check_name=str(check_meta.get("name", "")),
            check_status=status,
            check_output=str(check.get("output") or ""),
            timestamp=timestamp,
            namespace=str(namespace),
            annotations=self._string_map(metadata.get("annotations")),
            labels=self._string_map(metadata.get("labels")),
            check_annotations=self._string_map(check_meta.get("annotations")),
            check_labels=self._string_map(check_meta.get("labels")),
            entity_annotations=self._string_map(entity_meta.get("annotations")),
            entity_labels=self._string_map(entity_meta.get("labels")),
            raw_payload=payload,
        )
