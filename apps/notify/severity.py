"""Check status to PagerDuty severity mapping.

A status map is configured as JSON keyed by severity, e.g.::

    {"info": [0, 130], "warning": [1], "critical": [2], "error": [4]}

and is inverted into a status -> severity lookup. Statuses the map does not
cover fall back to the Sensu defaults (0 info, 1 warning, 2 critical,
anything else warning).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from apps.notify.exceptions import StatusMapError


class Severity(str, Enum):
    """Severities accepted by the PagerDuty Events API v2."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


DEFAULT_SEVERITIES = (Severity.INFO, Severity.WARNING, Severity.CRITICAL)


@dataclass(frozen=True)
class SeverityMap:
    """Validated status -> severity lookup."""

    statuses: Mapping[int, Severity] = field(default_factory=lambda: MappingProxyType({}))

    def __len__(self) -> int:
        return len(self.statuses)

    def get(self, status: int) -> Severity | None:
        return self.statuses.get(status)


def parse_status_map(status_map_json: str) -> SeverityMap:
    """Parse and invert a severity -> statuses JSON document.

    Raises:
        StatusMapError: on malformed JSON, a non-object document, a status that
            is not a non-negative integer, or an unknown severity label.
    """
    try:
        raw = json.loads(status_map_json)
    except json.JSONDecodeError as e:
        raise StatusMapError(f"invalid status map JSON: {e}") from e

    if not isinstance(raw, dict):
        raise StatusMapError("status map must be a JSON object of severity -> [statuses]")

    valid = {s.value for s in Severity}
    inverted: dict[int, Severity] = {}
    for label, statuses in raw.items():
        if label not in valid:
            raise StatusMapError(f"invalid pagerduty severity: {label}")
        if statuses is None:
            continue
        if not isinstance(statuses, list):
            raise StatusMapError(f"statuses for severity {label} must be a list")
        for status in statuses:
            # bool is an int subclass; reject it along with negatives and floats
            if isinstance(status, bool) or not isinstance(status, int) or status < 0:
                raise StatusMapError(f"invalid status {status!r} for severity {label}")
            inverted[status] = Severity(label)

    return SeverityMap(statuses=MappingProxyType(inverted))


def get_severity(status: int, status_map_json: str = "") -> Severity:
    """Return the PagerDuty severity for a check status."""
    if status_map_json:
        mapped = parse_status_map(status_map_json).get(status)
        if mapped is not None:
            return mapped

    if 0 <= status < len(DEFAULT_SEVERITIES):
        return DEFAULT_SEVERITIES[status]
    return Severity.WARNING
