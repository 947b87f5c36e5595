"""Resolved handler configuration.

``HandlerConfig`` is built once per process from Django settings (see
config/settings.py for the PAGERDUTY_* environment variables) and may be
overridden by ``handle_event`` command flags. It is frozen: per-event values
such as the resolved routing key are passed down the call chain instead.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any

DEFAULT_DEDUP_KEY_TEMPLATE = "{{ entity.name }}-{{ check.name }}"
DEFAULT_SUMMARY_TEMPLATE = "{{ entity.name }}/{{ check.name }} : {{ check.output }}"
DEFAULT_TEAM_SUFFIX = "_pagerduty_token"
DEFAULT_CLIENT_NAME = "Sensu"
DEFAULT_TIMEOUT = 30


class DetailsFormat(str, Enum):
    STRING = "string"
    JSON = "json"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in {f.value for f in cls}


# Django setting name for each HandlerConfig field
SETTINGS_MAP = {
    "auth_token": "PAGERDUTY_TOKEN",
    "team_name": "PAGERDUTY_TEAM",
    "team_suffix": "PAGERDUTY_TEAM_SUFFIX",
    "dedup_key_template": "PAGERDUTY_DEDUP_KEY_TEMPLATE",
    "status_map_json": "PAGERDUTY_STATUS_MAP",
    "summary_template": "PAGERDUTY_SUMMARY_TEMPLATE",
    "details_template": "PAGERDUTY_DETAILS_TEMPLATE",
    "details_format": "PAGERDUTY_DETAILS_FORMAT",
    "alternate_endpoint": "PAGERDUTY_ALTERNATE_ENDPOINT",
    "timeout": "PAGERDUTY_TIMEOUT",
    "contact_routing": "PAGERDUTY_CONTACT_ROUTING",
    "client_name": "PAGERDUTY_CLIENT_NAME",
    "base_url": "PAGERDUTY_SENSU_BASE_URL",
    "link_annotations": "PAGERDUTY_LINK_ANNOTATIONS",
    "use_event_timestamp": "PAGERDUTY_USE_EVENT_TIMESTAMP",
    "class_template": "PAGERDUTY_CLASS_TEMPLATE",
    "group_template": "PAGERDUTY_GROUP_TEMPLATE",
    "component_template": "PAGERDUTY_COMPONENT_TEMPLATE",
}


@dataclass(frozen=True)
class HandlerConfig:
    auth_token: str = ""
    team_name: str = ""
    team_suffix: str = DEFAULT_TEAM_SUFFIX
    dedup_key_template: str = DEFAULT_DEDUP_KEY_TEMPLATE
    status_map_json: str = ""
    summary_template: str = DEFAULT_SUMMARY_TEMPLATE
    details_template: str = ""
    details_format: str = DetailsFormat.STRING.value
    alternate_endpoint: str = ""
    timeout: int = DEFAULT_TIMEOUT  # seconds, 0 disables the bound
    contact_routing: bool = False
    client_name: str = DEFAULT_CLIENT_NAME
    base_url: str = ""
    link_annotations: bool = False
    use_event_timestamp: bool = False
    class_template: str = ""
    group_template: str = ""
    component_template: str = ""

    @classmethod
    def from_settings(cls, **overrides: Any) -> "HandlerConfig":
        """Build the config from Django settings, applying non-None overrides."""
        from django.conf import settings

        values: dict[str, Any] = {}
        for f in fields(cls):
            setting = SETTINGS_MAP[f.name]
            if hasattr(settings, setting):
                values[f.name] = getattr(settings, setting)
        config = cls(**values)
        return config.with_overrides(**overrides)

    def with_overrides(self, **overrides: Any) -> "HandlerConfig":
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"unknown handler config fields: {sorted(unknown)}")
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    @property
    def timeout_seconds(self) -> float | None:
        return float(self.timeout) if self.timeout and self.timeout > 0 else None
