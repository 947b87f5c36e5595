"""Field composition for PagerDuty events.

Renders every human-facing field of an Events API v2 event from a
monitoring event through the configured templates, and enforces the
Events API size limits:

- summary: at most 1024 characters (cut, no ellipsis)
- check output: at most 256000 bytes before any template sees it, since the
  whole event must stay under PagerDuty's 512KB limit
"""

from __future__ import annotations

import dataclasses
import json
import logging
import re
import urllib.parse
from dataclasses import dataclass, field
from typing import Any, Optional

from apps.alerts.drivers.base import Event
from apps.notify.config import DetailsFormat, HandlerConfig
from apps.notify.drivers.base import (
    ACTION_RESOLVE,
    ACTION_TRIGGER,
    IncidentEnvelope,
    IncidentLink,
    IncidentPayload,
)
from apps.notify.exceptions import RenderError
from apps.notify.severity import Severity
from apps.notify.templating import TemplateEvaluator, get_default_evaluator, unix_time

logger = logging.getLogger(__name__)

MAX_SUMMARY_LENGTH = 1024
MAX_OUTPUT_BYTES = 256000
TRUNCATION_MARKER = "WARNING Truncated:i\n"
TRUNCATION_SUFFIX = "..."

FALLBACK_DETAILS = (
    "Original payload had an error, maybe due to event length. "
    "PagerDuty Events must be less than 512KB"
)

_URI_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")


def truncate_check_output(event: Event) -> Event:
    """Return an event whose check output fits in MAX_OUTPUT_BYTES.

    The input event is never modified; an oversized output produces a copy
    holding the marker, the first MAX_OUTPUT_BYTES bytes and an ellipsis.
    """
    encoded = event.check_output.encode("utf-8")
    if len(encoded) <= MAX_OUTPUT_BYTES:
        return event

    logger.warning(
        "Warning Incident Payload Truncated! check output is %d bytes (limit %d)",
        len(encoded),
        MAX_OUTPUT_BYTES,
    )
    # drop a multi-byte character split by the cut
    head = encoded[:MAX_OUTPUT_BYTES].decode("utf-8", errors="ignore")
    return dataclasses.replace(
        event, check_output=f"{TRUNCATION_MARKER}{head}{TRUNCATION_SUFFIX}"
    )


def is_link(value: str) -> bool:
    """True when value is an absolute URI with a scheme and a host."""
    if not value or value != value.strip() or any(c.isspace() for c in value):
        return False
    try:
        parts = urllib.parse.urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(_URI_SCHEME.match(parts.scheme)) and bool(parts.netloc)


def event_action(event: Event) -> str:
    """Status 0 resolves the incident; anything else triggers it."""
    return ACTION_RESOLVE if event.check_status == 0 else ACTION_TRIGGER


@dataclass
class ComposedFields:
    """Everything rendered from one event for one delivery."""

    source: str
    check_name: str
    action: str
    severity: Severity
    summary: str
    dedup_key: str
    details: Any = None
    group: str = ""
    component: str = ""
    class_: str = ""
    timestamp: str = ""
    client: str = ""
    client_url: str = ""
    links: list[IncidentLink] = field(default_factory=list)

    def to_envelope(self, routing_key: str) -> IncidentEnvelope:
        return IncidentEnvelope(
            routing_key=routing_key,
            action=self.action,
            dedup_key=self.dedup_key,
            payload=IncidentPayload(
                summary=self.summary,
                source=self.source,
                severity=self.severity.value,
                timestamp=self.timestamp,
                component=self.component,
                group=self.group,
                class_=self.class_,
                details=self.details,
            ),
            client=self.client,
            client_url=self.client_url,
            links=list(self.links),
        )

    def to_fallback_envelope(self, routing_key: str) -> IncidentEnvelope:
        """Minimal envelope sent when the full one is rejected.

        Same routing key, action and dedup key; details replaced by a fixed
        explanation; no PD-CEF enrichment, client info or links.
        """
        return IncidentEnvelope(
            routing_key=routing_key,
            action=self.action,
            dedup_key=self.dedup_key,
            payload=IncidentPayload(
                summary=self.summary,
                source=self.source,
                severity=self.severity.value,
                component=self.check_name,
                details=FALLBACK_DETAILS,
            ),
        )


class IncidentFieldComposer:
    """Renders PagerDuty payload fields from an event."""

    def __init__(self, config: HandlerConfig, evaluator: Optional[TemplateEvaluator] = None):
        self.config = config
        self.evaluator = evaluator or get_default_evaluator()

    def compose(self, event: Event, severity: Severity) -> ComposedFields:
        """Render every field for ``event``.

        Check output is truncated first, so templates only ever see the
        bounded text.

        Raises:
            RenderError: on template failures, invalid JSON details or an
                empty dedup key.
        """
        event = truncate_check_output(event)
        context = event.template_context()

        return ComposedFields(
            source=event.entity_name,
            check_name=event.check_name,
            action=event_action(event),
            severity=severity,
            summary=self.summary(context),
            dedup_key=self.dedup_key(context),
            details=self.details(event, context),
            group=self._optional("group", self.config.group_template, context),
            component=self.component(event, context),
            class_=self._optional("class", self.config.class_template, context),
            timestamp=self.timestamp(event),
            client=self.config.client_name,
            client_url=self.client_url(event),
            links=self.links(event),
        )

    def summary(self, context: dict[str, Any]) -> str:
        summary = self.evaluator.evaluate("summary", self.config.summary_template, context)
        # Events API: "The maximum permitted length of this property is 1024 characters."
        if len(summary) > MAX_SUMMARY_LENGTH:
            summary = summary[:MAX_SUMMARY_LENGTH]
        logger.info("Incident Summary: %s", summary)
        return summary

    def dedup_key(self, context: dict[str, Any]) -> str:
        dedup_key = self.evaluator.evaluate("dedupKey", self.config.dedup_key_template, context)
        if not dedup_key:
            raise RenderError(
                f"pagerduty dedup key is empty (template {self.config.dedup_key_template!r})"
            )
        return dedup_key

    def details(self, event: Event, context: dict[str, Any]) -> Any:
        """Rendered details string, its parsed JSON, or the whole event."""
        if not self.config.details_template:
            return event.to_dict()

        details = self.evaluator.evaluate("details", self.config.details_template, context)
        if self.config.details_format == DetailsFormat.JSON.value:
            try:
                return json.loads(details)
            except json.JSONDecodeError as e:
                raise RenderError(f"failed to unmarshal json details: {e}") from e
        return details

    def component(self, event: Event, context: dict[str, Any]) -> str:
        if not self.config.component_template:
            return event.check_name
        return self.evaluator.evaluate("component", self.config.component_template, context)

    def timestamp(self, event: Event) -> str:
        if not self.config.use_event_timestamp:
            return ""
        return unix_time(event.timestamp)

    def client_url(self, event: Event) -> str:
        if not self.config.base_url:
            return ""
        return "{}/c/~/n/{}/events/{}/{}".format(
            self.config.base_url.rstrip("/"),
            event.namespace,
            event.entity_name,
            event.check_name,
        )

    def links(self, event: Event) -> list[IncidentLink]:
        """Links for every check then entity annotation holding a URI."""
        if not self.config.link_annotations:
            return []

        links = []
        for prefix, annotations in (
            ("check", event.check_annotations),
            ("entity", event.entity_annotations),
        ):
            for key, value in (annotations or {}).items():
                if is_link(value):
                    links.append(IncidentLink(text=f"{prefix} {key}", href=value))
        return links

    def _optional(self, name: str, template: str, context: dict[str, Any]) -> str:
        if not template:
            return ""
        return self.evaluator.evaluate(name, template, context)
