"""Event handling pipeline.

``PagerDutyEventHandler`` turns one monitoring event into PagerDuty Events
API calls:

    check_args → credentials → severity → compose → deliver (→ fallback)

In contact routing mode the compose/deliver steps run once per contact,
sequentially, and a failing contact never stops the remaining ones.

Delivery is a small state machine:

    PRIMARY → DELIVERED
    PRIMARY → FALLBACK → DELIVERED   (primary error is logged, not raised)
    PRIMARY → FALLBACK → FAILED      (primary error is raised)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

from apps.alerts.drivers.base import Event
from apps.notify.composer import IncidentFieldComposer
from apps.notify.config import DetailsFormat, HandlerConfig
from apps.notify.credentials import CredentialResolver, ResolvedCredential
from apps.notify.drivers.base import BaseNotifyDriver, DeliveryResponse
from apps.notify.drivers.pagerduty import PagerDutyNotifyDriver
from apps.notify.exceptions import (
    ContactRoutingError,
    DeliveryError,
    HandlerError,
    PreconditionError,
)
from apps.notify.severity import get_severity
from apps.notify.templating import TemplateEvaluator

logger = logging.getLogger(__name__)


class DeliveryState(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass
class DeliveryOutcome:
    """Result of delivering one event with one credential."""

    contact: Optional[str] = None
    action: str = ""
    dedup_key: str = ""
    state: DeliveryState = DeliveryState.PRIMARY
    response: Optional[DeliveryResponse] = None
    used_fallback: bool = False
    error: str = ""

    @property
    def delivered(self) -> bool:
        return self.state == DeliveryState.DELIVERED


@dataclass
class HandlerResult:
    """Aggregated outcome of one handler invocation."""

    deliveries: list[DeliveryOutcome] = field(default_factory=list)
    failed_contacts: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed_contacts and all(d.delivered for d in self.deliveries)


class PagerDutyEventHandler:
    """Runs the PagerDuty pipeline for one event at a time.

    The handler holds only immutable configuration and stateless
    collaborators, so one instance can serve concurrent invocations; every
    per-event value (token, truncated output, rendered fields) lives in
    local variables.
    """

    def __init__(
        self,
        config: HandlerConfig,
        evaluator: Optional[TemplateEvaluator] = None,
        driver: Optional[BaseNotifyDriver] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.config = config
        self.composer = IncidentFieldComposer(config, evaluator)
        self.resolver = CredentialResolver(config, environ)
        self.driver = driver or PagerDutyNotifyDriver(config.alternate_endpoint or None)

    def check_args(self, event: Optional[Event]) -> list:
        """Validate preconditions before any network call.

        Returns the resolved credential (static/team mode) or the validated
        contact list (contact routing).

        Raises:
            PreconditionError: missing check, bad details format or endpoint,
                missing token, missing or malformed contacts.
        """
        if event is None:
            raise PreconditionError("event does not contain check")

        if not DetailsFormat.is_valid(self.config.details_format):
            raise PreconditionError(f"invalid details format: {self.config.details_format}")

        if self.config.alternate_endpoint and not self.driver.validate_config():
            raise PreconditionError(
                f"invalid alternate endpoint: {self.config.alternate_endpoint}"
            )

        if self.config.contact_routing:
            return self.resolver.contacts_for(event)
        return [self.resolver.default_credential()]

    def handle(self, event: Event) -> HandlerResult:
        """Handle one event.

        Raises:
            PreconditionError: before anything is sent
            HandlerError: render or delivery failure (single token mode)
            ContactRoutingError: one or more contacts failed
        """
        targets = self.check_args(event)

        if self.config.contact_routing:
            return self._handle_contacts(event, targets)

        outcome = self.manage_incident(event, targets[0])
        return HandlerResult(deliveries=[outcome])

    def _handle_contacts(self, event: Event, contacts: list[str]) -> HandlerResult:
        logger.info("Contact routing is enabled (contacts: %s)", ", ".join(contacts))
        result = HandlerResult()

        for contact in contacts:
            try:
                credential = self.resolver.contact_credential(contact)
                outcome = self.manage_incident(event, credential)
            except HandlerError as e:
                logger.warning('WARNING: skipping contact "%s" (%s)', contact, e)
                result.failed_contacts.append(contact)
                result.deliveries.append(
                    DeliveryOutcome(contact=contact, state=DeliveryState.FAILED, error=str(e))
                )
                continue
            result.deliveries.append(outcome)

        if result.failed_contacts:
            raise ContactRoutingError(result.failed_contacts, result)
        return result

    def manage_incident(self, event: Event, credential: ResolvedCredential) -> DeliveryOutcome:
        """Compose and deliver the event with a single credential.

        Raises:
            StatusMapError: the status map is invalid
            RenderError: a field failed to render
            DeliveryError: both the primary and the fallback send failed
        """
        severity = get_severity(event.check_status, self.config.status_map_json)
        logger.info("Incident severity: %s", severity.value)

        fields = self.composer.compose(event, severity)
        outcome = DeliveryOutcome(
            contact=credential.contact, action=fields.action, dedup_key=fields.dedup_key
        )
        timeout = self.config.timeout_seconds

        try:
            outcome.response = self.driver.send(fields.to_envelope(credential.token), timeout)
            outcome.state = DeliveryState.DELIVERED
        except DeliveryError as primary_error:
            logger.warning("Warning Event Send failed, sending fallback event\n %s", primary_error)
            outcome.state = DeliveryState.FALLBACK
            outcome.used_fallback = True
            outcome.error = str(primary_error)

            try:
                outcome.response = self.driver.send(
                    fields.to_fallback_envelope(credential.token), timeout
                )
                outcome.state = DeliveryState.DELIVERED
            except DeliveryError as fallback_error:
                logger.error("Fallback event send failed: %s", fallback_error)
                outcome.state = DeliveryState.FAILED
                raise primary_error from fallback_error

        response = outcome.response or DeliveryResponse()
        logger.info(
            "%s (%s) submitted to PagerDuty, Status: %s, Dedup Key: %s, Message: %s",
            "Fallback event" if outcome.used_fallback else "Event",
            fields.action,
            response.status,
            response.dedup_key,
            response.message,
        )
        return outcome
