"""PagerDuty routing key resolution.

Three mutually exclusive modes:

- static: the configured token (PAGERDUTY_TOKEN / --token)
- team: the token is read from an environment variable named after the
  configured team, e.g. team "ops-db" -> ``ops_db_pagerduty_token``; when
  that variable is unset the static token stays in effect
- contact routing: every contact listed in the event's ``contacts``
  annotations gets its own token from ``PAGERDUTY_TOKEN_<CONTACT>``

The resolver never writes back into HandlerConfig; it returns
``ResolvedCredential`` values that travel with each delivery.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from apps.alerts.drivers.base import Event
from apps.notify.config import HandlerConfig
from apps.notify.exceptions import ContactTokenError, CredentialError

logger = logging.getLogger(__name__)

CONTACTS_ANNOTATION = "contacts"
CONTACT_TOKEN_PREFIX = "PAGERDUTY_TOKEN_"

_ILLEGAL_ENV_CHARS = re.compile(r"[^A-Za-z0-9]+")
_VALID_CONTACT = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass(frozen=True)
class ResolvedCredential:
    """A routing key scoped to one delivery."""

    token: str
    contact: Optional[str] = None

    def __repr__(self) -> str:
        # keep routing keys out of logs and tracebacks
        return f"ResolvedCredential(contact={self.contact!r}, token=***)"


def sanitize_env_name(value: str) -> str:
    """Replace every run of non-alphanumeric characters with ``_``."""
    return _ILLEGAL_ENV_CHARS.sub("_", value or "")


def team_env_var(team_name: str, team_suffix: str) -> str:
    """Return the environment variable name holding a team's token."""
    name = sanitize_env_name(team_name)
    suffix = sanitize_env_name(team_suffix)
    if suffix and not name.endswith(suffix):
        name = name + suffix
    return name


def validate_contact(contact: str) -> None:
    if not _VALID_CONTACT.match(contact or ""):
        raise CredentialError(f"invalid contact syntax: {contact}")


def validate_contacts(contacts: list[str]) -> None:
    for contact in contacts:
        validate_contact(contact)


def get_contacts(event: Event) -> list[str]:
    """Collect contacts from event, check and entity annotations.

    Each ``contacts`` annotation is a comma separated list; the result keeps
    first-seen order and drops duplicates.
    """
    contacts: list[str] = []
    for annotations in (event.annotations, event.check_annotations, event.entity_annotations):
        value = (annotations or {}).get(CONTACTS_ANNOTATION)
        if value is None:
            continue
        for contact in value.split(","):
            if contact not in contacts:
                contacts.append(contact)
    return contacts


class CredentialResolver:
    """Derives routing keys from configuration and the environment."""

    def __init__(self, config: HandlerConfig, environ: Optional[Mapping[str, str]] = None):
        self.config = config
        self.environ = os.environ if environ is None else environ

    def team_token(self) -> str:
        """Look up the team token; returns "" when the variable is unset.

        Raises:
            CredentialError: if the sanitized variable name is empty.
        """
        var = team_env_var(self.config.team_name, self.config.team_suffix)
        if not var:
            raise CredentialError("unknown problem with team environment variable")

        logger.info("Looking up token envvar: %s", var)
        token = self.environ.get(var, "")
        if token:
            logger.info("Token envvar %s found, replacing default token", var)
        else:
            logger.info("Token envvar %s is empty, using default token instead", var)
        return token

    def default_credential(self) -> ResolvedCredential:
        """Resolve the static or team token used outside contact routing.

        Raises:
            CredentialError: if no token could be derived.
        """
        token = self.config.auth_token
        if self.config.team_name:
            token = self.team_token() or token
        if not token:
            raise CredentialError("no auth token provided")
        return ResolvedCredential(token=token)

    def contacts_for(self, event: Event) -> list[str]:
        """Return the validated contact list for contact routing.

        Raises:
            CredentialError: when no contacts are found or one is malformed.
        """
        contacts = get_contacts(event)
        if not contacts:
            raise CredentialError("contact routing enabled but no contacts were found")
        validate_contacts(contacts)
        return contacts

    def contact_credential(self, contact: str) -> ResolvedCredential:
        """Resolve the token of a single contact.

        Raises:
            ContactTokenError: if PAGERDUTY_TOKEN_<CONTACT> is unset or empty.
        """
        var = f"{CONTACT_TOKEN_PREFIX}{contact.upper()}"
        token = self.environ.get(var, "")
        if not token:
            raise ContactTokenError(contact, var)
        return ResolvedCredential(token=token, contact=contact)
