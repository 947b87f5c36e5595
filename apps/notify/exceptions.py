"""Exception hierarchy for the PagerDuty event handler."""

from __future__ import annotations

from typing import Any


class HandlerError(Exception):
    """Base exception for all handler errors."""


class PreconditionError(HandlerError):
    """The invocation cannot proceed; raised before any network call."""


class CredentialError(PreconditionError):
    """No usable PagerDuty routing key could be derived."""


class ContactTokenError(CredentialError):
    """The token variable for a single contact is missing or empty."""

    def __init__(self, contact: str, variable: str) -> None:
        self.contact = contact
        self.variable = variable
        super().__init__(f'no environment variable found for "{variable}"')


class StatusMapError(HandlerError):
    """The configured status map is malformed or names an unknown severity."""


class RenderError(HandlerError):
    """A payload field could not be rendered."""


class TemplateEvaluationError(RenderError):
    """A template failed to evaluate."""

    def __init__(self, name: str, source: str, reason: Any) -> None:
        self.name = name
        self.source = source
        super().__init__(f"failed to evaluate template {name} ({source!r}): {reason}")


class DeliveryError(HandlerError):
    """Sending an event to the Events API failed."""


class EventsAPIError(DeliveryError):
    """The Events API answered with a non-success HTTP status.

    ``status``, ``api_message`` and ``errors`` are only populated when the
    response body held a structured error object.
    """

    def __init__(
        self,
        status_code: int,
        status: str = "",
        api_message: str = "",
        errors: list[str] | None = None,
        message: str = "",
        valid: bool = True,
    ) -> None:
        self.status_code = status_code
        self.status = status
        self.api_message = api_message
        self.errors = list(errors or [])
        self.valid = valid
        self._message = message
        super().__init__(str(self))

    def __str__(self) -> str:
        if self._message:
            return self._message
        if not self.valid:
            return (
                f"HTTP response failed with status code {self.status_code} "
                "and no JSON error object was present"
            )
        if not self.errors:
            return (
                f"HTTP response failed with status code {self.status_code}, "
                f"status: {self.status}, message: {self.api_message}"
            )
        return (
            f"HTTP response failed with status code {self.status_code}, "
            f"status: {self.status}, message: {self.api_message}: "
            f"{_errors_detail(self.errors)}"
        )


def _errors_detail(errors: list[str]) -> str:
    if len(errors) == 1:
        return errors[0]
    more = len(errors) - 1
    noun = "errors" if more > 1 else "error"
    return f"{errors[0]} (and {more} more {noun}...)"


class ContactRoutingError(HandlerError):
    """One or more contacts could not be notified.

    Per-contact reasons are logged; ``result`` holds the partial outcome.
    """

    def __init__(self, failed_contacts: list[str], result: Any = None) -> None:
        self.failed_contacts = list(failed_contacts)
        self.result = result
        super().__init__(
            "handler execution error for one or more contacts: " + ", ".join(self.failed_contacts)
        )
