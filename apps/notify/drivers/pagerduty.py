"""PagerDuty Events API v2 driver."""

import http.client
import json
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from typing import Optional

from apps.notify import __version__
from apps.notify.drivers.base import BaseNotifyDriver, DeliveryResponse, IncidentEnvelope
from apps.notify.exceptions import DeliveryError, EventsAPIError

logger = logging.getLogger(__name__)

USER_AGENT = f"pagerduty-event-handler/{__version__}"


class PagerDutyNotifyDriver(BaseNotifyDriver):
    """
    Driver for sending events to PagerDuty via Events API v2.

    The driver is stateless apart from its endpoint. When pointed at an
    alternate endpoint (an on-premises relay or PagerDuty agent), success
    responses that are not JSON are tolerated and turned into a synthetic
    DeliveryResponse; the public Events API must always answer with JSON.
    """

    name = "pagerduty"

    # PagerDuty Events API v2 endpoint
    EVENTS_API_URL = "https://events.pagerduty.com/v2/enqueue"

    SUCCESS_CODES = (200, 202)

    def __init__(self, endpoint: Optional[str] = None):
        self.endpoint = endpoint or self.EVENTS_API_URL

    @property
    def uses_default_endpoint(self) -> bool:
        return self.endpoint == self.EVENTS_API_URL

    def validate_config(self) -> bool:
        """Validate that the endpoint is an absolute http(s) URL."""
        try:
            parsed = urllib.parse.urlparse(self.endpoint)
        except ValueError:
            return False
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    def send(self, envelope: IncidentEnvelope, timeout: Optional[float] = None) -> DeliveryResponse:
        """Send a PagerDuty event.

        Args:
            envelope: The event to deliver
            timeout: Seconds to wait for the exchange (None waits indefinitely)

        Returns:
            The decoded (or synthesized) DeliveryResponse

        Raises:
            EventsAPIError: when PagerDuty answers with a non-success status
            DeliveryError: on network failures, timeouts and malformed success
                bodies from the public endpoint
        """
        payload_json = json.dumps(envelope.to_dict()).encode("utf-8")

        request = urllib.request.Request(
            self.endpoint,
            data=payload_json,
            headers={
                "Content-Type": "application/json",
                "User-Agent": USER_AGENT,
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                status_code = response.status
                reason = response.reason or ""
                body = response.read()
        except urllib.error.HTTPError as e:
            raise self._http_error(e)
        except urllib.error.URLError as e:
            if isinstance(e.reason, (socket.timeout, TimeoutError)):
                raise DeliveryError(
                    f"PagerDuty request to {self.endpoint} timed out after {timeout}s"
                ) from e
            logger.error(f"PagerDuty URL error: {e.reason}")
            raise DeliveryError(f"Failed to connect to PagerDuty: {e.reason}") from e
        except (socket.timeout, TimeoutError) as e:
            raise DeliveryError(
                f"PagerDuty request to {self.endpoint} timed out after {timeout}s"
            ) from e
        except http.client.HTTPException as e:
            logger.error(f"PagerDuty invalid HTTP response: {e!r}")
            raise DeliveryError(f"Invalid HTTP response from {self.endpoint}: {e!r}") from e
        except OSError as e:
            logger.error(f"PagerDuty connection error: {e}")
            raise DeliveryError(f"Failed to send PagerDuty event: {e}") from e

        if status_code not in self.SUCCESS_CODES:
            raise self._error_from_body(status_code, body)

        return self._parse_success(envelope, status_code, reason, body)

    def _parse_success(
        self, envelope: IncidentEnvelope, status_code: int, reason: str, body: bytes
    ) -> DeliveryResponse:
        try:
            return DeliveryResponse.from_dict(json.loads(body.decode("utf-8")))
        except ValueError as e:
            # UnicodeDecodeError and JSONDecodeError are both ValueErrors
            if self.uses_default_endpoint:
                raise DeliveryError(
                    f"PagerDuty returned an invalid response body (HTTP {status_code}): {e}"
                ) from e

        # Some PagerDuty agents answer with plain text; keep it as the message.
        logger.debug("Non-JSON response from %s (HTTP %s)", self.endpoint, status_code)
        return DeliveryResponse(
            status=f"{status_code} {reason}".strip(),
            dedup_key=envelope.dedup_key if 200 <= status_code <= 299 else "",
            message=body.decode("utf-8", errors="replace"),
        )

    def _http_error(self, e: urllib.error.HTTPError) -> EventsAPIError:
        try:
            error_body = e.read() if e.fp else b""
        except (OSError, http.client.HTTPException) as read_error:
            logger.error(f"PagerDuty HTTP error {e.code}: {read_error}")
            return EventsAPIError(
                e.code,
                message=f"HTTP response with status code: {e.code}: error: {read_error}",
            )
        logger.error(f"PagerDuty HTTP error {e.code}: {error_body.decode('utf-8', errors='replace')}")
        return self._error_from_body(e.code, error_body)

    def _error_from_body(self, status_code: int, body: bytes) -> EventsAPIError:
        """Decode a structured ``{status, message, errors}`` error object."""
        text = body.decode("utf-8", errors="replace")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            return EventsAPIError(
                status_code,
                message=(
                    f"HTTP response with status code: {status_code}, "
                    f"JSON unmarshal object body failed: {e}, body: {text}"
                ),
            )

        if not isinstance(data, dict) or not {"status", "message", "errors"} & data.keys():
            return EventsAPIError(status_code, valid=False)

        errors = data.get("errors") or []
        if not isinstance(errors, list):
            errors = [errors]
        return EventsAPIError(
            status_code,
            status=str(data.get("status") or ""),
            api_message=str(data.get("message") or ""),
            errors=[str(err) for err in errors],
        )
