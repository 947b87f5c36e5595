"""
Management command that handles one Sensu event with the PagerDuty pipeline.

The event JSON is read from stdin (the Sensu handler contract) or from a file.
Every option defaults to the matching PAGERDUTY_* setting; flags win.

Usage:
    cat event.json | python manage.py handle_event --token xyz123
    python manage.py handle_event --event-file event.json --team ops-db
    python manage.py handle_event --contact-routing --link-annotations < event.json
"""

import json
import sys

from django.core.management.base import BaseCommand, CommandError

from apps.alerts.drivers import SensuEventDriver
from apps.alerts.drivers.base import EventParseError
from apps.notify.config import HandlerConfig
from apps.notify.exceptions import ContactRoutingError, HandlerError
from apps.notify.services import PagerDutyEventHandler

# option dest -> HandlerConfig field
OPTION_FIELDS = {
    "token": "auth_token",
    "team": "team_name",
    "team_suffix": "team_suffix",
    "dedup_key_template": "dedup_key_template",
    "status_map": "status_map_json",
    "summary_template": "summary_template",
    "details_template": "details_template",
    "details_format": "details_format",
    "alternate_endpoint": "alternate_endpoint",
    "timeout": "timeout",
    "contact_routing": "contact_routing",
    "client_name": "client_name",
    "sensu_base_url": "base_url",
    "link_annotations": "link_annotations",
    "use_event_timestamp": "use_event_timestamp",
    "class_template": "class_template",
    "group_template": "group_template",
    "component_template": "component_template",
}


class Command(BaseCommand):
    help = "Send a Sensu event to PagerDuty (Events API v2)"

    def add_arguments(self, parser):
        parser.add_argument(
            "--event-file",
            type=str,
            help="Read the event JSON from this file instead of stdin",
        )
        parser.add_argument(
            "-t",
            "--token",
            type=str,
            help="The PagerDuty V2 API authentication token, can be set with PAGERDUTY_TOKEN",
        )
        parser.add_argument(
            "--team",
            type=str,
            help="Envvar name for pager team (alphanumeric and underscores) holding the PagerDuty token, can be set with PAGERDUTY_TEAM",
        )
        parser.add_argument(
            "--team-suffix",
            type=str,
            help="Pager team suffix string to append if missing from team name, can be set with PAGERDUTY_TEAM_SUFFIX",
        )
        parser.add_argument(
            "-k",
            "--dedup-key-template",
            type=str,
            help="The PagerDuty V2 API deduplication key template, can be set with PAGERDUTY_DEDUP_KEY_TEMPLATE",
        )
        parser.add_argument(
            "-s",
            "--status-map",
            type=str,
            help="The status map used to translate a check status to a PagerDuty severity, can be set with PAGERDUTY_STATUS_MAP",
        )
        parser.add_argument(
            "-S",
            "--summary-template",
            type=str,
            help="The template for the alert summary, can be set with PAGERDUTY_SUMMARY_TEMPLATE",
        )
        parser.add_argument(
            "-d",
            "--details-template",
            type=str,
            help="The template for the alert details, can be set with PAGERDUTY_DETAILS_TEMPLATE (default full event JSON)",
        )
        parser.add_argument(
            "--details-format",
            type=str,
            help="The format of the details output ('string' or 'json'), can be set with PAGERDUTY_DETAILS_FORMAT",
        )
        parser.add_argument(
            "-e",
            "--alternate-endpoint",
            type=str,
            help="The endpoint to use to send the PagerDuty events, can be set with PAGERDUTY_ALTERNATE_ENDPOINT",
        )
        parser.add_argument(
            "--timeout",
            type=int,
            help="The maximum amount of time in seconds to wait for the event to be created, can be set with PAGERDUTY_TIMEOUT",
        )
        parser.add_argument(
            "--contact-routing",
            action="store_true",
            default=None,
            help="Enable contact routing",
        )
        parser.add_argument(
            "--client-name",
            type=str,
            help="Name for the client, this will appear in PagerDuty when events are logged",
        )
        parser.add_argument(
            "-u",
            "--sensu-base-url",
            type=str,
            help="Base URL for Sensu. The handler will add a link to the event using this",
        )
        parser.add_argument(
            "-l",
            "--link-annotations",
            action="store_true",
            default=None,
            help="Add links for any annotations that are a URL",
        )
        parser.add_argument(
            "-T",
            "--use-event-timestamp",
            action="store_true",
            default=None,
            help="Use the timestamp from the event for the PD-CEF timestamp field",
        )
        parser.add_argument(
            "--class-template",
            type=str,
            help="Template for PD-CEF class field, can be set with PAGERDUTY_CLASS_TEMPLATE",
        )
        parser.add_argument(
            "--group-template",
            type=str,
            help="Template for PD-CEF group field, can be set with PAGERDUTY_GROUP_TEMPLATE",
        )
        parser.add_argument(
            "--component-template",
            type=str,
            help="Template for PD-CEF component field, can be set with PAGERDUTY_COMPONENT_TEMPLATE",
        )

    def handle(self, *args, **options):
        if options.get("timeout") is not None and options["timeout"] < 0:
            raise CommandError("--timeout must be zero or a positive number of seconds")

        overrides = {field: options.get(dest) for dest, field in OPTION_FIELDS.items()}
        config = HandlerConfig.from_settings(**overrides)

        event = self._load_event(options.get("event_file"))
        handler = PagerDutyEventHandler(config)

        try:
            result = handler.handle(event)
        except ContactRoutingError as e:
            for outcome in e.result.deliveries if e.result else []:
                self._write_outcome(outcome)
            raise CommandError(str(e))
        except HandlerError as e:
            raise CommandError(f"error executing handler: {e}")

        for outcome in result.deliveries:
            self._write_outcome(outcome)

    def _load_event(self, event_file):
        try:
            if event_file:
                with open(event_file, encoding="utf-8") as fh:
                    raw = fh.read()
            else:
                raw = sys.stdin.read()
        except OSError as e:
            raise CommandError(f"failed to read event: {e}")

        if not raw.strip():
            raise CommandError("failed to read event: no event data provided on stdin")

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CommandError(f"failed to unmarshal event JSON: {e}")

        try:
            return SensuEventDriver().parse(payload)
        except EventParseError as e:
            raise CommandError(f"error validating event: {e}")

    def _write_outcome(self, outcome):
        label = f"contact {outcome.contact}" if outcome.contact else "PagerDuty"
        if outcome.delivered:
            response = outcome.response
            suffix = " (fallback payload)" if outcome.used_fallback else ""
            self.stdout.write(
                self.style.SUCCESS(
                    f"✓ {label}: {outcome.action} submitted{suffix}, "
                    f"status={response.status if response else ''}, "
                    f"dedup_key={response.dedup_key if response else outcome.dedup_key}"
                )
            )
        else:
            self.stdout.write(self.style.ERROR(f"✗ {label}: {outcome.error}"))
