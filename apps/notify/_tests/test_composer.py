"""Tests for IncidentFieldComposer and its helpers."""

from unittest.mock import MagicMock

from django.test import SimpleTestCase

from apps.alerts.drivers.base import Event
from apps.notify.composer import (
    FALLBACK_DETAILS,
    MAX_OUTPUT_BYTES,
    TRUNCATION_MARKER,
    IncidentFieldComposer,
    event_action,
    is_link,
    truncate_check_output,
)
from apps.notify.config import HandlerConfig
from apps.notify.exceptions import RenderError
from apps.notify.severity import Severity


def _make_event(**kwargs):
    """Create an Event with sensible defaults."""
    defaults = {
        "entity_name": "foo",
        "check_name": "bar",
        "check_status": 1,
        "check_output": "disk is full",
        "timestamp": 1552594758,
        "namespace": "default",
    }
    defaults.update(kwargs)
    return Event(**defaults)


def _composer(**config):
    return IncidentFieldComposer(HandlerConfig(**config))


class TruncateCheckOutputTests(SimpleTestCase):
    def test_short_output_is_untouched(self):
        event = _make_event(check_output="ok")
        self.assertIs(truncate_check_output(event), event)

    def test_output_at_limit_is_untouched(self):
        event = _make_event(check_output="x" * MAX_OUTPUT_BYTES)
        self.assertEqual(truncate_check_output(event).check_output, "x" * MAX_OUTPUT_BYTES)

    def test_long_output_is_replaced(self):
        original = "a" * MAX_OUTPUT_BYTES + "tail"
        event = _make_event(check_output=original)

        with self.assertLogs("apps.notify.composer", level="WARNING"):
            truncated = truncate_check_output(event)

        self.assertEqual(truncated.check_output, TRUNCATION_MARKER + "a" * MAX_OUTPUT_BYTES + "...")
        # the original event is never modified
        self.assertEqual(event.check_output, original)

    def test_multibyte_cut_keeps_valid_text(self):
        event = _make_event(check_output="é" * MAX_OUTPUT_BYTES)
        truncated = truncate_check_output(event).check_output

        body = truncated[len(TRUNCATION_MARKER) : -3]
        self.assertLessEqual(len(body.encode("utf-8")), MAX_OUTPUT_BYTES)
        self.assertEqual(body, "é" * (MAX_OUTPUT_BYTES // 2))


class IsLinkTests(SimpleTestCase):
    def test_absolute_urls(self):
        self.assertTrue(is_link("https://example.com/x"))
        self.assertTrue(is_link("http://runbooks.local:8080/disk?id=1"))

    def test_non_links(self):
        for value in ["", "foo", "/relative/path", "example.com/x", "not a url", "mailto:ops"]:
            with self.subTest(value=value):
                self.assertFalse(is_link(value))


class EventActionTests(SimpleTestCase):
    def test_status_zero_resolves(self):
        self.assertEqual(event_action(_make_event(check_status=0)), "resolve")

    def test_nonzero_status_triggers(self):
        for status in (1, 2, 3, 127):
            with self.subTest(status=status):
                self.assertEqual(event_action(_make_event(check_status=status)), "trigger")


class SummaryTests(SimpleTestCase):
    def test_default_template(self):
        fields = _composer().compose(_make_event(), Severity.WARNING)
        self.assertEqual(fields.summary, "foo/bar : disk is full")

    def test_summary_truncated_to_1024_characters(self):
        event = _make_event(check_output="z" * 2000)
        fields = _composer(summary_template="{{ check.output }}").compose(event, Severity.WARNING)

        self.assertEqual(len(fields.summary), 1024)
        self.assertEqual(fields.summary, "z" * 1024)

    def test_summary_renders_truncated_output(self):
        event = _make_event(check_output="b" * (MAX_OUTPUT_BYTES + 10))
        composer = _composer(summary_template="{{ check.output[:30] }}")

        with self.assertLogs("apps.notify.composer", level="WARNING"):
            fields = composer.compose(event, Severity.WARNING)

        self.assertTrue(fields.summary.startswith(TRUNCATION_MARKER))


class DedupKeyTests(SimpleTestCase):
    def test_default_template(self):
        fields = _composer().compose(_make_event(), Severity.WARNING)
        self.assertEqual(fields.dedup_key, "foo-bar")

    def test_custom_template(self):
        composer = _composer(dedup_key_template="{{ namespace }}:{{ check.name }}")
        fields = composer.compose(_make_event(), Severity.WARNING)
        self.assertEqual(fields.dedup_key, "default:bar")

    def test_empty_dedup_key_is_rejected(self):
        composer = _composer(dedup_key_template="{{ check.labels.get('nope', '') }}")
        with self.assertRaises(RenderError) as ctx:
            composer.compose(_make_event(), Severity.WARNING)
        self.assertIn("dedup key is empty", str(ctx.exception))


class DetailsTests(SimpleTestCase):
    def test_no_template_uses_whole_event(self):
        fields = _composer().compose(_make_event(), Severity.WARNING)

        self.assertIsInstance(fields.details, dict)
        self.assertEqual(fields.details["check"]["output"], "disk is full")
        self.assertEqual(fields.details["entity"]["metadata"]["name"], "foo")

    def test_whole_event_details_hold_truncated_output(self):
        event = _make_event(check_output="c" * (MAX_OUTPUT_BYTES + 1))
        with self.assertLogs("apps.notify.composer", level="WARNING"):
            fields = _composer().compose(event, Severity.WARNING)
        self.assertTrue(fields.details["check"]["output"].startswith(TRUNCATION_MARKER))

    def test_string_template(self):
        composer = _composer(details_template="{{ entity.name }} failed {{ check.name }}")
        fields = composer.compose(_make_event(), Severity.WARNING)
        self.assertEqual(fields.details, "foo failed bar")

    def test_json_template_is_parsed(self):
        composer = _composer(
            details_template='{"entity": "{{ entity.name }}", "status": {{ check.status }} }',
            details_format="json",
        )
        fields = composer.compose(_make_event(check_status=2), Severity.CRITICAL)
        self.assertEqual(fields.details, {"entity": "foo", "status": 2})

    def test_invalid_json_details_raise(self):
        composer = _composer(details_template="not json", details_format="json")
        with self.assertRaises(RenderError) as ctx:
            composer.compose(_make_event(), Severity.WARNING)
        self.assertIn("failed to unmarshal json details", str(ctx.exception))


class CefFieldTests(SimpleTestCase):
    def test_defaults(self):
        fields = _composer().compose(_make_event(), Severity.WARNING)

        self.assertEqual(fields.group, "")
        self.assertEqual(fields.class_, "")
        self.assertEqual(fields.component, "bar")

    def test_templates(self):
        event = _make_event(
            check_labels={"service": "db", "kind": "disk"},
            entity_labels={"region": "eu-west"},
        )
        composer = _composer(
            group_template="{{ entity.labels.region }}",
            component_template="{{ check.labels.service }}",
            class_template="{{ check.labels.kind }}",
        )
        fields = composer.compose(event, Severity.WARNING)

        self.assertEqual(fields.group, "eu-west")
        self.assertEqual(fields.component, "db")
        self.assertEqual(fields.class_, "disk")

    def test_template_error_names_template(self):
        composer = _composer(group_template="{{ entity.labels.missing }}")
        with self.assertRaises(RenderError) as ctx:
            composer.compose(_make_event(), Severity.WARNING)
        self.assertIn("group", str(ctx.exception))


class TimestampTests(SimpleTestCase):
    def test_disabled_by_default(self):
        fields = _composer().compose(_make_event(), Severity.WARNING)
        self.assertEqual(fields.timestamp, "")

    def test_rfc3339_when_enabled(self):
        fields = _composer(use_event_timestamp=True).compose(_make_event(), Severity.WARNING)
        self.assertEqual(fields.timestamp, "2019-03-14T20:19:18Z")


class ClientUrlTests(SimpleTestCase):
    def test_no_base_url(self):
        fields = _composer().compose(_make_event(), Severity.WARNING)
        self.assertEqual(fields.client_url, "")

    def test_trailing_slash_is_stripped(self):
        for base in ("https://sensu.example.com", "https://sensu.example.com/"):
            with self.subTest(base=base):
                fields = _composer(base_url=base).compose(
                    _make_event(namespace="prod"), Severity.WARNING
                )
                self.assertEqual(
                    fields.client_url,
                    "https://sensu.example.com/c/~/n/prod/events/foo/bar",
                )


class LinksTests(SimpleTestCase):
    def setUp(self):
        self.event = _make_event(
            check_annotations={
                "runbook": "https://example.com/x",
                "note": "just text",
                "dashboard": "https://grafana.example.com/d/1",
            },
            entity_annotations={"cmdb": "https://cmdb.example.com/foo", "owner": "team-db"},
        )

    def test_disabled_by_default(self):
        fields = _composer().compose(self.event, Severity.WARNING)
        self.assertEqual(fields.links, [])

    def test_check_links_before_entity_links(self):
        fields = _composer(link_annotations=True).compose(self.event, Severity.WARNING)

        self.assertEqual(
            [(link.text, link.href) for link in fields.links],
            [
                ("check runbook", "https://example.com/x"),
                ("check dashboard", "https://grafana.example.com/d/1"),
                ("entity cmdb", "https://cmdb.example.com/foo"),
            ],
        )


class EnvelopeTests(SimpleTestCase):
    def setUp(self):
        composer = _composer(
            group_template="grp",
            class_template="cls",
            base_url="https://sensu.example.com",
            link_annotations=True,
            use_event_timestamp=True,
        )
        event = _make_event(check_annotations={"runbook": "https://example.com/x"})
        self.fields = composer.compose(event, Severity.WARNING)

    def test_full_envelope(self):
        data = self.fields.to_envelope("routing-key").to_dict()

        self.assertEqual(data["routing_key"], "routing-key")
        self.assertEqual(data["event_action"], "trigger")
        self.assertEqual(data["dedup_key"], "foo-bar")
        self.assertEqual(data["client"], "Sensu")
        self.assertEqual(data["client_url"], "https://sensu.example.com/c/~/n/default/events/foo/bar")
        self.assertEqual(data["links"], [{"text": "check runbook", "href": "https://example.com/x"}])
        payload = data["payload"]
        self.assertEqual(payload["source"], "foo")
        self.assertEqual(payload["severity"], "warning")
        self.assertEqual(payload["group"], "grp")
        self.assertEqual(payload["class"], "cls")
        self.assertEqual(payload["component"], "bar")
        self.assertEqual(payload["timestamp"], "2019-03-14T20:19:18Z")
        self.assertIsInstance(payload["custom_details"], dict)

    def test_fallback_envelope_is_minimal(self):
        data = self.fields.to_fallback_envelope("routing-key").to_dict()

        self.assertEqual(data["routing_key"], "routing-key")
        self.assertEqual(data["event_action"], "trigger")
        self.assertEqual(data["dedup_key"], "foo-bar")
        self.assertNotIn("links", data)
        self.assertNotIn("client", data)
        self.assertNotIn("client_url", data)
        payload = data["payload"]
        self.assertEqual(payload["custom_details"], FALLBACK_DETAILS)
        self.assertEqual(payload["component"], "bar")
        self.assertEqual(payload["summary"], self.fields.summary)
        for key in ("group", "class", "timestamp"):
            self.assertNotIn(key, payload)


class InjectedEvaluatorTests(SimpleTestCase):
    def test_composer_uses_injected_evaluator(self):
        evaluator = MagicMock()
        evaluator.evaluate.side_effect = lambda name, source, ctx: f"<{name}>"
        composer = IncidentFieldComposer(HandlerConfig(), evaluator)

        fields = composer.compose(_make_event(), Severity.INFO)

        self.assertEqual(fields.summary, "<summary>")
        self.assertEqual(fields.dedup_key, "<dedupKey>")
        names = [c.args[0] for c in evaluator.evaluate.call_args_list]
        self.assertEqual(names, ["summary", "dedupKey"])
