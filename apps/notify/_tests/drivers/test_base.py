"""Tests for the Events API data structures."""

from django.test import SimpleTestCase

from apps.notify.drivers.base import (
    DeliveryResponse,
    IncidentEnvelope,
    IncidentLink,
    IncidentPayload,
)


class IncidentPayloadTests(SimpleTestCase):
    def test_required_fields_only(self):
        payload = IncidentPayload(summary="s", source="host", severity="warning")

        self.assertEqual(payload.to_dict(), {"summary": "s", "source": "host", "severity": "warning"})

    def test_wire_names(self):
        payload = IncidentPayload(
            summary="s",
            source="host",
            severity="error",
            timestamp="2019-03-14T20:19:18Z",
            component="disk",
            group="db",
            class_="storage",
            details={"k": "v"},
        )
        data = payload.to_dict()

        self.assertEqual(data["class"], "storage")
        self.assertEqual(data["custom_details"], {"k": "v"})
        self.assertEqual(data["timestamp"], "2019-03-14T20:19:18Z")
        self.assertNotIn("class_", data)
        self.assertNotIn("details", data)

    def test_string_details_are_kept(self):
        payload = IncidentPayload(summary="s", source="h", severity="info", details="")
        self.assertEqual(payload.to_dict()["custom_details"], "")


class IncidentEnvelopeTests(SimpleTestCase):
    def test_empty_optionals_are_omitted(self):
        envelope = IncidentEnvelope(routing_key="key", action="resolve", dedup_key="foo-bar")

        self.assertEqual(
            envelope.to_dict(),
            {"routing_key": "key", "event_action": "resolve", "dedup_key": "foo-bar"},
        )

    def test_full_envelope(self):
        envelope = IncidentEnvelope(
            routing_key="key",
            action="trigger",
            dedup_key="foo-bar",
            payload=IncidentPayload(summary="s", source="h", severity="critical"),
            client="Sensu",
            client_url="https://sensu.example.com/c/~/n/default/events/foo/bar",
            links=[IncidentLink(text="check runbook", href="https://example.com/x")],
        )
        data = envelope.to_dict()

        self.assertEqual(data["event_action"], "trigger")
        self.assertEqual(data["client"], "Sensu")
        self.assertEqual(data["links"], [{"text": "check runbook", "href": "https://example.com/x"}])
        self.assertEqual(data["payload"]["severity"], "critical")
        self.assertNotIn("images", data)


class DeliveryResponseTests(SimpleTestCase):
    def test_from_dict(self):
        response = DeliveryResponse.from_dict(
            {"status": "success", "message": "Event processed", "dedup_key": "foo-bar"}
        )

        self.assertEqual(response.status, "success")
        self.assertEqual(response.dedup_key, "foo-bar")
        self.assertEqual(response.errors, [])

    def test_from_dict_with_errors(self):
        response = DeliveryResponse.from_dict({"status": "invalid event", "errors": ["one"]})
        self.assertEqual(response.errors, ["one"])
        self.assertEqual(response.to_dict()["errors"], ["one"])

    def test_from_dict_rejects_non_objects(self):
        for body in ([], "ok", None, {"errors": "oops"}):
            with self.subTest(body=body):
                with self.assertRaises(ValueError):
                    DeliveryResponse.from_dict(body)
