# =============================================================================
# tests/test_notifications.py - Email templates, Resend delivery, Meta CAPI and traffic sources
# =============================================================================

from unittest.mock import MagicMock, patch

import httpx

from app.main import app
from app.modules.notifications import templates
from app.modules.notifications.email import EmailService, get_email_service
from app.modules.tracking.facebook import FacebookConversions, get_facebook_conversions, hash_identifier

INTERNAL = {"x-internal-key": "test-internal-key"}


def ok_response(status=200, payload=None):
    response = MagicMock()
    response.status_code = status
    response.text = ""
    response.json.return_value = payload or {}
    return response


class TestTemplates:
    def test_format_cop(self):
        assert templates.format_cop(20000) == "$20.000 COP"
        assert templates.format_cop(1500000.4) == "$1.500.000 COP"

    def test_pick_confirmation_lists_picks(self):
        picks = [{"driver": "Max Verstappen", "line": 2.5, "betterOrWorse": "mejor", "session_type": "qualy"}]
        subject, html = templates.pick_confirmation("Ana", 20000, "safety", picks, "https://motormania.test")
        assert "Picks" in subject
        assert "Max Verstappen" in html
        assert "Clasificación" in html
        assert "Safety Car" in html
        assert "<strong>MMC Coins:</strong> 20" in html

    def test_names_are_escaped(self):
        _, html = templates.numbers_confirmation("<b>Ana</b>", ["123456"], "registro", "https://x")
        assert "&lt;b&gt;Ana&lt;/b&gt;" in html

    def test_purchase_numbers_mentions_order(self):
        subject, html = templates.numbers_confirmation("Ana", ["1"], "compra", "https://x", "ORDER-1", 2000)
        assert "extra" in subject
        assert "ORDER-1" in html
        assert "$2.000 COP" in html

    def test_pick_results(self):
        _, html = templates.pick_results("Ana", "GP México", "full", 2, 3, "lost", 0, "https://x")
        assert "2 / 3" in html
        assert "LOST" in html

    def test_prediction_confirmation_fills_missing_picks(self):
        predictions = {"pole1": "Max Verstappen", "gp1": "Lando Norris", "driver_of_the_day": None}
        subject, html = templates.prediction_confirmation("Ana", "GP México", predictions, "https://x")
        assert subject == "¡Tus Predicciones para el GP México han sido enviadas!"
        assert "Max Verstappen" in html
        assert "Piloto del Día: <strong>No seleccionado</strong>" in html
        assert "https://x/jugar-y-gana" in html


class TestEmailService:
    def test_skipped_without_api_key(self):
        with patch("app.modules.notifications.email.httpx.post") as mock_post:
            assert EmailService(api_key="").send("ana@example.com", "Hola", "<p>x</p>") is False
            mock_post.assert_not_called()

    def test_skipped_without_recipient(self):
        with patch("app.modules.notifications.email.httpx.post") as mock_post:
            assert EmailService(api_key="re_123").send("", "Hola", "<p>x</p>") is False
            mock_post.assert_not_called()

    @patch("app.modules.notifications.email.httpx.post")
    def test_sends_through_resend(self, mock_post):
        mock_post.return_value = ok_response()

        assert EmailService(api_key="re_123", sender="MM <a@b.co>").send("ana@example.com", "Hola", "<p>x</p>") is True

        payload = mock_post.call_args.kwargs["json"]
        assert payload == {"from": "MM <a@b.co>", "to": ["ana@example.com"], "subject": "Hola", "html": "<p>x</p>"}
        assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer re_123"

    @patch("app.modules.notifications.email.httpx.post")
    def test_provider_errors_return_false(self, mock_post):
        mock_post.return_value = ok_response(status=422)
        assert EmailService(api_key="re_123").send("ana@example.com", "Hola", "x") is False
        mock_post.side_effect = httpx.ConnectError("down")
        assert EmailService(api_key="re_123").send("ana@example.com", "Hola", "x") is False


class TestNotificationRoutes:
    def test_requires_internal_key(self, client):
        response = client.post("/api/send-coins-confirmation", json={"to": "a@b.co", "amount": 1000, "mmc": 1, "fc": 1000})
        assert response.status_code == 401

    def test_sends_coins_email(self, client):
        email = MagicMock()
        email.send_coins_confirmation.return_value = True
        app.dependency_overrides[get_email_service] = lambda: email

        response = client.post(
            "/api/send-coins-confirmation",
            json={"to": "a@b.co", "amount": 10000, "mmc": 10, "fc": 10000},
            headers=INTERNAL,
        )

        assert response.json() == {"status": "ok", "sent": True}
        email.send_coins_confirmation.assert_called_once_with("a@b.co", 10000, 10, 10000)

    def test_sends_numbers_email(self, client):
        email = MagicMock()
        email.send_numbers_confirmation.return_value = False
        app.dependency_overrides[get_email_service] = lambda: email

        response = client.post(
            "/api/send-numbers-confirmation",
            json={"to": "a@b.co", "numbers": ["123456"]},
            headers=INTERNAL,
        )

        assert response.json() == {"status": "ok", "sent": False}

    def test_sends_prediction_email(self, client):
        email = MagicMock()
        email.send_prediction_confirmation.return_value = True
        app.dependency_overrides[get_email_service] = lambda: email
        body = {"userEmail": "a@b.co", "userName": "Ana", "gpName": "GP México", "predictions": {"pole1": "Max"}}

        response = client.post("/api/send-prediction-email", json=body, headers=INTERNAL)

        assert response.json() == {"status": "ok", "sent": True}
        email.send_prediction_confirmation.assert_called_once_with("a@b.co", "Ana", "GP México", {"pole1": "Max"})

    def test_prediction_email_needs_every_field(self, client):
        body = {"userEmail": "a@b.co", "userName": "Ana", "predictions": {}}
        assert client.post("/api/send-prediction-email", json=body, headers=INTERNAL).status_code == 422


class TestFacebookConversions:
    def test_hash_identifier_normalizes(self):
        assert hash_identifier("  Ana@Example.com ") == hash_identifier("ana@example.com")
        assert hash_identifier("   ") is None

    def test_disabled_without_credentials(self):
        with patch("app.modules.tracking.facebook.httpx.post") as mock_post:
            assert FacebookConversions(pixel_id="", access_token="").send_event("Lead") is None
            mock_post.assert_not_called()

    @patch("app.modules.tracking.facebook.httpx.post")
    def test_purchase_event(self, mock_post):
        mock_post.return_value = ok_response(payload={"events_received": 1})
        tracker = FacebookConversions(pixel_id="123", access_token="tok", test_event_code="TEST1")

        result = tracker.track_purchase("MMC-1", 20000, "MMC GO", ["mmc_picks_2"], email="Ana@Example.com",
                                        full_name="Ana Torres")

        assert result == {"events_received": 1}
        url = mock_post.call_args.args[0]
        assert url.endswith("/123/events")
        payload = mock_post.call_args.kwargs["json"]
        assert payload["test_event_code"] == "TEST1"
        event = payload["data"][0]
        assert event["event_name"] == "Purchase"
        assert event["event_id"] == "purchase_MMC-1"
        assert event["custom_data"]["value"] == 20
        assert event["user_data"]["em"] == [hash_identifier("ana@example.com")]
        assert event["user_data"]["ln"] == [hash_identifier("Torres")]

    def test_track_route_without_credentials(self, client):
        assert client.post("/api/fb-track", json={"event_name": "Lead"}).status_code == 500

    def test_track_route_relays_event(self, client):
        tracker = MagicMock()
        tracker.enabled = True
        tracker.send_event.return_value = {"events_received": 1}
        app.dependency_overrides[get_facebook_conversions] = lambda: tracker

        response = client.post("/api/fb-track", json={
            "event_name": "InitiateCheckout",
            "event_id": "evt_1",
            "hashed_email": "abc",
            "user_data": {"fbp": "fb.1.2", "ph": "dropped"},
            "params": {"value": 20},
        })

        assert response.json() == {"ok": True, "events_received": 1}
        kwargs = tracker.send_event.call_args.kwargs
        assert kwargs["event_id"] == "evt_1"
        assert kwargs["user_data"] == {"fbp": "fb.1.2", "em": "abc"}
        assert kwargs["custom_data"] == {"value": 20}

    def test_track_source_records_signed_in_visit(self, client, db):
        response = client.post("/api/track-source", json={
            "session_id": "session_1_abc", "utm_source": "instagram", "utm_campaign": "gp-mexico",
            "referrer": "https://instagram.com", "page_url": "https://motormania.test/mmc-go?utm_source=instagram",
        })

        assert response.json() == {"success": True}
        row = db.rows("traffic_sources")[0]
        assert row["user_id"] == "user_2abcTEST"
        assert row["utm_campaign"] == "gp-mexico"
        assert row["utm_term"] is None

    def test_track_source_anonymous_visit(self, anon_client, db):
        anon_client.post("/api/track-source", json={"session_id": "session_2", "referrer": "https://google.com"})
        row = db.rows("traffic_sources")[0]
        assert row["user_id"] is None
        assert row["session_id"] == "session_2"

    def test_track_source_storage_error(self, client, db):
        db.errors[("traffic_sources", "insert")] = RuntimeError("down")
        response = client.post("/api/track-source", json={"utm_source": "x"})
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to track"
