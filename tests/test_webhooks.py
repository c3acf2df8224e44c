# =============================================================================
# tests/test_webhooks.py - Bold, PayPal and Clerk webhook endpoints
# =============================================================================

import json
import time
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from svix.webhooks import Webhook

from app.main import app
from app.modules.payments import bold
from app.modules.payments.paypal import get_paypal_client
from app.modules.webhooks.routes import get_webhook_service
from app.modules.webhooks.service import WebhookService
from app.config import settings
from tests.conftest import TEST_USER_ID

PICK_ORDER = "MMC-user_2abcTEST-1700000000000"


@pytest.fixture
def webhooks(client, db, email, tracker):
    app.dependency_overrides[get_webhook_service] = lambda: WebhookService(db, email=email, tracker=tracker)
    return client


def post_bold(client, event, path="/api/webhooks/bold", secret=None):
    body = json.dumps(event).encode()
    signature = bold.webhook_signature(body, secret or settings.bold_secret_key)
    return client.post(path, content=body, headers={"x-bold-signature": signature, "content-type": "application/json"})


def post_clerk(client, event, secret=None, timestamp=None):
    body = json.dumps(event).encode()
    sent_at = datetime.fromtimestamp(int(timestamp or time.time()), tz=timezone.utc)
    signature = Webhook(secret or settings.clerk_webhook_secret).sign("msg_1", sent_at, body.decode())
    headers = {"svix-id": "msg_1", "svix-timestamp": str(int(sent_at.timestamp())), "svix-signature": signature}
    return client.post("/api/webhooks/clerk", content=body, headers=headers)


def sale_approved(reference, payment_id="BOLD-PAY-1", total=20000):
    return {
        "type": "SALE_APPROVED",
        "data": {"payment_id": payment_id, "metadata": {"reference": reference}, "amount": {"total": total}},
    }


def seed_pick_transaction(db, **overrides):
    row = {
        "order_id": PICK_ORDER, "user_id": TEST_USER_ID, "email": "ana@example.com", "full_name": "Ana",
        "gp_name": "GP", "mode": "full", "multiplier": 3, "potential_win": 60000, "wager_amount": 20000,
        "picks": [{"driver": "A", "line": 1.5, "betterOrWorse": "mejor"}] * 2, "payment_status": "pending",
    }
    row.update(overrides)
    return db.add_row("pick_transactions", row)


class TestBoldWebhook:
    def test_invalid_signature_is_401(self, webhooks):
        body = json.dumps(sale_approved(PICK_ORDER)).encode()
        response = webhooks.post("/api/webhooks/bold", content=body, headers={"x-bold-signature": "deadbeef"})
        assert response.status_code == 401

    def test_wrong_secret_is_401(self, webhooks):
        response = post_bold(webhooks, sale_approved(PICK_ORDER), secret="not-the-secret")
        assert response.status_code == 401

    def test_pick_sale_approved(self, webhooks, db, email):
        seed_pick_transaction(db)

        response = post_bold(webhooks, sale_approved(PICK_ORDER))

        assert response.status_code == 200
        assert response.json() == {"ok": True, "processed": True, "orderId": PICK_ORDER}
        assert db.rows("pick_transactions")[0]["payment_status"] == "paid"
        assert len(db.rows("picks")) == 1
        email.send_pick_confirmation.assert_called_once()

    def test_redelivery_has_no_effect(self, webhooks, db, email):
        seed_pick_transaction(db)
        post_bold(webhooks, sale_approved(PICK_ORDER))

        response = post_bold(webhooks, sale_approved(PICK_ORDER))

        assert response.json() == {"ok": True, "ignored": True}
        assert len(db.rows("picks")) == 1
        assert len(db.rpc_calls) == 1
        email.send_pick_confirmation.assert_called_once()

    def test_sale_rejected_marks_failed(self, webhooks, db):
        seed_pick_transaction(db)
        response = post_bold(webhooks, {"type": "SALE_REJECTED", "data": {"metadata": {"reference": PICK_ORDER}}})
        assert response.json()["status"] == "failed"
        assert db.rows("pick_transactions")[0]["payment_status"] == "failed"

    def test_unhandled_event_is_ignored(self, webhooks):
        response = post_bold(webhooks, {"type": "VOID_APPROVED", "data": {}})
        assert response.status_code == 200
        assert response.json() == {"ok": True, "ignored": True}

    def test_missing_payment_data_is_400(self, webhooks):
        response = post_bold(webhooks, {"type": "SALE_APPROVED", "data": {"metadata": {"reference": PICK_ORDER}}})
        assert response.status_code == 400

    def test_unknown_transaction_is_ignored(self, webhooks):
        assert post_bold(webhooks, sale_approved("MMC-user_x-1")).json() == {"ok": True, "ignored": True}

    def test_raffle_purchase_adds_numbers_once(self, webhooks, db, email):
        reference = f"ORDER-{TEST_USER_ID}-1700000000000"
        db.add_row("entries", {"user_id": TEST_USER_ID, "numbers": ["111111"], "paid_numbers_count": 0})
        db.add_row("clerk_users", {"clerk_id": TEST_USER_ID, "email": "ana@example.com", "full_name": "Ana"})

        first = post_bold(webhooks, sale_approved(reference, total=2000))
        second = post_bold(webhooks, sale_approved(reference, total=2000))

        assert first.json() == {"ok": True, "processed": True}
        assert second.json() == {"ok": True, "ignored": True}
        entry = db.rows("entries")[0]
        assert len(entry["numbers"]) == 6
        assert entry["paid_numbers_count"] == 5
        assert len(db.rows("transactions")) == 1
        email.send_numbers_confirmation.assert_called_once()

    def test_raffle_purchase_without_entry_is_404(self, webhooks):
        response = post_bold(webhooks, sale_approved(f"ORDER-{TEST_USER_ID}-1"))
        assert response.status_code == 404

    def test_vip_pass_through_main_webhook(self, webhooks, db):
        db.add_row("vip_transactions", {
            "order_id": "vip-season-pass-user-2abc-1", "user_id": TEST_USER_ID, "plan_id": "season-pass",
            "amount_cop": 80000, "payment_status": "pending", "email": "ana@example.com",
        })
        response = post_bold(webhooks, sale_approved("vip-season-pass-user-2abc-1"))
        assert response.json()["processed"] is True
        assert db.rows("vip_users")[0]["active_plan"] == "season-pass"

    def test_processing_error_is_500(self, webhooks, db):
        seed_pick_transaction(db)
        db.errors[("pick_transactions", "update")] = RuntimeError("connection reset")
        response = post_bold(webhooks, sale_approved(PICK_ORDER))
        assert response.status_code == 500

    def test_redelivery_after_failed_picks_insert_finishes_order(self, webhooks, db, email):
        seed_pick_transaction(db)
        db.errors[("picks", "insert")] = RuntimeError("connection reset")
        assert post_bold(webhooks, sale_approved(PICK_ORDER)).status_code == 500
        assert db.rows("pick_transactions")[0]["payment_status"] == "paid"

        del db.errors[("picks", "insert")]
        response = post_bold(webhooks, sale_approved(PICK_ORDER))

        assert response.json() == {"ok": True, "processed": True, "orderId": PICK_ORDER}
        assert db.rows("picks")[0]["order_id"] == PICK_ORDER
        assert [name for name, _ in db.rpc_calls] == ["increment_wallet_balances"]
        email.send_pick_confirmation.assert_called_once()

        assert post_bold(webhooks, sale_approved(PICK_ORDER)).json() == {"ok": True, "ignored": True}
        assert len(db.rows("picks")) == 1

    def test_raffle_purchase_retried_once_entry_exists(self, webhooks, db):
        reference = f"ORDER-{TEST_USER_ID}-1700000000000"
        assert post_bold(webhooks, sale_approved(reference)).status_code == 404
        assert db.rows("transactions") == []

        db.add_row("entries", {"user_id": TEST_USER_ID, "numbers": [], "paid_numbers_count": 0})
        assert post_bold(webhooks, sale_approved(reference)).json() == {"ok": True, "processed": True}
        assert len(db.rows("entries")[0]["numbers"]) == 5

    def test_vip_pass_confirmed_by_success_page_before_webhook(self, webhooks, db, email, tracker):
        order_id = "vip-season-pass-user-2abc-1"
        db.add_row("vip_transactions", {
            "order_id": order_id, "user_id": TEST_USER_ID, "plan_id": "season-pass", "full_name": "Ana",
            "amount_cop": 80000, "payment_status": "pending", "email": "ana@example.com",
        })

        confirm = webhooks.get(f"/api/vip/confirm-order?orderId={order_id}")
        assert confirm.json() == {"success": True, "updated": True}

        response = post_bold(webhooks, sale_approved(order_id, payment_id="BOLD-77"))

        assert response.json()["processed"] is True
        assert db.rows("vip_users")[0]["active_plan"] == "season-pass"
        assert db.rows("vip_entries")[0]["bold_order_id"] == "BOLD-77"
        assert db.rows("vip_transactions")[0]["bold_payment_id"] == "BOLD-77"
        email.send_vip_confirmation.assert_called_once()
        tracker.track_purchase.assert_called_once()

        again = post_bold(webhooks, sale_approved(order_id, payment_id="BOLD-77"))
        assert again.json() == {"ok": True, "ignored": True}
        assert len(db.rows("vip_entries")) == 1

    def test_malformed_json_is_400(self, webhooks):
        body = b"{not json"
        signature = bold.webhook_signature(body, settings.bold_secret_key)
        response = webhooks.post("/api/webhooks/bold", content=body, headers={"x-bold-signature": signature})
        assert response.status_code == 400


class TestBoldVipWebhook:
    def test_uses_vip_secret(self, webhooks):
        response = post_bold(webhooks, sale_approved("vip-x"), path="/api/webhooks/bold-vip")
        assert response.status_code == 401

    def test_prediction_order(self, webhooks, db):
        db.add_row("vip_orders", {
            "order_id": "vip_1700000000000_abcd1234", "user_id": TEST_USER_ID, "gp_name": "GP",
            "predictions": {"pole1": "A"}, "status": "pending",
        })
        event = {"type": "PAYMENT_APPROVED", "data": {"id": "PAY-2", "order_id": "vip_1700000000000_abcd1234"}}

        response = post_bold(webhooks, event, path="/api/webhooks/bold-vip", secret=settings.bold_webhook_secret_key)

        assert response.json()["ok"] is True
        assert db.rows("vip_orders")[0]["status"] == "completed"
        assert db.rows("vip_orders")[0]["bold_payment_id"] == "PAY-2"

    def test_missing_order_id(self, webhooks):
        event = {"type": "SALE_APPROVED", "data": {}}
        response = post_bold(webhooks, event, path="/api/webhooks/bold-vip", secret=settings.bold_webhook_secret_key)
        assert response.json() == {"ok": False, "error": "No order ID found"}


class TestPayPalWebhook:
    @pytest.fixture
    def paypal(self):
        fake = MagicMock()
        fake.verify_webhook_signature.return_value = True
        app.dependency_overrides[get_paypal_client] = lambda: fake
        yield fake
        app.dependency_overrides.pop(get_paypal_client, None)

    def test_order_approved_pays_transaction(self, webhooks, db, paypal):
        seed_pick_transaction(db, order_id="PP-user_2abcTEST-1", paypal_order_id="PAYPAL-1")
        event = {
            "event_type": "CHECKOUT.ORDER.APPROVED",
            "resource": {"id": "PAYPAL-1", "purchase_units": [{"reference_id": "PP-user_2abcTEST-1"}]},
        }

        response = webhooks.post("/api/webhooks/paypal", json=event)

        assert response.json() == {"ok": True, "processed": True, "orderId": "PP-user_2abcTEST-1"}
        assert db.rows("picks")[0]["payment_method"] == "paypal"

    def test_capture_completed_uses_related_order(self, webhooks, db, paypal):
        seed_pick_transaction(db, order_id="PP-user_2abcTEST-2", paypal_order_id="PAYPAL-2")
        event = {
            "event_type": "PAYMENT.CAPTURE.COMPLETED",
            "resource": {
                "id": "CAPTURE-2",
                "custom_id": "PP-user_2abcTEST-2",
                "supplementary_data": {"related_ids": {"order_id": "PAYPAL-2"}},
            },
        }
        assert webhooks.post("/api/webhooks/paypal", json=event).json()["processed"] is True

    def test_invalid_signature(self, webhooks, paypal):
        paypal.verify_webhook_signature.return_value = False
        response = webhooks.post("/api/webhooks/paypal", json={"event_type": "CHECKOUT.ORDER.APPROVED"})
        assert response.status_code == 401

    def test_other_events_ignored(self, webhooks, paypal):
        response = webhooks.post("/api/webhooks/paypal", json={"event_type": "PAYMENT.CAPTURE.DENIED"})
        assert response.json() == {"ok": True, "ignored": True}


class TestClerkWebhook:
    USER_CREATED = {
        "type": "user.created",
        "data": {
            "id": "user_new1",
            "first_name": "Ana",
            "last_name": "Torres",
            "username": "anat",
            "email_addresses": [{"email_address": "ana@example.com"}],
        },
    }

    def test_user_created_provisions_account(self, webhooks, db, email):
        response = post_clerk(webhooks, self.USER_CREATED)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert db.rows("clerk_users")[0]["full_name"] == "Ana Torres"
        entry = db.rows("entries")[0]
        assert entry["user_id"] == "user_new1"
        assert len(entry["numbers"]) == 5
        assert entry["region"] == "CO"
        assert db.rows("wallet")[0]["user_id"] == "user_new1"
        email.send_numbers_confirmation.assert_called_once()

    def test_user_created_twice_keeps_one_row(self, webhooks, db):
        post_clerk(webhooks, self.USER_CREATED)
        post_clerk(webhooks, self.USER_CREATED)
        assert len(db.rows("clerk_users")) == 1
        assert len(db.rows("entries")) == 1

    def test_user_updated(self, webhooks, db):
        db.add_row("clerk_users", {"clerk_id": "user_new1", "email": "old@example.com", "full_name": "Old"})
        event = {**self.USER_CREATED, "type": "user.updated"}
        post_clerk(webhooks, event)
        assert db.rows("clerk_users")[0]["email"] == "ana@example.com"

    def test_other_event_types_acknowledged(self, webhooks):
        response = post_clerk(webhooks, {"type": "session.created", "data": {}})
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_missing_svix_headers(self, webhooks):
        assert webhooks.post("/api/webhooks/clerk", json=self.USER_CREATED).status_code == 400

    def test_bad_signature(self, webhooks):
        other = "whsec_" + "b3RoZXI="
        assert post_clerk(webhooks, self.USER_CREATED, secret=other).status_code == 400

    def test_malformed_signature_header(self, webhooks):
        headers = {"svix-id": "msg_1", "svix-timestamp": str(int(time.time())), "svix-signature": "not-a-signature"}
        response = webhooks.post("/api/webhooks/clerk", content=b"{}", headers=headers)
        assert response.status_code == 400

    def test_stale_delivery(self, webhooks):
        stale = str(int(time.time()) - 3600)
        assert post_clerk(webhooks, self.USER_CREATED, timestamp=stale).status_code == 400

    def test_missing_email_is_400(self, webhooks):
        event = {"type": "user.created", "data": {"id": "user_x", "email_addresses": []}}
        assert post_clerk(webhooks, event).status_code == 400
