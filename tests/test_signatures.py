# =============================================================================
# tests/test_signatures.py - Bold checkout and webhook signature tests
# =============================================================================

import base64
import hashlib
import hmac
import json

import pytest

from app.modules.payments import bold


class TestBoldIntegritySignature:
    def test_matches_sha256_of_concatenation(self):
        expected = hashlib.sha256(b"MMC-user_1-1700000000000" b"20000" b"COP" b"shh").hexdigest()
        assert bold.integrity_signature("MMC-user_1-1700000000000", 20000, "COP", "shh") == expected

    def test_amount_formats_are_equivalent(self):
        a = bold.integrity_signature("ORDER-x-1", 20000, "COP", "k")
        b = bold.integrity_signature("ORDER-x-1", "20000", "COP", "k")
        c = bold.integrity_signature("ORDER-x-1", 20000.0, "COP", "k")
        assert a == b == c

    def test_format_amount(self):
        assert bold.format_amount(15000.0) == "15000"
        assert bold.format_amount("15000") == "15000"
        assert bold.format_amount(99.5) == "99.50"


class TestBoldWebhookSignature:
    def test_valid_signature(self):
        body = json.dumps({"type": "SALE_APPROVED"}).encode()
        signature = hmac.new(b"key", base64.b64encode(body), hashlib.sha256).hexdigest()
        assert bold.verify_webhook_signature(body, signature, "key")

    def test_uppercase_signature_accepted(self):
        body = b"{}"
        signature = bold.webhook_signature(body, "key").upper()
        assert bold.verify_webhook_signature(body, signature, "key")

    def test_tampered_body_rejected(self):
        signature = bold.webhook_signature(b'{"a":1}', "key")
        assert not bold.verify_webhook_signature(b'{"a":2}', signature, "key")

    @pytest.mark.parametrize("signature,secret", [("", "key"), ("abc", ""), (None, "key")])
    def test_missing_values_rejected(self, signature, secret):
        assert not bold.verify_webhook_signature(b"{}", signature, secret)

    def test_raffle_order_id_prefix(self):
        assert bold.raffle_order_id("user_9").startswith("ORDER-user_9-")
