"""Tests for Wave webhook signature verification."""

import logging

from exampremium.billing.signature import compute_signature, verify_signature

BODY = b'{"id":"evt_1","type":"checkout.session.completed","data":{"id":"cos-1"}}'


class TestComputeSignature:
    def test_hex_digest(self):
        signature = compute_signature(BODY, "secret")
        assert len(signature) == 64
        int(signature, 16)

    def test_depends_on_secret(self):
        assert compute_signature(BODY, "one") != compute_signature(BODY, "two")


class TestVerifySignature:
    def test_valid_signature_accepted(self, webhook_secret):
        assert verify_signature(BODY, compute_signature(BODY, webhook_secret)) is True

    def test_surrounding_whitespace_ignored(self, webhook_secret):
        signature = compute_signature(BODY, webhook_secret)
        assert verify_signature(BODY, f"  {signature}\n") is True

    def test_tampered_body_rejected(self, webhook_secret):
        signature = compute_signature(BODY, webhook_secret)
        assert verify_signature(BODY.replace(b"cos-1", b"cos-2"), signature) is False

    def test_wrong_secret_rejected(self, webhook_secret):
        assert verify_signature(BODY, compute_signature(BODY, "not-the-secret")) is False

    def test_empty_header_rejected(self, webhook_secret):
        assert verify_signature(BODY, "") is False

    def test_non_ascii_header_rejected_without_raising(self, webhook_secret):
        assert verify_signature(BODY, "sïgnature") is False

    def test_unconfigured_secret_accepts_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="exampremium.billing.signature"):
            assert verify_signature(BODY, "anything") is True
        assert "WAVE_WEBHOOK_SECRET not configured" in caplog.text
