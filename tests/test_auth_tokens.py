"""Unit tests for auth/tokens.py -- admin key comparison and export CSRF tokens."""

from unittest.mock import patch

from auth.tokens import EXPORT_ACTION, create_csrf_token, verify_admin_key, verify_csrf_token
from core.config import get_settings


class TestAdminKey:
    def test_matching_key(self):
        assert verify_admin_key("test-admin-key")

    def test_wrong_key(self):
        assert not verify_admin_key("test-admin-kez")
        assert not verify_admin_key("")

    def test_unset_key_matches_nothing(self):
        settings = get_settings().model_copy(update={"admin_api_key": ""})
        with patch("auth.tokens.get_settings", return_value=settings):
            assert not verify_admin_key("")
            assert not verify_admin_key("anything")


class TestCsrfToken:
    def test_round_trip(self):
        token = create_csrf_token(EXPORT_ACTION, now=1_000_000)
        assert verify_csrf_token(token, EXPORT_ACTION, now=1_000_010)

    def test_expired(self):
        token = create_csrf_token(EXPORT_ACTION, now=1_000_000)
        ttl = get_settings().csrf_token_ttl_seconds
        assert not verify_csrf_token(token, EXPORT_ACTION, now=1_000_000 + ttl + 1)

    def test_bound_to_action(self):
        token = create_csrf_token("some_other_action", now=1_000_000)
        assert not verify_csrf_token(token, EXPORT_ACTION, now=1_000_001)

    def test_tampered_expiry_rejected(self):
        token = create_csrf_token(EXPORT_ACTION, now=1_000_000)
        expires, _, signature = token.partition(".")
        forged = f"{int(expires) + 86400}.{signature}"
        assert not verify_csrf_token(forged, EXPORT_ACTION, now=1_000_001)

    def test_malformed(self):
        assert not verify_csrf_token("", EXPORT_ACTION)
        assert not verify_csrf_token("no-dot-here", EXPORT_ACTION)
        assert not verify_csrf_token("abc.def", EXPORT_ACTION)
