"""
Unit tests for settings loading.
"""

import logging

from config import DEFAULT_JWT_SECRET, Settings, get_settings, warn_insecure_defaults


class TestSettings:
    """Tests for Settings and its startup checks."""

    def test_environment_overrides(self):
        assert get_settings().jwt_secret == "test-secret"
        assert get_settings().argon2_time_cost == 1

    def test_default_secret_is_flagged(self, caplog):
        """Running with the built-in signing key logs a warning."""
        with caplog.at_level(logging.WARNING, logger="config"):
            assert warn_insecure_defaults(Settings(jwt_secret=DEFAULT_JWT_SECRET))
        assert "JWT_SECRET" in caplog.text

    def test_custom_secret_is_quiet(self, caplog):
        with caplog.at_level(logging.WARNING, logger="config"):
            assert not warn_insecure_defaults(Settings(jwt_secret="rotated-key"))
        assert caplog.text == ""
