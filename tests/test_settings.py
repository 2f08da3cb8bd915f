"""Tests for environment-driven settings."""

from __future__ import annotations

from hnreel.settings import Settings


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings.model_validate({})
        assert settings.hn_base_url == "https://hacker-news.firebaseio.com/"
        assert settings.max_concurrent == 5
        assert settings.comment_max_depth == 25
        assert settings.debug is False

    def test_reads_environment_names(self) -> None:
        settings = Settings.model_validate(
            {
                "HN_RETRY_MAX_ATTEMPTS": "5",
                "HN_RETRY_INITIAL_DELAY": "0.5",
                "HN_RETRY_JITTER": "0",
                "HN_DEBUG": "true",
                "UNRELATED": "ignored",
            }
        )
        policy = settings.retry_policy()

        assert policy.max_attempts == 5
        assert policy.initial_delay == 0.5
        assert policy.jitter_fraction == 0.0
        assert settings.debug is True
