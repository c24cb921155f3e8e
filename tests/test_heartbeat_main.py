"""Tests for the heartbeat monitor entry point."""

from herald.heartbeat.__main__ import main


class TestMain:
    def test_once_initializes_and_exits(self, monkeypatch):
        """A single check against empty storage initializes the heartbeat."""
        monkeypatch.setenv("HERALD_STORAGE_BACKEND", "memory")
        monkeypatch.delenv("HERALD_HUBSPOT_PRIVATE_APP_TOKEN", raising=False)

        assert main(["--once"]) == 0
