"""Tests for Herald data models."""

import json
import re
from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from herald.models import (
    DeliveryResult,
    DispatchSummary,
    EventEnvelope,
    Heartbeat,
    WebhookSubscription,
    generate_id,
    isoformat_ms,
)


class TestHelpers:
    def test_generate_id_prefix(self):
        assert re.fullmatch(r"whk_[0-9a-f]{12}", generate_id("whk"))

    def test_generate_id_unique(self):
        assert generate_id("whk") != generate_id("whk")

    def test_isoformat_ms(self):
        moment = datetime(2025, 1, 2, 3, 4, 5, 678901, tzinfo=UTC)
        assert isoformat_ms(moment) == "2025-01-02T03:04:05.678Z"

    def test_isoformat_ms_converts_to_utc(self):
        moment = datetime(2025, 1, 2, 5, 0, tzinfo=UTC).astimezone(
            datetime.now().astimezone().tzinfo
        )
        assert isoformat_ms(moment) == "2025-01-02T05:00:00.000Z"


class TestWebhookSubscription:
    """Tests for WebhookSubscription model."""

    def test_defaults(self):
        sub = WebhookSubscription(
            profile_id="prof_1",
            url="https://example.com/hooks",
            secret="s3cret",
            events={"journal.created"},
        )
        assert sub.id.startswith("whk_")
        assert sub.is_active
        assert sub.failure_count == 0
        assert sub.last_success_at is None
        assert sub.last_failure_at is None

    def test_secret_hidden_from_repr(self):
        sub = WebhookSubscription(
            profile_id="prof_1", url="https://example.com", secret="s3cret", events={"a"}
        )
        assert "s3cret" not in repr(sub)

    @pytest.mark.parametrize("secret", ["", "  "])
    def test_empty_secret_rejected(self, secret):
        with pytest.raises(ValidationError):
            WebhookSubscription(
                profile_id="prof_1", url="https://example.com", secret=secret, events={"a"}
            )

    def test_events_required(self):
        with pytest.raises(ValidationError):
            WebhookSubscription(
                profile_id="prof_1", url="https://example.com", secret="s", events=set()
            )

    def test_invalid_url_rejected(self):
        with pytest.raises(ValidationError):
            WebhookSubscription(profile_id="prof_1", url="not a url", secret="s", events={"a"})

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            WebhookSubscription(
                profile_id="prof_1",
                url="https://example.com",
                secret="s",
                events={"a"},
                max_retries=5,
            )

    def test_subscribes_to(self):
        sub = WebhookSubscription(
            profile_id="prof_1", url="https://example.com", secret="s", events={"a", "b"}
        )
        assert sub.subscribes_to("a")
        assert not sub.subscribes_to("c")
        sub.is_active = False
        assert not sub.subscribes_to("a")

    def test_mark_failure_disables_at_threshold(self):
        sub = WebhookSubscription(
            profile_id="prof_1",
            url="https://example.com",
            secret="s",
            events={"a"},
            failure_count=9,
        )
        assert sub.mark_failure(threshold=10) is True
        assert sub.failure_count == 10
        assert not sub.is_active
        assert sub.last_failure_at is not None

    def test_mark_failure_below_threshold(self):
        sub = WebhookSubscription(
            profile_id="prof_1", url="https://example.com", secret="s", events={"a"}
        )
        assert sub.mark_failure(threshold=10) is False
        assert sub.failure_count == 1
        assert sub.is_active

    def test_mark_failure_on_inactive_does_not_report_disable(self):
        sub = WebhookSubscription(
            profile_id="prof_1",
            url="https://example.com",
            secret="s",
            events={"a"},
            failure_count=10,
            is_active=False,
        )
        assert sub.mark_failure(threshold=10) is False
        assert sub.failure_count == 11

    def test_mark_success_resets_count_but_not_active(self):
        sub = WebhookSubscription(
            profile_id="prof_1",
            url="https://example.com",
            secret="s",
            events={"a"},
            failure_count=10,
            is_active=False,
        )
        sub.mark_success()
        assert sub.failure_count == 0
        assert sub.last_success_at is not None
        assert not sub.is_active

    def test_reactivate(self):
        sub = WebhookSubscription(
            profile_id="prof_1",
            url="https://example.com",
            secret="s",
            events={"a"},
            failure_count=10,
            is_active=False,
        )
        sub.reactivate()
        assert sub.is_active
        assert sub.failure_count == 0


class TestEventEnvelope:
    """Tests for EventEnvelope model."""

    def test_build_stamps_timestamp(self):
        envelope = EventEnvelope.build("prof_1", "journal.created", {"id": 1})
        assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", envelope.timestamp)

    def test_serialize_field_order(self):
        envelope = EventEnvelope(
            event_type="goal.completed",
            profile_id="prof_9",
            data=None,
            timestamp="2025-01-02T03:04:05.678Z",
        )
        body = envelope.serialize()
        assert list(json.loads(body)) == ["event_type", "profile_id", "data", "timestamp"]
        assert body == (
            '{"event_type":"goal.completed","profile_id":"prof_9",'
            '"data":null,"timestamp":"2025-01-02T03:04:05.678Z"}'
        )

    def test_frozen(self):
        envelope = EventEnvelope.build("prof_1", "a")
        with pytest.raises(ValidationError):
            envelope.event_type = "b"

    def test_requires_event_type(self):
        with pytest.raises(ValidationError):
            EventEnvelope.build("prof_1", "")


class TestDispatchSummary:
    def test_from_results(self):
        results = [
            DeliveryResult(subscription_id="whk_1", url="https://a.example", success=True),
            DeliveryResult(subscription_id="whk_2", url="https://b.example", success=False),
        ]
        summary = DispatchSummary.from_results("a", "prof_1", results)
        assert summary.success
        assert summary.webhooks_total == 2
        assert summary.delivered == 1
        assert summary.failed == 1

    def test_empty(self):
        summary = DispatchSummary(event_type="a", profile_id="prof_1")
        assert summary.webhooks_total == 0
        assert summary.results == []


class TestHeartbeat:
    def test_age_minutes(self):
        now = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)
        heartbeat = Heartbeat(source="hubspot_webhook", timestamp=now - timedelta(minutes=20))
        assert heartbeat.age_minutes(now) == pytest.approx(20.0)

    def test_invalid_status_rejected(self):
        with pytest.raises(ValidationError):
            Heartbeat(source="hubspot_webhook", status="stale")

    def test_count_non_negative(self):
        with pytest.raises(ValidationError):
            Heartbeat(source="hubspot_webhook", count=-1)
