"""Tests for notification channels, templates and the dispatcher."""

import json
from datetime import datetime

import httpx
import pytest
import resend

from jobwarden.config import get_config
from jobwarden.schemas.job import JobKey
from jobwarden.schemas.notification import (
    NOTIFICATION_CONFIG_KEY,
    NotificationConfig,
    NotificationQuery,
    NotificationStatus,
    NotificationStrategy,
    Setting,
)
from jobwarden.services.notifications import (
    PUSHPLUS_API_URL,
    EmailChannel,
    NotificationDispatcher,
    NullChannel,
    PushPlusChannel,
    WebhookChannel,
    create_channel,
)
from jobwarden.services.notifications.templates import render_job_result, render_scheduler_error

pytestmark = pytest.mark.asyncio

KEY = JobKey("report", "reports")
EXECUTED_AT = datetime(2026, 3, 10, 12, 0, 0)


@pytest.fixture
def sent_emails(monkeypatch) -> list[dict]:
    """Capture Resend calls instead of sending."""
    sent: list[dict] = []

    def fake_send(params):
        sent.append(params)
        return {"id": "email_1"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)
    return sent


class TestPushPlusChannel:
    """Tests for PushPlusChannel.send."""

    async def test_sends_payload(self):
        """Should post token, title, template, channel and topic to PushPlus."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"code": 200, "msg": "ok"})

        channel = PushPlusChannel("tok", topic="ops", transport=httpx.MockTransport(handler))
        result = await channel.send("Title", "<b>body</b>", "html")

        assert result.success is True
        assert str(seen[0].url) == PUSHPLUS_API_URL
        payload = json.loads(seen[0].content)
        assert payload["token"] == "tok"
        assert payload["title"] == "Title"
        assert payload["template"] == "html"
        assert payload["channel"] == "wechat"
        assert payload["topic"] == "ops"

    async def test_api_error_code(self):
        """Should fail with the PushPlus code and message on a non-200 code."""
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"code": 900, "msg": "bad token"}))
        result = await PushPlusChannel("tok", transport=transport).send("t", "c")

        assert result.success is False
        assert result.error_message == "PushPlus error 900: bad token"

    async def test_http_error_status(self):
        """Should fail with the HTTP status on a non-success response."""
        transport = httpx.MockTransport(lambda r: httpx.Response(500, text="down"))
        result = await PushPlusChannel("tok", transport=transport).send("t", "c")
        assert result.error_message == "HTTP 500"

    async def test_timeout(self):
        """Should report a timeout without raising."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        result = await PushPlusChannel("tok", transport=httpx.MockTransport(handler)).send("t", "c")
        assert result.error_message == "PushPlus request timed out"

    async def test_missing_token(self):
        """Should fail without a request when no token is set."""
        result = await PushPlusChannel("").send("t", "c")
        assert result.success is False


class TestWebhookChannel:
    """Tests for WebhookChannel.send."""

    async def test_posts_content(self):
        """Should post the title and body as webhook content."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        channel = WebhookChannel("https://hooks.example.com/abc", transport=httpx.MockTransport(handler))
        result = await channel.send("Job failed: report", "details")

        assert result.success is True
        assert json.loads(seen[0].content) == {"content": "**Job failed: report**\ndetails"}

    async def test_content_is_truncated(self):
        """Should cut content to the webhook length limit."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        channel = WebhookChannel("https://hooks.example.com/abc", transport=httpx.MockTransport(handler))
        await channel.send("t", "x" * 5000)

        assert len(json.loads(seen[0].content)["content"]) == 2000

    async def test_failure_status(self):
        """Should fail with the HTTP status on a non-success response."""
        transport = httpx.MockTransport(lambda r: httpx.Response(404))
        result = await WebhookChannel("https://hooks.example.com/abc", transport=transport).send("t", "c")
        assert result.error_message == "HTTP 404"


class TestEmailChannel:
    """Tests for EmailChannel.send."""

    async def test_sends_html_email(self, sent_emails):
        """Should send one email with the title as subject and an html body."""
        channel = EmailChannel("re_key", "jobs <jobs@example.com>", ["ops@example.com"])
        result = await channel.send("Job failed: report", "<p>boom</p>", "html")

        assert result.success is True
        assert sent_emails == [
            {
                "from": "jobs <jobs@example.com>",
                "to": ["ops@example.com"],
                "subject": "Job failed: report",
                "html": "<p>boom</p>",
            }
        ]

    async def test_non_html_goes_out_as_text(self, sent_emails):
        """Should use the plain text body for txt and markdown templates."""
        channel = EmailChannel("re_key", "jobs@example.com", ["ops@example.com"])
        await channel.send("t", "## heading", "markdown")

        assert sent_emails[0]["text"] == "## heading"
        assert "html" not in sent_emails[0]

    async def test_provider_error_is_reported(self, monkeypatch):
        """Should turn a Resend exception into a failed result."""

        def refuse(params):
            raise RuntimeError("domain not verified")

        monkeypatch.setattr(resend.Emails, "send", refuse)
        result = await EmailChannel("re_key", "jobs@example.com", ["ops@example.com"]).send("t", "c")

        assert result.success is False
        assert result.error_message == "domain not verified"

    async def test_missing_api_key_or_recipients(self, sent_emails):
        """Should fail without calling Resend when key or recipients are missing."""
        no_key = await EmailChannel("", "jobs@example.com", ["ops@example.com"]).send("t", "c")
        no_recipients = await EmailChannel("re_key", "jobs@example.com", []).send("t", "c")

        assert no_key.success is False
        assert no_recipients.success is False
        assert sent_emails == []


class TestCreateChannel:
    """Tests for create_channel."""

    def test_email_with_key_and_recipients(self, monkeypatch):
        """Should build an email channel when recipients and an API key are set."""
        monkeypatch.setattr(get_config().settings, "resend_api_key", "re_key")

        channel = create_channel(NotificationConfig(channel="email", email_to=["ops@example.com"]))

        assert isinstance(channel, EmailChannel)
        assert channel.recipients == ["ops@example.com"]

    def test_email_without_key_gives_null_channel(self, monkeypatch):
        """Should fall back to the null channel when no Resend key is configured."""
        monkeypatch.setattr(get_config().settings, "resend_api_key", "")

        channel = create_channel(NotificationConfig(channel="email", email_to=["ops@example.com"]))

        assert isinstance(channel, NullChannel)

    def test_pushplus_with_token(self):
        """Should build a PushPlus channel when a token is set."""
        channel = create_channel(NotificationConfig(channel="pushplus", token="tok"))
        assert isinstance(channel, PushPlusChannel)

    def test_webhook_with_url(self):
        """Should build a webhook channel when a URL is set."""
        channel = create_channel(NotificationConfig(channel="webhook", webhook_url="https://h.example.com"))
        assert isinstance(channel, WebhookChannel)

    def test_unusable_config_gives_null_channel(self):
        """Should fall back to the null channel for unusable configs."""
        assert isinstance(create_channel(NotificationConfig(channel="pushplus")), NullChannel)
        assert isinstance(create_channel(NotificationConfig(channel="carrier-pigeon")), NullChannel)


class TestTemplates:
    """Tests for the notification body renderers."""

    def test_html_escapes_values(self):
        """Should escape values in the html template."""
        body = render_job_result("html", KEY, False, "failed", 12, "<script>", EXECUTED_AT)

        assert "&lt;script&gt;" in body
        assert "<script>" not in body
        assert "Job failed: report" in body

    def test_txt(self):
        """Should render plain text lines and omit the error when absent."""
        body = render_job_result("txt", KEY, True, "ok", 5, None, EXECUTED_AT)

        assert body.startswith("Job succeeded: report")
        assert "Job group: reports" in body
        assert "Duration: 5 ms" in body
        assert "Error" not in body

    def test_markdown(self):
        """Should render a markdown heading and bullet list."""
        body = render_job_result("markdown", KEY, False, "failed", 5, "boom", EXECUTED_AT)

        assert body.startswith("## Job failed: report")
        assert "- **Error**: boom" in body

    def test_scheduler_error(self):
        """Should include the error type and message."""
        body = render_scheduler_error("txt", RuntimeError("engine down"), EXECUTED_AT)

        assert "Error type: RuntimeError" in body
        assert "Message: engine down" in body


class TestDispatcher:
    """Tests for NotificationDispatcher policy and record keeping."""

    @pytest.fixture
    def dispatcher(self, file_store, channel):
        return NotificationDispatcher(file_store, channel_factory=lambda config: channel)

    async def _records(self, store):
        return (await store.get_notifications(NotificationQuery())).items

    async def test_disabled_by_default(self, dispatcher, channel, file_store):
        """Should neither send nor record while notifications are disabled."""
        await dispatcher.notify_job_result(KEY, False, "failed", 10, "boom")

        assert channel.sent == []
        assert await self._records(file_store) == []

    async def test_failure_is_sent_and_recorded(self, dispatcher, channel, file_store):
        """Should send a failure and record it as sent."""
        await dispatcher.save_config(NotificationConfig(enabled=True, template="txt"))

        await dispatcher.notify_job_result(KEY, False, "failed", 10, "boom")

        assert len(channel.sent) == 1
        title, content, template = channel.sent[0]
        assert title == "Job failed: report"
        assert template == "txt"
        assert "Error: boom" in content

        records = await self._records(file_store)
        assert len(records) == 1
        assert records[0].status == NotificationStatus.SENT
        assert records[0].triggered_by == "reports.report"
        assert records[0].sent_at is not None

    async def test_success_respects_strategy(self, dispatcher, channel):
        """Should send successes only when the strategy asks for them."""
        await dispatcher.save_config(NotificationConfig(enabled=True))
        await dispatcher.notify_job_result(KEY, True, "ok", 10)
        assert channel.sent == []

        await dispatcher.save_config(
            NotificationConfig(enabled=True, strategy=NotificationStrategy(notify_on_job_success=True))
        )
        await dispatcher.notify_job_result(KEY, True, "ok", 10)
        assert [title for title, _, _ in channel.sent] == ["Job succeeded: report"]

    async def test_failed_delivery_is_recorded(self, dispatcher, channel, file_store):
        """Should record a refused delivery as failed."""
        channel.success = False
        await dispatcher.save_config(NotificationConfig(enabled=True))

        await dispatcher.notify_job_result(KEY, False, "failed", 10, "boom")

        record = (await self._records(file_store))[0]
        assert record.status == NotificationStatus.FAILED
        assert record.error_message == "delivery refused"

    async def test_scheduler_error(self, dispatcher, channel, file_store):
        """Should send scheduler errors tagged with the scheduler source."""
        await dispatcher.save_config(NotificationConfig(enabled=True))

        await dispatcher.notify_scheduler_error(RuntimeError("engine down"))

        assert channel.sent[0][0] == "Scheduler error"
        assert (await self._records(file_store))[0].triggered_by == "Scheduler"

    async def test_scheduler_error_can_be_disabled(self, dispatcher, channel):
        """Should skip scheduler errors when the strategy turns them off."""
        await dispatcher.save_config(
            NotificationConfig(enabled=True, strategy=NotificationStrategy(notify_on_scheduler_error=False))
        )
        await dispatcher.notify_scheduler_error(RuntimeError("engine down"))
        assert channel.sent == []

    async def test_unreadable_config_falls_back_to_disabled(self, dispatcher, file_store):
        """Should fall back to the disabled default on an unreadable config."""
        await file_store.save_setting(Setting(key=NOTIFICATION_CONFIG_KEY, value="{not json"))

        config = await dispatcher.get_config()

        assert config.enabled is False

    async def test_send_test_ignores_enabled(self, dispatcher, channel):
        """Should send a test message even while disabled."""
        assert await dispatcher.send_test() is True
        assert channel.sent[0][0] == "Test notification"
