from unittest.mock import MagicMock, patch

import requests

from streamboost.config import settings
from streamboost.services.notifications import build_plan_embed, notify_plan_and_schedule

STREAMER = {"name": "Ada", "username": "ada"}
PLAN = {"views": 5000, "chats": "Unlimited", "hours": 5.0}
STREAMS = [{"name": "Launch", "start_date": "2025-11-11T10:00:00", "duration": 1.5}]


def test_embed_fields():
    embed = build_plan_embed(STREAMER, PLAN, STREAMS)
    names = [f["name"] for f in embed["fields"]]
    assert len(names) == 3
    assert "**Username:** ada" in embed["fields"][0]["value"]
    assert "**Chats/day:** Unlimited" in embed["fields"][1]["value"]
    assert "Duration: 1.5 hrs" in embed["fields"][2]["value"]


def test_embed_without_streams():
    embed = build_plan_embed(STREAMER, PLAN, [])
    assert embed["fields"][2]["value"] == "_No planned streams_"


def test_skipped_without_webhook(monkeypatch):
    monkeypatch.setattr(settings, "DISCORD_WEBHOOK_URL", "")
    with patch("streamboost.services.notifications.requests.post") as post:
        notify_plan_and_schedule(STREAMER, PLAN, STREAMS)
    post.assert_not_called()


def test_posts_with_timeout(monkeypatch):
    monkeypatch.setattr(settings, "DISCORD_WEBHOOK_URL", "https://discord.test/hook")
    with patch("streamboost.services.notifications.requests.post") as post:
        notify_plan_and_schedule(STREAMER, PLAN, STREAMS)
    assert post.call_args.args == ("https://discord.test/hook",)
    assert post.call_args.kwargs["timeout"] == settings.DISCORD_TIMEOUT_SECONDS


def test_http_failure_is_logged_not_raised(monkeypatch, caplog):
    monkeypatch.setattr(settings, "DISCORD_WEBHOOK_URL", "https://discord.test/hook")
    response = MagicMock()
    response.raise_for_status.side_effect = requests.exceptions.HTTPError("500 Server Error")
    with patch("streamboost.services.notifications.requests.post", return_value=response):
        notify_plan_and_schedule(STREAMER, PLAN, STREAMS)
    assert "Discord notification failed" in caplog.text
