import logging
import datetime
import requests
from ..config import settings

logger = logging.getLogger(__name__)

EMBED_COLOR = 0x5865F2


def _format_planned_streams(planned_streams: list[dict]) -> str:
    if not planned_streams:
        return "_No planned streams_"
    return "\n\n".join(
        f"**{s['name']}**\nStart: {s['start_date']}\nDuration: {s['duration']} hrs"
        for s in planned_streams
    )


def build_plan_embed(streamer: dict, plan: dict, planned_streams: list[dict]) -> dict:
    return {
        "title": "📢 Streamer Plan Notification",
        "color": EMBED_COLOR,
        "fields": [
            {
                "name": "👤 Streamer",
                "value": f"**Name:** {streamer['name']}\n**Username:** {streamer['username']}",
                "inline": False,
            },
            {
                "name": "📊 Plan Info",
                "value": f"**Views/day:** {plan['views']}\n**Chats/day:** {plan['chats']}\n**Hours/day:** {plan['hours']}",
                "inline": False,
            },
            {
                "name": "🗓 Planned Streams",
                "value": _format_planned_streams(planned_streams),
                "inline": False,
            },
        ],
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }


def notify_plan_and_schedule(streamer: dict, plan: dict, planned_streams: list[dict]):
    """Posts the streamer's plan and newly scheduled stream to the Discord webhook."""
    if not settings.DISCORD_WEBHOOK_URL:
        logger.warning("Discord webhook URL not configured. Skipping notification.")
        return

    payload = {"embeds": [build_plan_embed(streamer, plan, planned_streams)]}

    try:
        response = requests.post(settings.DISCORD_WEBHOOK_URL, json=payload, timeout=settings.DISCORD_TIMEOUT_SECONDS)
        response.raise_for_status()
        logger.info(f"Discord notification sent for streamer {streamer['username']}.")
    except requests.exceptions.RequestException as e:
        logger.error(f"Discord notification failed for streamer {streamer['username']}: {e}")
