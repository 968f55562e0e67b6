"""
Keep‑alive self‑ping.

Free hosting tiers put idle services to sleep.  ``run_keep_alive``
pings the service's own health endpoint at a fixed interval, but only
during the configured daytime window (``keep_alive_start_hour`` to
``keep_alive_end_hour`` in ``keep_alive_timezone``) so the service can
still spin down at night.  The task shares no state with request
handling and ping failures are ignored.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import requests

from .config import settings

logger = logging.getLogger(__name__)


def keep_alive_url() -> str:
    if settings.keep_alive_url:
        return settings.keep_alive_url
    if settings.public_base_url:
        return f"{settings.public_base_url.rstrip('/')}/api/health"
    return ""


def is_within_window(now: Optional[datetime] = None) -> bool:
    """Return True if ``now`` falls inside the daytime ping window."""
    tz = ZoneInfo(settings.keep_alive_timezone)
    local = now.astimezone(tz) if now else datetime.now(tz)
    return settings.keep_alive_start_hour <= local.hour < settings.keep_alive_end_hour


def ping_once(url: str, now: Optional[datetime] = None) -> bool:
    """Ping ``url`` if inside the window.  Returns True if a ping was sent."""
    if not url or not is_within_window(now):
        return False
    try:
        requests.get(url, headers={"User-Agent": "keepalive-cron"}, timeout=30)
    except requests.RequestException as exc:
        logger.debug("Keep-alive ping to %s failed: %s", url, exc)
    return True


async def run_keep_alive() -> None:
    """Ping forever until cancelled."""
    url = keep_alive_url()
    logger.info("Keep-alive enabled for %s", url)
    while True:
        await asyncio.sleep(settings.keep_alive_interval_seconds)
        await asyncio.to_thread(ping_once, url)
