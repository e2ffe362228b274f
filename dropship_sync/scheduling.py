"""Daily sync schedule helpers."""
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo


def next_run_at(now: datetime, hour: int, minute: int, tz: str) -> datetime:
    """Next daily run at ``hour:minute`` local time in ``tz``.

    If today's slot is at or before ``now`` the run moves to tomorrow.

    Args:
        now: Current time (timezone-aware; naive values are taken as ``tz``)
        hour: Local hour (0-23)
        minute: Local minute (0-59)
        tz: IANA timezone name, e.g. "Europe/London"

    Returns:
        Timezone-aware datetime in ``tz``
    """
    zone = ZoneInfo(tz)
    local_now = now.replace(tzinfo=zone) if now.tzinfo is None else now.astimezone(zone)
    run = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if run <= local_now:
        run = (run.replace(tzinfo=None) + timedelta(days=1)).replace(tzinfo=zone)
    return run
