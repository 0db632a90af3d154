"""Last-seen presence. A user is online while their latest heartbeat is recent enough."""
from datetime import datetime, timedelta, timezone


def as_utc(moment):
    # SQLite drops tzinfo on the way back; stored values are always UTC
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=timezone.utc)


def touch(user, now=None):
    user.last_seen_at = now or datetime.now(timezone.utc)
    return user.last_seen_at


def is_online(last_seen_at, timeout_seconds, now=None):
    if last_seen_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return now - as_utc(last_seen_at) <= timedelta(seconds=timeout_seconds)
