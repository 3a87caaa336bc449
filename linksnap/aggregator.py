"""
Click aggregation for the admin dashboard.

Pure functions over UrlEntry.events and an explicit ``now``:
  - compute_url_stats:  totals, today/yesterday, 24 hourly + 7 daily buckets,
                        device and referrer breakdowns
  - compute_site_stats: totals across entries + popular/recent URL rankings

Buckets are calendar-aligned in ``now``'s timezone. Naive datetimes are read as UTC.
"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Iterable

from linksnap import config
from linksnap.models import ClickEvent, UrlEntry, iso_z

HOURS_WINDOW = 24
DAYS_WINDOW = 7

# first match wins
DEVICE_RULES = (
    ("iPhone", "iPhone"),
    ("Android", "Android"),
    ("Macintosh", "Mac"),
    ("Windows", "Windows"),
)
DEFAULT_DEVICE = "Desktop"
DIRECT_REFERRER = "direct"


# ---------------- report shapes ----------------

@dataclass(frozen=True)
class HourBucket:
    hour: str
    clicks: int


@dataclass(frozen=True)
class DayBucket:
    date: str
    clicks: int


@dataclass(frozen=True)
class NamedCount:
    name: str
    value: int


@dataclass(frozen=True)
class UrlStatsReport:
    total_clicks: int
    today_clicks: int
    yesterday_clicks: int
    clicks_by_hour: tuple[HourBucket, ...]
    daily_clicks: tuple[DayBucket, ...]
    device_stats: tuple[NamedCount, ...]
    referrer_stats: tuple[NamedCount, ...]

    def to_dict(self) -> dict:
        return {
            "totalClicks": self.total_clicks,
            "todayClicks": self.today_clicks,
            "yesterdayClicks": self.yesterday_clicks,
            "clicksByHour": [{"hour": b.hour, "clicks": b.clicks} for b in self.clicks_by_hour],
            "dailyClicks": [{"date": b.date, "clicks": b.clicks} for b in self.daily_clicks],
            "deviceStats": [{"name": d.name, "value": d.value} for d in self.device_stats],
            "referrerStats": [{"name": r.name, "value": r.value} for r in self.referrer_stats],
        }


@dataclass(frozen=True)
class RankedUrl:
    short_code: str
    original_url: str
    clicks: int
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "shortCode": self.short_code,
            "originalUrl": self.original_url,
            "clicks": self.clicks,
            "createdAt": iso_z(self.created_at),
        }


@dataclass(frozen=True)
class SiteStatsReport:
    total_urls: int
    total_clicks: int
    popular_urls: tuple[RankedUrl, ...]
    recent_urls: tuple[RankedUrl, ...] = field(default_factory=tuple)
    today_clicks: int | None = None
    yesterday_clicks: int | None = None

    def to_dict(self) -> dict:
        out = {
            "totalClicks": self.total_clicks,
            "totalUrls": self.total_urls,
            "popularUrls": [u.to_dict() for u in self.popular_urls],
            "recentUrls": [u.to_dict() for u in self.recent_urls],
        }
        if self.today_clicks is not None:
            out["todayClicks"] = self.today_clicks
            out["yesterdayClicks"] = self.yesterday_clicks
        return out


# ---------------- classification ----------------

def classify_device(user_agent: str | None) -> str:
    ua = user_agent if user_agent is not None else "unknown"
    for needle, name in DEVICE_RULES:
        if needle in ua:
            return name
    return DEFAULT_DEVICE


def extract_referrer_host(referrer: str | None) -> str:
    """'https://google.com/search?q=x' -> 'google.com'; empty -> 'direct'"""
    if not referrer:
        return DIRECT_REFERRER
    ref = referrer
    for scheme in ("https://", "http://"):
        if ref.startswith(scheme):
            ref = ref[len(scheme):]
            break
    host = ref.split("/", 1)[0]
    return host or DIRECT_REFERRER


def _ranked(counter: Counter) -> list[NamedCount]:
    # Counter keeps first-seen order and sorted() is stable -> ties keep encounter order
    ordered = sorted(counter.items(), key=lambda kv: kv[1], reverse=True)
    return [NamedCount(name, value) for name, value in ordered]


def device_breakdown(events: Iterable[ClickEvent]) -> list[NamedCount]:
    return _ranked(Counter(classify_device(ev.user_agent) for ev in events))


def referrer_breakdown(events: Iterable[ClickEvent]) -> list[NamedCount]:
    """Full, untruncated referrer distribution."""
    return _ranked(Counter(extract_referrer_host(ev.referrer) for ev in events))


# ---------------- time bucketing ----------------

def _aware(dt: datetime, tz=timezone.utc) -> datetime:
    return dt.replace(tzinfo=tz) if dt.tzinfo is None else dt


def _floor_hour(dt: datetime) -> datetime:
    return dt.replace(minute=0, second=0, microsecond=0)


def _midnight(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time(), tzinfo=dt.tzinfo)


def hourly_bucket_starts(now: datetime) -> list[datetime]:
    """Start of the hour containing now - i hours, for i = 23..0."""
    now = _aware(now)
    tz = now.tzinfo
    now_utc = now.astimezone(timezone.utc)
    return [
        _floor_hour((now_utc - timedelta(hours=i)).astimezone(tz))
        for i in range(HOURS_WINDOW - 1, -1, -1)
    ]


def daily_bucket_dates(now: datetime):
    """Calendar dates containing now - i days, for i = 6..0."""
    now = _aware(now)
    return [(now - timedelta(days=i)).date() for i in range(DAYS_WINDOW - 1, -1, -1)]


def count_today_yesterday(events: Iterable[ClickEvent], now: datetime) -> tuple[int, int]:
    now = _aware(now)
    today_start = _midnight(now)
    yesterday_start = today_start - timedelta(hours=24)

    today = yesterday = 0
    for ev in events:
        ts = _aware(ev.timestamp)
        if ts >= today_start:
            today += 1
        elif ts >= yesterday_start:
            yesterday += 1
    return today, yesterday


def compute_url_stats(entry: UrlEntry, now: datetime, top_referrers: int = config.TOP_REFERRERS) -> UrlStatsReport:
    if entry is None:
        raise ValueError("entry is required")
    if now is None:
        raise ValueError("now is required")

    now = _aware(now)
    tz = now.tzinfo
    events = tuple(entry.events)

    hour_starts = hourly_bucket_starts(now)
    # keyed by UTC instant; local keys collapse the repeated hour when DST ends
    hour_index = {start.astimezone(timezone.utc): i for i, start in enumerate(hour_starts)}
    by_hour = [0] * len(hour_starts)

    day_dates = daily_bucket_dates(now)
    day_index = {d: i for i, d in enumerate(day_dates)}
    by_day = [0] * len(day_dates)

    for ev in events:
        local = _aware(ev.timestamp).astimezone(tz)
        i = hour_index.get(_floor_hour(local).astimezone(timezone.utc))
        if i is not None:
            by_hour[i] += 1
        j = day_index.get(local.date())
        if j is not None:
            by_day[j] += 1

    today, yesterday = count_today_yesterday(events, now)

    return UrlStatsReport(
        total_clicks=len(events),
        today_clicks=today,
        yesterday_clicks=yesterday,
        clicks_by_hour=tuple(
            HourBucket(f"{start.hour:02d}:00", n) for start, n in zip(hour_starts, by_hour)
        ),
        daily_clicks=tuple(
            DayBucket(f"{d.month}/{d.day}", n) for d, n in zip(day_dates, by_day)
        ),
        device_stats=tuple(device_breakdown(events)),
        referrer_stats=tuple(referrer_breakdown(events)[:top_referrers]),
    )


def _rank_entry(entry: UrlEntry) -> RankedUrl:
    return RankedUrl(
        short_code=entry.short_code,
        original_url=entry.original_url,
        clicks=len(entry.events),
        created_at=entry.created_at,
    )


def compute_site_stats(entries: list[UrlEntry], now: datetime | None = None,
                       limit: int = config.POPULAR_URLS_LIMIT) -> SiteStatsReport:
    if entries is None:
        raise ValueError("entries is required")

    ranked = [_rank_entry(e) for e in entries]
    popular = sorted(ranked, key=lambda u: u.clicks, reverse=True)[:limit]
    recent = sorted(ranked, key=lambda u: _aware(u.created_at), reverse=True)[:limit]

    today = yesterday = None
    if now is not None:
        today = yesterday = 0
        for e in entries:
            t, y = count_today_yesterday(tuple(e.events), now)
            today += t
            yesterday += y

    return SiteStatsReport(
        total_urls=len(ranked),
        total_clicks=sum(u.clicks for u in ranked),
        popular_urls=tuple(popular),
        recent_urls=tuple(recent),
        today_clicks=today,
        yesterday_clicks=yesterday,
    )
