from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class ClickEvent:
    """One recorded visit to a shortcode."""

    timestamp: datetime
    referrer: str | None = "direct"
    user_agent: str | None = ""


@dataclass
class UrlEntry:
    """A shortened URL and its append-only click log (arrival order)."""

    id: str
    original_url: str
    short_code: str
    created_at: datetime
    events: list[ClickEvent] = field(default_factory=list)

    @property
    def click_count(self) -> int:
        return len(self.events)


def iso_z(dt: datetime) -> str:
    """UTC ISO-8601 with a trailing Z, e.g. 2026-02-24T12:38:41.731Z"""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(ts: str):
    try:
        # clicks sort key: "<iso>#<suffix>"
        ts = ts.split("#", 1)[0]
        if ts.endswith("Z"):
            ts = ts[:-1] + "+00:00"
        dt = datetime.fromisoformat(ts)
    except (AttributeError, TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
