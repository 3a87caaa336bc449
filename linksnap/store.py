"""
URL storage behind a small capability interface.

Handlers and the analytics code only ever talk to a ``UrlStore``:
  - get_entry(short_code)        -> UrlEntry | None (a read snapshot)
  - put_entry(entry)             -> raises ShortCodeCollision if the code is taken
  - append_event(short_code, ev) -> False when the code is unknown
  - get_all_entries()            -> list[UrlEntry] in creation order

Two implementations: an in-memory map (demo / tests) and DynamoDB.
"""
import copy
import random
import secrets
import string
import threading
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Protocol

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from linksnap import config
from linksnap.apigw import log_json
from linksnap.models import ClickEvent, UrlEntry, iso_z, parse_iso

BASE62_ALPHABET = string.ascii_letters + string.digits  # a-zA-Z0-9 (62 chars)


class ShortCodeCollision(Exception):
    """The short code is already taken in the store."""

    def __init__(self, short_code: str):
        super().__init__(f"short code already exists: {short_code}")
        self.short_code = short_code


class ShortCodeExhausted(RuntimeError):
    """Every generated candidate collided."""


class UrlStore(Protocol):
    def get_entry(self, short_code: str) -> UrlEntry | None:
        ...

    def put_entry(self, entry: UrlEntry) -> None:
        ...

    def append_event(self, short_code: str, event: ClickEvent) -> bool:
        ...

    def get_all_entries(self) -> list[UrlEntry]:
        ...


# ---------------- in-memory ----------------

class InMemoryUrlStore:
    """Process-local store. Reads hand out copies so callers never see a torn event list."""

    def __init__(self):
        self._entries: dict[str, UrlEntry] = {}
        self._lock = threading.Lock()

    def get_entry(self, short_code):
        with self._lock:
            entry = self._entries.get(short_code)
            return _snapshot(entry) if entry else None

    def put_entry(self, entry):
        with self._lock:
            if entry.short_code in self._entries:
                raise ShortCodeCollision(entry.short_code)
            self._entries[entry.short_code] = _snapshot(entry)

    def append_event(self, short_code, event):
        with self._lock:
            entry = self._entries.get(short_code)
            if entry is None:
                return False
            entry.events.append(event)
            return True

    def get_all_entries(self):
        with self._lock:
            return [_snapshot(e) for e in self._entries.values()]


def _snapshot(entry: UrlEntry) -> UrlEntry:
    # ClickEvent is frozen, so a shallow copy of the list is enough
    clone = copy.copy(entry)
    clone.events = list(entry.events)
    return clone


# ---------------- DynamoDB ----------------

class DynamoUrlStore:
    """
    urls 테이블:   PK shortId (S) / urlId, originalUrl, createdAt, clickCount
    clicks 테이블: PK shortId (S), SK timestamp (S, "<ISO>#<8 hex>") / referer, userAgent
    """

    def __init__(self, urls_table, clicks_table):
        self.urls_table = urls_table
        self.clicks_table = clicks_table

    @classmethod
    def from_env(cls):
        dynamodb = boto3.resource("dynamodb")
        return cls(dynamodb.Table(config.URLS_TABLE), dynamodb.Table(config.CLICKS_TABLE))

    def get_entry(self, short_code):
        item = self.urls_table.get_item(Key={"shortId": short_code}).get("Item")
        if not item:
            return None
        return self._to_entry(item)

    def put_entry(self, entry):
        item = {
            "shortId": entry.short_code,
            "urlId": entry.id,
            "originalUrl": entry.original_url,
            "createdAt": iso_z(entry.created_at),
            "clickCount": Decimal(len(entry.events)),
        }
        try:
            self.urls_table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(shortId)",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ShortCodeCollision(entry.short_code) from e
            raise

        if entry.events:
            with self.clicks_table.batch_writer() as batch:
                for ev in entry.events:
                    batch.put_item(Item=_click_item(entry.short_code, ev))

    def append_event(self, short_code, event):
        try:
            self.urls_table.update_item(
                Key={"shortId": short_code},
                UpdateExpression="SET clickCount = if_not_exists(clickCount, :zero) + :inc",
                ConditionExpression="attribute_exists(shortId)",
                ExpressionAttributeValues={
                    ":zero": Decimal(0),
                    ":inc": Decimal(1),
                },
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            raise

        self.clicks_table.put_item(Item=_click_item(short_code, event))
        return True

    def get_all_entries(self):
        items = []
        kwargs = {}
        while True:
            resp = self.urls_table.scan(**kwargs)
            items.extend(resp.get("Items", []))
            lek = resp.get("LastEvaluatedKey")
            if not lek:
                break
            kwargs["ExclusiveStartKey"] = lek

        entries = [self._to_entry(it) for it in items]
        # scan 순서는 보장되지 않음 -> 생성 순서로 정렬
        entries.sort(key=lambda e: e.created_at)
        return entries

    def query_clicks(self, short_code: str):
        items = []
        kwargs = {
            "KeyConditionExpression": Key("shortId").eq(short_code),
            "ScanIndexForward": True,  # 시간 오름차순 = 도착 순서
        }
        while True:
            resp = self.clicks_table.query(**kwargs)
            items.extend(resp.get("Items", []))
            lek = resp.get("LastEvaluatedKey")
            if not lek:
                break
            kwargs["ExclusiveStartKey"] = lek
        return items

    def _to_entry(self, item) -> UrlEntry:
        short_code = item["shortId"]
        events = []
        for click in self.query_clicks(short_code):
            ts = parse_iso(click.get("timestamp") or "")
            if ts is None:
                log_json("WARN", "click with unparseable timestamp skipped", shortId=short_code)
                continue
            events.append(ClickEvent(
                timestamp=ts,
                referrer=click.get("referer") or "direct",
                user_agent=click.get("userAgent") or "",
            ))
        return UrlEntry(
            id=item.get("urlId") or short_code,
            original_url=item.get("originalUrl", ""),
            short_code=short_code,
            created_at=parse_iso(item.get("createdAt") or "") or datetime.fromtimestamp(0, timezone.utc),
            events=events,
        )


def _click_item(short_code: str, event: ClickEvent) -> dict:
    return {
        "shortId": short_code,
        # suffix keeps same-millisecond clicks from overwriting each other
        "timestamp": f"{iso_z(event.timestamp)}#{uuid.uuid4().hex[:8]}",
        "referer": event.referrer or "direct",
        "userAgent": event.user_agent or "",
    }


# ---------------- short codes ----------------

def generate_short_code(length: int = config.SHORT_CODE_LEN) -> str:
    return "".join(secrets.choice(BASE62_ALPHABET) for _ in range(length))


def create_short_url(store: UrlStore, original_url: str, now: datetime | None = None,
                     max_retries: int = config.MAX_RETRIES, code_factory=generate_short_code) -> UrlEntry:
    """Store a new entry, drawing a fresh code on every collision."""
    created_at = now or datetime.now(timezone.utc)
    entry_id = str(uuid.uuid4())

    for attempt in range(max_retries):
        entry = UrlEntry(
            id=entry_id,
            original_url=original_url,
            short_code=code_factory(),
            created_at=created_at,
        )
        try:
            store.put_entry(entry)
            return entry
        except ShortCodeCollision:
            log_json("WARN", "short code collision", shortCode=entry.short_code, attempt=attempt + 1)
            continue

    raise ShortCodeExhausted(f"no unique short code after {max_retries} attempts")


# ---------------- demo data ----------------

MOCK_URLS = (
    ("https://vercel.com/docs/getting-started", "vrc101"),
    ("https://nextjs.org/docs/app/building-your-application", "nxt202"),
    ("https://react.dev/learn/thinking-in-react", "rct303"),
    ("https://tailwindcss.com/docs/installation", "twn404"),
    ("https://github.com/shadcn-ui/ui", "shd505"),
)

MOCK_REFERRERS = ("google.com", "twitter.com", "linkedin.com", "facebook.com", "direct", "reddit.com", "youtube.com")

MOCK_USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7)",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0)",
    "Mozilla/5.0 (Linux; Android 13)",
)

MOCK_WINDOW = timedelta(days=30)


def initialize_mock_data(store: UrlStore, now: datetime, rng: random.Random | None = None) -> int:
    """Seed the demo URLs with random clicks over the past 30 days. No-op on a non-empty store."""
    if store.get_all_entries():
        return 0
    rng = rng or random.Random()

    for original, short_code in MOCK_URLS:
        click_count = rng.randint(100, 599)
        stamps = sorted(now - MOCK_WINDOW * rng.random() for _ in range(click_count))
        events = [
            ClickEvent(
                timestamp=ts,
                referrer=rng.choice(MOCK_REFERRERS),
                user_agent=rng.choice(MOCK_USER_AGENTS),
            )
            for ts in stamps
        ]
        store.put_entry(UrlEntry(
            id=str(uuid.UUID(int=rng.getrandbits(128), version=4)),
            original_url=original,
            short_code=short_code,
            created_at=now - MOCK_WINDOW * rng.random(),
            events=events,
        ))

    log_json("INFO", "mock data seeded", urls=len(MOCK_URLS))
    return len(MOCK_URLS)


# ---------------- process-wide store ----------------

_default_store = None


def get_default_store() -> UrlStore:
    global _default_store
    if _default_store is None:
        if config.STORE_BACKEND == "dynamodb":
            _default_store = DynamoUrlStore.from_env()
        elif config.STORE_BACKEND == "memory":
            _default_store = InMemoryUrlStore()
            if config.SEED_MOCK_DATA:
                initialize_mock_data(_default_store, datetime.now(timezone.utc))
        else:
            raise ValueError(f"Unsupported STORE_BACKEND: {config.STORE_BACKEND}")
    return _default_store


def set_default_store(store: UrlStore | None):
    global _default_store
    _default_store = store
