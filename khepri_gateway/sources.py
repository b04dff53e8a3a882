"""Where read tools get their data: live Intervals.icu or deterministic mock data.

A source is picked once per request from credential presence. Filtering is
done by the shared ``filter_*`` functions on whatever list the source
produced, so both paths behave identically.
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from khepri_gateway.event_fields import CalendarEvent, event_from_api
from khepri_gateway.intervals import Credentials, IntervalsClient
from khepri_gateway.validators import parse_date

MAX_RANGE_DAYS = 90

MOCK_SOURCE = "mock"
LIVE_SOURCE = "intervals.icu"


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


# --- Date ranges ---

@dataclass(frozen=True)
class DateRange:
    oldest: str
    newest: str

    def contains(self, timestamp: str | None) -> bool:
        """Inclusive check on the calendar day of ``timestamp``."""
        day = parse_date((timestamp or "")[:10])
        if day is None:
            return False
        return self.oldest <= day.isoformat() <= self.newest

    def days(self) -> list[date]:
        start, end = date.fromisoformat(self.oldest), date.fromisoformat(self.newest)
        return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def resolve_date_range(
    oldest: str | None,
    newest: str | None,
    today: date,
    days_back: int,
    days_forward: int = 0,
    max_days: int = MAX_RANGE_DAYS,
) -> DateRange:
    """Fill in defaults, swap an inverted range and clamp its span.

    Only the date part of date-time values is used. An over-long span pulls
    ``oldest`` forward; ``newest`` is never moved.
    """
    start = parse_date((oldest or "")[:10]) or today - timedelta(days=days_back)
    end = parse_date((newest or "")[:10]) or today + timedelta(days=days_forward)
    if start > end:
        start, end = end, start
    if (end - start).days + 1 > max_days:
        start = end - timedelta(days=max_days - 1)
    return DateRange(oldest=start.isoformat(), newest=end.isoformat())


# --- Shared filters ---

def filter_activities(
    activities: list[dict],
    date_range: DateRange | None = None,
    activity_type: str | None = None,
    limit: int | None = None,
) -> list[dict]:
    result = activities
    if activity_type:
        result = [a for a in result if (a.get("type") or "").lower() == activity_type.lower()]
    if date_range is not None:
        result = [a for a in result if date_range.contains(a.get("start_date"))]
    if limit is not None:
        result = result[:limit]
    return result


def filter_events(
    events: list[CalendarEvent],
    date_range: DateRange | None = None,
    types: list[str] | None = None,
    category: str | None = None,
) -> list[CalendarEvent]:
    result = events
    if date_range is not None:
        result = [e for e in result if date_range.contains(e.start_date)]
    if types:
        result = [e for e in result if e.type in types]
    if category:
        result = [e for e in result if (e.category or "").lower() == category.lower()]
    return result


def filter_wellness(days: list[dict], date_range: DateRange) -> list[dict]:
    return [d for d in days if date_range.contains(d.get("date"))]


# --- Canonical shapes ---

def activity_from_api(raw: dict) -> dict:
    activity = {
        "id": str(raw.get("id", "")),
        "name": raw.get("name"),
        "type": raw.get("type"),
        "start_date": raw.get("start_date_local"),
        "duration": raw.get("moving_time"),
        "distance": raw.get("distance"),
        "tss": raw.get("icu_training_load"),
        "ctl": raw.get("icu_ctl"),
        "atl": raw.get("icu_atl"),
    }
    return {k: v for k, v in activity.items() if v is not None}


def wellness_from_api(raw: dict) -> dict:
    ctl, atl = raw.get("ctl"), raw.get("atl")
    sleep_secs = raw.get("sleepSecs")
    day = {
        "date": raw.get("id"),
        "ctl": ctl,
        "atl": atl,
        "tsb": round(ctl - atl, 1) if ctl is not None and atl is not None else None,
        "ramp_rate": raw.get("rampRate"),
        "resting_hr": raw.get("restingHR"),
        "hrv": raw.get("hrv"),
        "hrv_sdnn": raw.get("hrvSDNN"),
        "sleep_hours": round(sleep_secs / 3600, 1) if sleep_secs else None,
        "sleep_quality": raw.get("sleepQuality"),
        "weight": raw.get("weight"),
        "fatigue": raw.get("fatigue"),
        "soreness": raw.get("soreness"),
        "stress": raw.get("stress"),
        "mood": raw.get("mood"),
    }
    return {k: v for k, v in day.items() if v is not None}


# --- Sources ---

class DataSource(ABC):
    name: str

    @abstractmethod
    async def activities(self, date_range: DateRange) -> list[dict]: ...

    @abstractmethod
    async def wellness(self, date_range: DateRange) -> list[dict]: ...

    @abstractmethod
    async def events(self, date_range: DateRange) -> list[CalendarEvent]: ...


class LiveSource(DataSource):
    name = LIVE_SOURCE

    def __init__(self, client: IntervalsClient, credentials: Credentials):
        self.client = client
        self.credentials = credentials

    async def activities(self, date_range: DateRange) -> list[dict]:
        raw = await self.client.fetch_activities(self.credentials, date_range.oldest, date_range.newest)
        return [activity_from_api(a) for a in raw]

    async def wellness(self, date_range: DateRange) -> list[dict]:
        raw = await self.client.fetch_wellness(self.credentials, date_range.oldest, date_range.newest)
        return [wellness_from_api(w) for w in raw]

    async def events(self, date_range: DateRange) -> list[CalendarEvent]:
        raw = await self.client.fetch_events(self.credentials, date_range.oldest, date_range.newest)
        return [event_from_api(e) for e in raw]


# (days before today, time, name, type, seconds, meters, tss)
_MOCK_ACTIVITIES = [
    (1, "07:00:00", "Morning Zone 2 Ride", "Ride", 3600, 35000, 55),
    (2, "06:30:00", "Tempo Run", "Run", 2700, 8000, 48),
    (3, "12:00:00", "Recovery Swim", "Swim", 1800, 1500, 25),
    (4, "06:45:00", "Easy Run", "Run", 2400, 6000, 30),
    (6, "08:00:00", "Long Ride", "Ride", 10800, 90000, 140),
    (8, "07:15:00", "Threshold Intervals Run", "Run", 3300, 10000, 70),
]

# (days after today, time, fields)
_MOCK_EVENTS = [
    (1, "07:00:00", {"name": "Zone 2 Endurance Ride", "type": "workout", "category": "Ride",
                     "planned_duration": 5400, "planned_tss": 65, "indoor": False}),
    (2, "00:00:00", {"name": "Recovery Day", "type": "rest_day",
                     "description": "Active recovery or complete rest"}),
    (3, "06:30:00", {"name": "Interval Session", "type": "workout", "category": "Run",
                     "planned_duration": 3600, "planned_tss": 72, "planned_distance": 12000, "indoor": False,
                     "description": "4x1km at threshold with 90s recovery"}),
    (4, "12:00:00", {"name": "Easy Swim", "type": "workout", "category": "Swim",
                     "planned_duration": 2700, "planned_distance": 2000, "indoor": True}),
    (5, "00:00:00", {"name": "Training Notes", "type": "note",
                     "description": "Start taper week. Reduce volume by 30%."}),
    (14, "10:00:00", {"name": "Travel to Race Venue", "type": "travel",
                      "description": "Drive to race venue, check in"}),
    (15, "08:00:00", {"name": "Local Sprint Triathlon", "type": "race", "category": "Triathlon",
                      "priority": "B", "description": "Season opener"}),
]


class MockSource(DataSource):
    """Synthetic data anchored on ``today`` so demos always look current.

    Output depends only on ``today`` and the requested range.
    """

    name = MOCK_SOURCE

    def __init__(self, today: date):
        self.today = today

    async def activities(self, date_range: DateRange) -> list[dict]:
        activities = []
        ctl, atl = 72.0, 65.0
        for index, (days_ago, time, name, sport, seconds, meters, tss) in enumerate(_MOCK_ACTIVITIES, start=1):
            day = self.today - timedelta(days=days_ago)
            activities.append({
                "id": f"mock-{index}",
                "name": name,
                "type": sport,
                "start_date": f"{day.isoformat()}T{time}Z",
                "duration": seconds,
                "distance": meters,
                "tss": tss,
                "ctl": ctl - index,
                "atl": atl - 2 * index,
            })
        return activities

    async def wellness(self, date_range: DateRange) -> list[dict]:
        return [self._wellness_day(day) for day in date_range.days()]

    async def events(self, date_range: DateRange) -> list[CalendarEvent]:
        events = []
        for index, (days_ahead, time, fields) in enumerate(_MOCK_EVENTS, start=1):
            day = self.today + timedelta(days=days_ahead)
            end_date = f"{day.isoformat()}T16:00:00Z" if fields["type"] == "travel" else None
            events.append(CalendarEvent(
                id=f"mock-event-{index}",
                start_date=f"{day.isoformat()}T{time}Z",
                end_date=end_date,
                **fields,
            ))
        return events

    @staticmethod
    def _wellness_day(day: date) -> dict:
        rng = random.Random(day.toordinal())
        ctl = round(70 + rng.uniform(-2, 2), 1)
        atl = round(65 + rng.uniform(-6, 6), 1)
        return {
            "date": day.isoformat(),
            "ctl": ctl,
            "atl": atl,
            "tsb": round(ctl - atl, 1),
            "ramp_rate": round(rng.uniform(-1, 5), 1),
            "resting_hr": 48 + rng.randint(0, 7),
            "hrv": 45 + rng.randint(0, 24),
            "sleep_quality": 3 + rng.randint(0, 2),
            "sleep_hours": round(6.5 + rng.uniform(0, 2), 1),
            "weight": round(72 + rng.uniform(0, 1.5), 1),
            "fatigue": 2 + rng.randint(0, 2),
            "soreness": 1 + rng.randint(0, 2),
            "stress": 2 + rng.randint(0, 1),
            "mood": 3 + rng.randint(0, 1),
        }


def pick_source(client: IntervalsClient, credentials: Credentials | None, today: date) -> DataSource:
    if credentials is None:
        return MockSource(today)
    return LiveSource(client, credentials)
