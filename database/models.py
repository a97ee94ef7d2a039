"""Data access layer models implemented with handcrafted queries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from core.constants import DrawMode, LotteryStatus, LotteryDefaults

# Fixed-width UTC text so that SQL string comparison orders like time
DB_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime for storage; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(DB_TIME_FORMAT)


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.strptime(value, DB_TIME_FORMAT).replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class Lottery:
    id: str
    title: str
    creator_id: int
    description: str = ""
    draw_mode: DrawMode = DrawMode.MANUAL
    draw_time: Optional[datetime] = None
    max_entries: Optional[int] = None
    status: LotteryStatus = LotteryStatus.DRAFT
    created_at: datetime = field(default_factory=utcnow)
    participants: int = 0
    is_weights_disabled: bool = False

    @property
    def is_completed(self) -> bool:
        return self.status == LotteryStatus.COMPLETED


@dataclass(slots=True)
class Prize:
    name: str
    quantity: int = LotteryDefaults.DEFAULT_PRIZE_QUANTITY
    id: Optional[int] = None
    lottery_id: Optional[str] = None


@dataclass(slots=True)
class Participant:
    lottery_id: str
    user_id: int
    username: str = ""
    first_name: str = ""
    last_name: str = ""
    weight: int = LotteryDefaults.DEFAULT_WEIGHT
    prize_weights: dict[int, int] = field(default_factory=dict)  # prize_id -> weight
    joined_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None

    @property
    def display_name(self) -> str:
        if self.username:
            return f"@{self.username}"
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or str(self.user_id)


@dataclass(slots=True)
class PrizeWeight:
    lottery_id: str
    user_id: int
    prize_id: int
    weight: int


@dataclass(slots=True)
class Winner:
    lottery_id: str
    participant_id: int
    prize_id: int
    user_id: int
    prize_name: str
    username: str = ""
    id: Optional[int] = None


@dataclass(slots=True)
class EditToken:
    token: str
    lottery_id: str
    expires_at: datetime


@dataclass(slots=True)
class LotterySnapshot:
    lottery: Lottery
    prizes: list[Prize]
    participant_count: int
    winners: list[Winner] = field(default_factory=list)


@dataclass(slots=True)
class LotteryStats:
    draft: int = 0
    active: int = 0
    completed: int = 0
    participants: int = 0
    winners: int = 0

    @property
    def total(self) -> int:
        return self.draft + self.active + self.completed
