"""Input validation helpers."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from core.constants import DrawMode
from core.exceptions import ValidationError
from database.models import Prize

TITLE_MAX_LENGTH = 200
PRIZE_NAME_MAX_LENGTH = 100


def parse_draw_mode(value: str | DrawMode) -> DrawMode:
    if isinstance(value, DrawMode):
        return value
    try:
        return DrawMode((value or "").strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown draw mode: {value!r}") from None


def validate_title(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        raise ValidationError("Title is required")
    if len(stripped) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title is longer than {TITLE_MAX_LENGTH} characters")
    return stripped


def validate_weight(value: int) -> int:
    """Weights are non-negative integers; 0 excludes from the pool."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Weight must be an integer, got {value!r}")
    if value < 0:
        raise ValidationError("Weight must not be negative")
    return value


def validate_prizes(prizes: Sequence[Prize]) -> list[Prize]:
    cleaned: list[Prize] = []
    for prize in prizes:
        name = (prize.name or "").strip()
        if not name:
            raise ValidationError("Prize name is required")
        if len(name) > PRIZE_NAME_MAX_LENGTH:
            raise ValidationError(f"Prize name is longer than {PRIZE_NAME_MAX_LENGTH} characters")
        if isinstance(prize.quantity, bool) or not isinstance(prize.quantity, int) or prize.quantity < 1:
            raise ValidationError(f"Prize {name!r} needs a quantity of at least 1")
        cleaned.append(Prize(name=name, quantity=prize.quantity))
    return cleaned


def validate_draw_settings(
    draw_mode: DrawMode,
    draw_time: Optional[datetime],
    max_entries: Optional[int],
) -> None:
    """Check that the trigger a draw mode relies on is configured."""
    if max_entries is not None and max_entries <= 0:
        raise ValidationError("Max entries must be positive")
    if draw_mode == DrawMode.TIMED and draw_time is None:
        raise ValidationError("Timed lotteries need a draw time")
    if draw_mode == DrawMode.FULL and max_entries is None:
        raise ValidationError("Full-mode lotteries need max entries")
