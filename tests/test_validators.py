"""Tests for input validation helpers."""

from datetime import datetime, timezone

import pytest

from core.constants import DrawMode
from core.exceptions import ValidationError
from database.models import Prize
from utils.validators import (
    parse_draw_mode,
    validate_draw_settings,
    validate_prizes,
    validate_title,
    validate_weight,
)


def test_parse_draw_mode():
    assert parse_draw_mode(" Timed ") == DrawMode.TIMED
    assert parse_draw_mode(DrawMode.FULL) == DrawMode.FULL
    with pytest.raises(ValidationError):
        parse_draw_mode("hourly")


def test_validate_title():
    assert validate_title("  Raffle  ") == "Raffle"
    with pytest.raises(ValidationError):
        validate_title("   ")
    with pytest.raises(ValidationError):
        validate_title("x" * 201)


@pytest.mark.parametrize("weight", [-1, 1.5, True, "2"])
def test_validate_weight_rejects(weight):
    with pytest.raises(ValidationError):
        validate_weight(weight)


def test_validate_weight_accepts_zero():
    assert validate_weight(0) == 0


def test_validate_prizes_strips_names():
    prizes = validate_prizes([Prize(name=" Mug ", quantity=2, id=7)])

    assert [(p.name, p.quantity, p.id) for p in prizes] == [("Mug", 2, None)]


@pytest.mark.parametrize("prize", [Prize(name=""), Prize(name="Mug", quantity=0), Prize(name="y" * 101)])
def test_validate_prizes_rejects(prize):
    with pytest.raises(ValidationError):
        validate_prizes([prize])


def test_validate_draw_settings():
    validate_draw_settings(DrawMode.MANUAL, None, None)
    validate_draw_settings(DrawMode.TIMED, datetime.now(timezone.utc), None)
    validate_draw_settings(DrawMode.FULL, None, 10)

    with pytest.raises(ValidationError):
        validate_draw_settings(DrawMode.TIMED, None, None)
    with pytest.raises(ValidationError):
        validate_draw_settings(DrawMode.FULL, None, None)
    with pytest.raises(ValidationError):
        validate_draw_settings(DrawMode.MANUAL, None, -5)
