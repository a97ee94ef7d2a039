"""Unit tests for the weighted prize allocator."""

import random
from collections import Counter

from database.models import Participant, Prize
from services.draw_allocator import allocate_winners, build_weighted_pool, effective_weight


def make_participants(count, weight=1):
    return [
        Participant(lottery_id="123456", user_id=user_id, username=f"user{user_id}", weight=weight, id=user_id)
        for user_id in range(1, count + 1)
    ]


def test_no_participants_yields_no_winners():
    prizes = [Prize(name="Phone", quantity=3, id=1)]
    assert allocate_winners("123456", prizes, [], rng=random.Random(1)) == []


def test_at_most_one_unit_per_user_per_prize():
    participants = make_participants(3, weight=5)
    prizes = [Prize(name="Sticker", quantity=5, id=1)]

    winners = allocate_winners("123456", prizes, participants, rng=random.Random(7))

    # Only three distinct users can hold a unit; the other two units stay void
    assert len(winners) == 3
    assert len({w.user_id for w in winners}) == 3


def test_user_can_win_different_prizes():
    participants = make_participants(1)
    prizes = [Prize(name="Mug", quantity=1, id=1), Prize(name="Shirt", quantity=1, id=2)]

    winners = allocate_winners("123456", prizes, participants, rng=random.Random(3))

    assert [(w.user_id, w.prize_id) for w in winners] == [(1, 1), (1, 2)]
    assert [w.prize_name for w in winners] == ["Mug", "Shirt"]


def test_zero_weight_excludes_participant():
    participants = make_participants(2)
    participants[0].weight = 0
    prizes = [Prize(name="Ticket", quantity=2, id=1)]

    winners = allocate_winners("123456", prizes, participants, rng=random.Random(11))

    assert [w.user_id for w in winners] == [2]


def test_prize_override_beats_default_weight():
    participant = Participant(lottery_id="123456", user_id=5, weight=0, prize_weights={2: 3})

    assert effective_weight(participant, 1) == 0
    assert effective_weight(participant, 2) == 3
    assert len(build_weighted_pool([participant], 2)) == 3


def test_disabled_weights_count_everyone_once():
    participant = Participant(lottery_id="123456", user_id=5, weight=0, prize_weights={1: 9})

    assert effective_weight(participant, 1, weights_disabled=True) == 1
    pool = build_weighted_pool([participant], 1, weights_disabled=True)
    assert pool == [participant]


def test_empty_pool_prize_is_skipped():
    participants = make_participants(2, weight=0)
    participants[1].prize_weights = {2: 1}
    prizes = [Prize(name="Nobody", quantity=1, id=1), Prize(name="Only two", quantity=1, id=2)]

    winners = allocate_winners("123456", prizes, participants, rng=random.Random(5))

    assert [(w.user_id, w.prize_id) for w in winners] == [(2, 2)]


def test_prize_override_of_zero_excludes_only_that_prize():
    participants = make_participants(1)
    participants[0].prize_weights = {1: 0}
    prizes = [Prize(name="Console", quantity=1, id=1), Prize(name="Headset", quantity=1, id=2)]

    for seed in range(20):
        winners = allocate_winners("123456", prizes, participants, rng=random.Random(seed))
        assert [(w.user_id, w.prize_id) for w in winners] == [(1, 2)]


def test_winner_records_reference_participant():
    participants = make_participants(1)
    prizes = [Prize(name="Book", quantity=1, id=9)]

    winner = allocate_winners("654321", prizes, participants, rng=random.Random(1))[0]

    assert winner.lottery_id == "654321"
    assert winner.participant_id == participants[0].id
    assert winner.username == "user1"


def test_same_seed_same_result():
    participants = make_participants(10)
    prizes = [Prize(name="Voucher", quantity=4, id=1)]

    first = allocate_winners("123456", prizes, participants, rng=random.Random(99))
    second = allocate_winners("123456", prizes, participants, rng=random.Random(99))

    assert [w.user_id for w in first] == [w.user_id for w in second]


def test_weights_shift_the_odds():
    heavy = Participant(lottery_id="123456", user_id=1, weight=9, id=1)
    light = Participant(lottery_id="123456", user_id=2, weight=1, id=2)
    prizes = [Prize(name="Car", quantity=1, id=1)]
    rng = random.Random(2024)

    wins = Counter(
        allocate_winners("123456", prizes, [heavy, light], rng=rng)[0].user_id
        for _ in range(1000)
    )

    assert wins[1] > 800
    assert wins[2] > 0
