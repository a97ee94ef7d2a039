"""Weighted prize allocation.

Pure functions: no I/O and no state outside the call. The engine persists
whatever :func:`allocate_winners` returns.
"""

from __future__ import annotations

import random
import time
from typing import Iterable, List, Optional, Sequence

from core.constants import LotteryDefaults
from database.models import Participant, Prize, Winner


def new_rng() -> random.Random:
    """Process-local random source seeded from the clock."""
    return random.Random(time.time_ns())


def effective_weight(participant: Participant, prize_id: Optional[int], weights_disabled: bool = False) -> int:
    """Weight of a participant in one prize's pool.

    The per-prize override wins over the participant's default weight.
    With weighting disabled every participant counts once.
    """
    if weights_disabled:
        return LotteryDefaults.DEFAULT_WEIGHT
    if prize_id is not None and prize_id in participant.prize_weights:
        return max(0, participant.prize_weights[prize_id])
    return max(0, participant.weight)


def build_weighted_pool(
    participants: Iterable[Participant],
    prize_id: Optional[int],
    weights_disabled: bool = False,
) -> List[Participant]:
    """Repeat every participant once per unit of weight; weight 0 excludes."""
    pool: List[Participant] = []
    for participant in participants:
        pool.extend([participant] * effective_weight(participant, prize_id, weights_disabled))
    return pool


def allocate_winners(
    lottery_id: str,
    prizes: Sequence[Prize],
    participants: Sequence[Participant],
    rng: Optional[random.Random] = None,
    weights_disabled: bool = False,
) -> List[Winner]:
    """Assign prize units to participants.

    Each prize is drawn independently from its own shuffled weighted pool.
    The pool is walked in order; a candidate who already holds a unit of
    the same prize is skipped, and an exhausted pool is reshuffled. Every
    unit gets at most ``2 * len(pool)`` candidates, after which it and the
    remaining units of that prize stay unawarded.

    Args:
        lottery_id: Lottery the winners belong to
        prizes: Prizes with their persisted ids and quantities
        participants: Participants with ``prize_weights`` resolved
        rng: Random source; a clock-seeded one is used when omitted
        weights_disabled: Treat every participant as weight 1 for every prize

    Returns:
        Winners in prize order, one entry per awarded unit
    """
    if not participants:
        return []

    rng = rng or new_rng()
    won: set[tuple[int, Optional[int]]] = set()  # (user_id, prize_id)
    winners: List[Winner] = []

    for prize in prizes:
        pool = build_weighted_pool(participants, prize.id, weights_disabled)
        if not pool:
            continue

        rng.shuffle(pool)
        max_attempts = len(pool) * 2
        index = 0

        for _ in range(prize.quantity):
            awarded = False
            for _ in range(max_attempts):
                if index >= len(pool):
                    index = 0
                    rng.shuffle(pool)

                candidate = pool[index]
                index += 1

                key = (candidate.user_id, prize.id)
                if key in won:
                    continue
                won.add(key)

                winners.append(Winner(
                    lottery_id=lottery_id,
                    participant_id=candidate.id,
                    prize_id=prize.id,
                    user_id=candidate.user_id,
                    username=candidate.username,
                    prize_name=prize.name,
                ))
                awarded = True
                break

            if not awarded:
                # A full pass found nobody eligible; the rest are void units
                break

    return winners
