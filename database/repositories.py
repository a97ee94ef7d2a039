"""Database access layer for lotteries and everything hanging off them."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence

import aiosqlite

from core.constants import DrawMode, LotteryStatus
from core.exceptions import ParticipantExistsError

from .base_repository import BaseRepository
from .models import (
    EditToken,
    Lottery,
    LotteryStats,
    Participant,
    Prize,
    PrizeWeight,
    Winner,
    from_db_time,
    to_db_time,
)

_LOTTERY_COLUMNS = (
    "id, title, description, creator_id, draw_mode, draw_time, max_entries, "
    "status, created_at, participants, is_weights_disabled"
)


def _row_to_lottery(row: aiosqlite.Row) -> Lottery:
    return Lottery(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        creator_id=row["creator_id"],
        draw_mode=DrawMode(row["draw_mode"]),
        draw_time=from_db_time(row["draw_time"]),
        max_entries=row["max_entries"],
        status=LotteryStatus(row["status"]),
        created_at=from_db_time(row["created_at"]),
        participants=row["participants"] or 0,
        is_weights_disabled=bool(row["is_weights_disabled"]),
    )


def _row_to_participant(row: aiosqlite.Row) -> Participant:
    return Participant(
        id=row["id"],
        lottery_id=row["lottery_id"],
        user_id=row["user_id"],
        username=row["username"] or "",
        first_name=row["first_name"] or "",
        last_name=row["last_name"] or "",
        weight=row["weight"],
        joined_at=from_db_time(row["joined_at"]),
    )


def _row_to_winner(row: aiosqlite.Row) -> Winner:
    return Winner(
        id=row["id"],
        lottery_id=row["lottery_id"],
        participant_id=row["participant_id"],
        prize_id=row["prize_id"],
        user_id=row["user_id"],
        username=row["username"] or "",
        prize_name=row["prize_name"],
    )


class LotteryRepository(BaseRepository):
    """Persistence gateway for the lottery engine."""

    # Lotteries

    async def create_lottery(self, lottery: Lottery) -> None:
        await self.execute(
            f"INSERT INTO lotteries ({_LOTTERY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                lottery.id,
                lottery.title,
                lottery.description,
                lottery.creator_id,
                lottery.draw_mode.value,
                to_db_time(lottery.draw_time),
                lottery.max_entries,
                lottery.status.value,
                to_db_time(lottery.created_at),
                lottery.participants,
                int(lottery.is_weights_disabled),
            ),
        )

    async def get_lottery(self, lottery_id: str) -> Optional[Lottery]:
        row = await self.fetch_one(
            f"SELECT {_LOTTERY_COLUMNS} FROM lotteries WHERE id = ?",
            (lottery_id,),
        )
        return _row_to_lottery(row) if row else None

    async def lottery_exists(self, lottery_id: str) -> bool:
        value = await self.fetch_value("SELECT 1 FROM lotteries WHERE id = ?", (lottery_id,))
        return value is not None

    async def update_lottery(self, lottery: Lottery) -> None:
        """Write every mutable field; identity, creator and creation time stay."""
        await self.execute(
            """
            UPDATE lotteries
               SET title = ?, description = ?, draw_mode = ?, draw_time = ?,
                   max_entries = ?, status = ?, is_weights_disabled = ?
             WHERE id = ?
            """,
            (
                lottery.title,
                lottery.description,
                lottery.draw_mode.value,
                to_db_time(lottery.draw_time),
                lottery.max_entries,
                lottery.status.value,
                int(lottery.is_weights_disabled),
                lottery.id,
            ),
        )

    async def set_status(self, lottery_id: str, status: LotteryStatus) -> None:
        await self.execute("UPDATE lotteries SET status = ? WHERE id = ?", (status.value, lottery_id))

    async def delete_lottery(self, lottery_id: str) -> bool:
        return await self.execute("DELETE FROM lotteries WHERE id = ?", (lottery_id,)) > 0

    async def count_created_since(self, creator_id: int, since: datetime) -> int:
        """Count lotteries (drafts included) a creator opened at or after ``since``."""
        value = await self.fetch_value(
            "SELECT COUNT(*) FROM lotteries WHERE creator_id = ? AND created_at >= ?",
            (creator_id, to_db_time(since)),
        )
        return int(value or 0)

    async def get_due_lottery_ids(self, now: datetime) -> List[str]:
        """Active lotteries whose deadline passed or whose capacity is reached."""
        return await self.fetch_column(
            """
            SELECT l.id FROM lotteries l
             WHERE l.status = 'active'
               AND (
                    (l.draw_mode = 'timed' AND l.draw_time IS NOT NULL AND l.draw_time <= ?)
                 OR (l.draw_mode = 'full' AND l.max_entries IS NOT NULL
                     AND (SELECT COUNT(*) FROM participants p WHERE p.lottery_id = l.id) >= l.max_entries)
               )
             ORDER BY l.created_at
            """,
            (to_db_time(now),),
        )

    # Prizes

    async def get_prizes(self, lottery_id: str) -> List[Prize]:
        rows = await self.fetch_all(
            "SELECT id, lottery_id, name, quantity FROM prizes WHERE lottery_id = ? ORDER BY id",
            (lottery_id,),
        )
        return [
            Prize(id=row["id"], lottery_id=row["lottery_id"], name=row["name"], quantity=row["quantity"])
            for row in rows
        ]

    async def replace_prizes(self, lottery_id: str, prizes: Sequence[Prize]) -> List[Prize]:
        """Delete the prize set and recreate it; returns prizes with their new ids."""
        async with self.transaction() as repo:
            await repo.execute("DELETE FROM prizes WHERE lottery_id = ?", (lottery_id,))
            created: List[Prize] = []
            for prize in prizes:
                prize_id = await repo.insert(
                    "INSERT INTO prizes (lottery_id, name, quantity) VALUES (?, ?, ?)",
                    (lottery_id, prize.name, prize.quantity),
                )
                created.append(Prize(id=prize_id, lottery_id=lottery_id, name=prize.name, quantity=prize.quantity))
            return created

    # Participants

    async def add_participant(self, participant: Participant) -> Participant:
        """Insert a participant and bump the lottery's participant counter.

        Raises:
            ParticipantExistsError: The user already joined this lottery
        """
        async with self.transaction() as repo:
            rowcount = await repo.execute(
                """
                INSERT INTO participants
                    (lottery_id, user_id, username, first_name, last_name, weight, joined_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(lottery_id, user_id) DO NOTHING
                """,
                (
                    participant.lottery_id,
                    participant.user_id,
                    participant.username,
                    participant.first_name,
                    participant.last_name,
                    participant.weight,
                    to_db_time(participant.joined_at),
                ),
            )
            if rowcount == 0:
                raise ParticipantExistsError(
                    f"User {participant.user_id} already joined lottery {participant.lottery_id}"
                )
            await repo.execute(
                "UPDATE lotteries SET participants = participants + 1 WHERE id = ?",
                (participant.lottery_id,),
            )
            participant.id = await repo.fetch_value(
                "SELECT id FROM participants WHERE lottery_id = ? AND user_id = ?",
                (participant.lottery_id, participant.user_id),
            )
        return participant

    async def count_participants(self, lottery_id: str) -> int:
        value = await self.fetch_value(
            "SELECT COUNT(*) FROM participants WHERE lottery_id = ?",
            (lottery_id,),
        )
        return int(value or 0)

    async def get_participant(self, lottery_id: str, user_id: int) -> Optional[Participant]:
        row = await self.fetch_one(
            "SELECT * FROM participants WHERE lottery_id = ? AND user_id = ?",
            (lottery_id, user_id),
        )
        if row is None:
            return None
        participant = _row_to_participant(row)
        overrides = await self.fetch_all(
            "SELECT prize_id, weight FROM prize_weights WHERE lottery_id = ? AND user_id = ?",
            (lottery_id, user_id),
        )
        participant.prize_weights = {item["prize_id"]: item["weight"] for item in overrides}
        return participant

    async def get_participants(self, lottery_id: str) -> List[Participant]:
        """Participants in join order, each with its per-prize overrides."""
        rows = await self.fetch_all(
            "SELECT * FROM participants WHERE lottery_id = ? ORDER BY joined_at, id",
            (lottery_id,),
        )
        participants = [_row_to_participant(row) for row in rows]

        by_user: Dict[int, Participant] = {p.user_id: p for p in participants}
        for weight in await self.get_prize_weights(lottery_id):
            owner = by_user.get(weight.user_id)
            if owner is not None:
                owner.prize_weights[weight.prize_id] = weight.weight
        return participants

    async def update_participant_weight(self, lottery_id: str, user_id: int, weight: int) -> bool:
        rowcount = await self.execute(
            "UPDATE participants SET weight = ? WHERE lottery_id = ? AND user_id = ?",
            (weight, lottery_id, user_id),
        )
        return rowcount > 0

    async def remove_participant(self, lottery_id: str, user_id: int) -> bool:
        """Delete a participant, their overrides, and decrement the counter."""
        async with self.transaction() as repo:
            rowcount = await repo.execute(
                "DELETE FROM participants WHERE lottery_id = ? AND user_id = ?",
                (lottery_id, user_id),
            )
            if rowcount == 0:
                return False
            await repo.execute(
                "UPDATE lotteries SET participants = MAX(participants - 1, 0) WHERE id = ?",
                (lottery_id,),
            )
            await repo.execute(
                "DELETE FROM prize_weights WHERE lottery_id = ? AND user_id = ?",
                (lottery_id, user_id),
            )
        return True

    # Prize weight overrides

    async def get_prize_weights(self, lottery_id: str) -> List[PrizeWeight]:
        rows = await self.fetch_all(
            "SELECT lottery_id, user_id, prize_id, weight FROM prize_weights WHERE lottery_id = ?",
            (lottery_id,),
        )
        return [
            PrizeWeight(
                lottery_id=row["lottery_id"],
                user_id=row["user_id"],
                prize_id=row["prize_id"],
                weight=row["weight"],
            )
            for row in rows
        ]

    async def set_prize_weight(self, weight: PrizeWeight) -> None:
        await self.execute(
            """
            INSERT INTO prize_weights (lottery_id, user_id, prize_id, weight)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(lottery_id, user_id, prize_id) DO UPDATE SET weight = excluded.weight
            """,
            (weight.lottery_id, weight.user_id, weight.prize_id, weight.weight),
        )

    async def delete_prize_weight(self, lottery_id: str, user_id: int, prize_id: int) -> bool:
        rowcount = await self.execute(
            "DELETE FROM prize_weights WHERE lottery_id = ? AND user_id = ? AND prize_id = ?",
            (lottery_id, user_id, prize_id),
        )
        return rowcount > 0

    # Winners

    async def insert_winners(self, winners: Sequence[Winner]) -> None:
        await self.execute_many(
            """
            INSERT INTO winners (lottery_id, participant_id, prize_id, user_id, username, prize_name)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (w.lottery_id, w.participant_id, w.prize_id, w.user_id, w.username, w.prize_name)
                for w in winners
            ],
        )

    async def get_winners(self, lottery_id: str) -> List[Winner]:
        rows = await self.fetch_all(
            "SELECT * FROM winners WHERE lottery_id = ? ORDER BY prize_id, id",
            (lottery_id,),
        )
        return [_row_to_winner(row) for row in rows]

    # Edit tokens

    async def create_edit_token(self, token: EditToken) -> None:
        await self.execute(
            "INSERT INTO edit_tokens (token, lottery_id, expires_at) VALUES (?, ?, ?)",
            (token.token, token.lottery_id, to_db_time(token.expires_at)),
        )

    async def delete_edit_tokens(self, lottery_id: str) -> int:
        return await self.execute("DELETE FROM edit_tokens WHERE lottery_id = ?", (lottery_id,))

    async def get_edit_token(self, lottery_id: str, token: str) -> Optional[EditToken]:
        row = await self.fetch_one(
            "SELECT token, lottery_id, expires_at FROM edit_tokens WHERE lottery_id = ? AND token = ?",
            (lottery_id, token),
        )
        if row is None:
            return None
        return EditToken(token=row["token"], lottery_id=row["lottery_id"], expires_at=from_db_time(row["expires_at"]))

    # Retention and maintenance

    async def delete_stale_drafts(self, created_before: datetime) -> int:
        return await self.execute(
            "DELETE FROM lotteries WHERE status = 'draft' AND created_at < ?",
            (to_db_time(created_before),),
        )

    async def delete_expired_tokens(self, now: datetime) -> int:
        return await self.execute(
            "DELETE FROM edit_tokens WHERE expires_at <= ?",
            (to_db_time(now),),
        )

    async def checkpoint_wal(self) -> None:
        await self.execute("PRAGMA wal_checkpoint(TRUNCATE)")

    async def ping(self) -> bool:
        return await self.fetch_value("SELECT 1") == 1

    async def get_stats(self) -> LotteryStats:
        stats = LotteryStats()
        for row in await self.fetch_all("SELECT status, COUNT(*) AS total FROM lotteries GROUP BY status"):
            setattr(stats, LotteryStatus(row["status"]).value, row["total"])
        stats.participants = int(await self.fetch_value("SELECT COUNT(*) FROM participants") or 0)
        stats.winners = int(await self.fetch_value("SELECT COUNT(*) FROM winners") or 0)
        return stats


__all__ = ["LotteryRepository"]
