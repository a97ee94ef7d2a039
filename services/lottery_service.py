"""Lottery lifecycle engine.

Owns every business rule of a lottery's life: draft, active, completed.
Multi-step writes run inside one repository transaction; the single
database connection serializes them, so re-reading the lottery row inside
the draw transaction is enough to make a draw happen exactly once no
matter how many triggers race for it.
"""

from __future__ import annotations

import asyncio
import random
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set, Tuple

from core.constants import (
    CreationLimits,
    DrawMode,
    EditTokenDefaults,
    LotteryDefaults,
    LotteryStatus,
)
from core.exceptions import (
    AlreadyJoinedError,
    DailyLimitExceededError,
    LotteryConflictError,
    LotteryEndedError,
    LotteryNotActiveError,
    LotteryNotDrawnError,
    LotteryNotFoundError,
    LotteryFullError,
    ParticipantExistsError,
    PermissionDeniedError,
    ServiceError,
    TokenInvalidError,
    TooFrequentError,
)
from core.logger import get_logger
from database.models import (
    EditToken,
    Lottery,
    LotterySnapshot,
    LotteryStats,
    Participant,
    Prize,
    PrizeWeight,
    Winner,
    utcnow,
)
from database.repositories import LotteryRepository
from services.draw_allocator import allocate_winners, new_rng
from services.notification_service import NotificationDispatcher
from services.retry import DrawOutcome, RetryPolicy, SleepFunc, draw_with_retry
from utils.performance import PerformanceMonitor
from utils.validators import (
    parse_draw_mode,
    validate_draw_settings,
    validate_prizes,
    validate_title,
    validate_weight,
)

logger = get_logger(__name__)


@dataclass
class LotteryInput:
    """Full configuration used to activate a draft."""
    title: str
    creator_id: int
    description: str = ""
    draw_mode: DrawMode | str = DrawMode.MANUAL
    draw_time: Optional[datetime] = None
    max_entries: Optional[int] = None
    prizes: List[Prize] = field(default_factory=list)
    is_weights_disabled: bool = False


@dataclass
class LotteryUpdate:
    """Partial update: empty values keep the stored ones."""
    title: str = ""
    description: str = ""
    draw_mode: DrawMode | str = ""
    draw_time: Optional[datetime] = None
    max_entries: Optional[int] = None
    prizes: Optional[List[Prize]] = None
    is_weights_disabled: bool = False


@dataclass
class JoinRequest:
    user_id: int
    username: str = ""
    first_name: str = ""
    last_name: str = ""


class LotteryService:
    """Orchestrates lottery state transitions, draws and notifications."""

    def __init__(
        self,
        repository: LotteryRepository,
        dispatcher: Optional[NotificationDispatcher] = None,
        *,
        retry_policy: RetryPolicy = RetryPolicy(),
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
        rng_factory: Callable[[], random.Random] = new_rng,
        drafts_per_minute: int = CreationLimits.PER_MINUTE,
        drafts_per_day: int = CreationLimits.PER_DAY,
        edit_token_ttl: int = EditTokenDefaults.TTL_SECONDS,
        monitor: Optional[PerformanceMonitor] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            repository: Persistence gateway bound to the pool
            dispatcher: Event queue for notifications, ``None`` disables them
            retry_policy: Backoff used by background draws
            sleep: Awaitable sleep used between retries
            clock: Returns the current aware UTC time
            rng_factory: Builds the random source for each draw
            drafts_per_minute: Draft creation limit per creator, 0 disables
            drafts_per_day: Daily draft creation limit per creator, 0 disables
            edit_token_ttl: Default edit token lifetime in seconds
            monitor: Metrics sink
        """
        self.repository = repository
        self.dispatcher = dispatcher
        self.retry_policy = retry_policy
        self.drafts_per_minute = drafts_per_minute
        self.drafts_per_day = drafts_per_day
        self.edit_token_ttl = edit_token_ttl
        self.monitor = monitor or PerformanceMonitor()
        self._sleep = sleep
        self._clock = clock
        self._rng_factory = rng_factory
        self._background: Set[asyncio.Task] = set()

    # Creation

    async def create_draft(self, creator_id: int) -> Lottery:
        """Open an empty manual-mode draft with a fresh 6-digit id.

        Raises:
            TooFrequentError: Per-minute creation limit reached
            DailyLimitExceededError: Daily creation limit reached
            ServiceError: No free id after the bounded number of attempts
        """
        now = self._clock()
        await self._check_creation_limits(creator_id, now)

        async with self.repository.transaction() as tx:
            lottery_id = await self._generate_lottery_id(tx)
            lottery = Lottery(
                id=lottery_id,
                title="",
                creator_id=creator_id,
                draw_mode=DrawMode.MANUAL,
                status=LotteryStatus.DRAFT,
                created_at=now,
            )
            await tx.create_lottery(lottery)

        logger.info(f"Draft lottery {lottery.id} created by {creator_id}")
        return lottery

    async def _check_creation_limits(self, creator_id: int, now: datetime) -> None:
        if self.drafts_per_minute > 0:
            recent = await self.repository.count_created_since(creator_id, now - timedelta(minutes=1))
            if recent >= self.drafts_per_minute:
                raise TooFrequentError(f"Creator {creator_id} opened {recent} lotteries in the last minute")
        if self.drafts_per_day > 0:
            today = await self.repository.count_created_since(creator_id, now - timedelta(days=1))
            if today >= self.drafts_per_day:
                raise DailyLimitExceededError(f"Creator {creator_id} opened {today} lotteries in the last day")

    async def _generate_lottery_id(self, repo: LotteryRepository) -> str:
        upper = 10 ** LotteryDefaults.ID_LENGTH
        for _ in range(LotteryDefaults.ID_MAX_ATTEMPTS):
            candidate = f"{secrets.randbelow(upper):0{LotteryDefaults.ID_LENGTH}d}"
            if not await repo.lottery_exists(candidate):
                return candidate
        raise ServiceError(
            f"No free lottery id after {LotteryDefaults.ID_MAX_ATTEMPTS} attempts"
        )

    async def create_or_replace(self, lottery_id: str, data: LotteryInput) -> Tuple[Lottery, List[Prize]]:
        """Finalize a draft (or create the lottery) as active with its prize set.

        Raises:
            ValidationError: Configuration is incomplete or malformed
            LotteryConflictError: A non-draft lottery already uses the id
        """
        draw_mode = parse_draw_mode(data.draw_mode)
        title = validate_title(data.title)
        prizes = validate_prizes(data.prizes)
        validate_draw_settings(draw_mode, data.draw_time, data.max_entries)

        lottery = Lottery(
            id=lottery_id,
            title=title,
            description=data.description,
            creator_id=data.creator_id,
            draw_mode=draw_mode,
            draw_time=data.draw_time,
            max_entries=data.max_entries,
            status=LotteryStatus.ACTIVE,
            is_weights_disabled=data.is_weights_disabled,
        )

        async with self.repository.transaction() as tx:
            existing = await tx.get_lottery(lottery_id)
            if existing is not None and existing.status != LotteryStatus.DRAFT:
                raise LotteryConflictError(f"Lottery {lottery_id} already exists")

            if existing is not None:
                lottery.creator_id = existing.creator_id
                lottery.created_at = existing.created_at
                lottery.participants = existing.participants
                await tx.update_lottery(lottery)
            else:
                lottery.created_at = self._clock()
                await tx.create_lottery(lottery)

            saved_prizes = await tx.replace_prizes(lottery_id, prizes)

        logger.info(
            f"Lottery {lottery_id} activated: mode={lottery.draw_mode.value}, "
            f"{len(saved_prizes)} prize(s)"
        )
        if self.dispatcher is not None:
            self.dispatcher.submit_lottery_created(lottery, saved_prizes)
        return lottery, saved_prizes

    async def update(self, lottery_id: str, changes: LotteryUpdate) -> Tuple[Lottery, List[Prize]]:
        """Apply the non-empty fields of ``changes``.

        The weighting flag is always written. Prizes are replaced only when
        a non-empty list is supplied.

        Raises:
            LotteryNotFoundError: No such lottery
            LotteryEndedError: The lottery is completed
            ValidationError: The resulting configuration is invalid
        """
        async with self.repository.transaction() as tx:
            lottery = await self._require_mutable(tx, lottery_id)

            if changes.title:
                lottery.title = validate_title(changes.title)
            if changes.description:
                lottery.description = changes.description
            if changes.draw_mode:
                lottery.draw_mode = parse_draw_mode(changes.draw_mode)
            if changes.draw_time is not None:
                lottery.draw_time = changes.draw_time
            if changes.max_entries is not None:
                lottery.max_entries = changes.max_entries
            lottery.is_weights_disabled = changes.is_weights_disabled

            if lottery.status == LotteryStatus.ACTIVE:
                validate_draw_settings(lottery.draw_mode, lottery.draw_time, lottery.max_entries)

            await tx.update_lottery(lottery)

            if changes.prizes:
                prizes = await tx.replace_prizes(lottery_id, validate_prizes(changes.prizes))
            else:
                prizes = await tx.get_prizes(lottery_id)

        logger.info(f"Lottery {lottery_id} updated")
        return lottery, prizes

    # Participation

    async def join(self, lottery_id: str, request: JoinRequest) -> Participant:
        """Register a user in an active lottery.

        Raises:
            LotteryNotFoundError: No such lottery
            LotteryNotActiveError: The lottery is a draft or completed
            LotteryFullError: ``max_entries`` participants already joined
            AlreadyJoinedError: The user is already registered
        """
        async with self.repository.transaction() as tx:
            lottery = await tx.get_lottery(lottery_id)
            if lottery is None:
                raise LotteryNotFoundError(f"Lottery {lottery_id} not found")
            if lottery.status != LotteryStatus.ACTIVE:
                raise LotteryNotActiveError(f"Lottery {lottery_id} is {lottery.status.value}")

            if lottery.max_entries is not None:
                count = await tx.count_participants(lottery_id)
                if count >= lottery.max_entries:
                    raise LotteryFullError(f"Lottery {lottery_id} is full")

            participant = await self._insert_participant(tx, lottery_id, request)

        logger.info(f"User {request.user_id} joined lottery {lottery_id}")
        self.monitor.record_join()
        await self._trigger_if_full(lottery)
        return participant

    async def add_participant(self, lottery_id: str, request: JoinRequest) -> Participant:
        """Creator-side manual add; capacity is not enforced.

        Raises:
            LotteryNotFoundError: No such lottery
            LotteryEndedError: The lottery is completed
            AlreadyJoinedError: The user is already registered
        """
        async with self.repository.transaction() as tx:
            lottery = await self._require_mutable(tx, lottery_id)
            participant = await self._insert_participant(tx, lottery_id, request)

        logger.info(f"User {request.user_id} added to lottery {lottery_id} by its creator")
        if lottery.status == LotteryStatus.ACTIVE:
            await self._trigger_if_full(lottery)
        return participant

    async def _insert_participant(
        self,
        tx: LotteryRepository,
        lottery_id: str,
        request: JoinRequest,
    ) -> Participant:
        participant = Participant(
            lottery_id=lottery_id,
            user_id=request.user_id,
            username=request.username,
            first_name=request.first_name,
            last_name=request.last_name,
            weight=LotteryDefaults.DEFAULT_WEIGHT,
            joined_at=self._clock(),
        )
        try:
            return await tx.add_participant(participant)
        except ParticipantExistsError:
            raise AlreadyJoinedError(f"User {request.user_id} already joined lottery {lottery_id}") from None

    async def _trigger_if_full(self, lottery: Lottery) -> None:
        if lottery.draw_mode != DrawMode.FULL or lottery.max_entries is None:
            return
        count = await self.repository.count_participants(lottery.id)
        if count >= lottery.max_entries:
            logger.info(f"Lottery {lottery.id} reached {count}/{lottery.max_entries}, drawing")
            self.schedule_draw(lottery.id, source="full")

    async def get_participants(self, lottery_id: str) -> List[Participant]:
        if not await self.repository.lottery_exists(lottery_id):
            raise LotteryNotFoundError(f"Lottery {lottery_id} not found")
        return await self.repository.get_participants(lottery_id)

    async def set_participant_weight(self, lottery_id: str, user_id: int, weight: int) -> None:
        validate_weight(weight)
        async with self.repository.transaction() as tx:
            await self._require_mutable(tx, lottery_id)
            if not await tx.update_participant_weight(lottery_id, user_id, weight):
                raise LotteryNotFoundError(f"User {user_id} is not in lottery {lottery_id}")

    async def set_prize_weight(self, lottery_id: str, user_id: int, prize_id: int, weight: int) -> None:
        validate_weight(weight)
        async with self.repository.transaction() as tx:
            await self._require_mutable(tx, lottery_id)
            if await tx.get_participant(lottery_id, user_id) is None:
                raise LotteryNotFoundError(f"User {user_id} is not in lottery {lottery_id}")
            if prize_id not in {prize.id for prize in await tx.get_prizes(lottery_id)}:
                raise LotteryNotFoundError(f"Prize {prize_id} is not in lottery {lottery_id}")
            await tx.set_prize_weight(PrizeWeight(lottery_id, user_id, prize_id, weight))

    async def clear_prize_weight(self, lottery_id: str, user_id: int, prize_id: int) -> bool:
        """Drop a per-prize override; returns whether one existed."""
        async with self.repository.transaction() as tx:
            await self._require_mutable(tx, lottery_id)
            return await tx.delete_prize_weight(lottery_id, user_id, prize_id)

    async def remove_participant(self, lottery_id: str, user_id: int) -> None:
        async with self.repository.transaction() as tx:
            await self._require_mutable(tx, lottery_id)
            if not await tx.remove_participant(lottery_id, user_id):
                raise LotteryNotFoundError(f"User {user_id} is not in lottery {lottery_id}")
        logger.info(f"User {user_id} removed from lottery {lottery_id}")

    async def _require_mutable(self, tx: LotteryRepository, lottery_id: str) -> Lottery:
        lottery = await tx.get_lottery(lottery_id)
        if lottery is None:
            raise LotteryNotFoundError(f"Lottery {lottery_id} not found")
        if lottery.status == LotteryStatus.COMPLETED:
            raise LotteryEndedError(f"Lottery {lottery_id} is already completed")
        return lottery

    # Drawing

    async def draw(self, lottery_id: str) -> List[Winner]:
        """Draw winners and complete the lottery in one transaction.

        A lottery without participants completes with no winners.

        Raises:
            LotteryNotFoundError: No such lottery
            LotteryEndedError: Already drawn
            LotteryNotActiveError: Still a draft
        """
        with self.monitor.track_draw():
            async with self.repository.transaction() as tx:
                lottery = await tx.get_lottery(lottery_id)
                if lottery is None:
                    raise LotteryNotFoundError(f"Lottery {lottery_id} not found")
                if lottery.status == LotteryStatus.COMPLETED:
                    raise LotteryEndedError(f"Lottery {lottery_id} is already completed")
                if lottery.status != LotteryStatus.ACTIVE:
                    raise LotteryNotActiveError(f"Lottery {lottery_id} is {lottery.status.value}")

                prizes = await tx.get_prizes(lottery_id)
                participants = await tx.get_participants(lottery_id)
                winners = allocate_winners(
                    lottery_id,
                    prizes,
                    participants,
                    rng=self._rng_factory(),
                    weights_disabled=lottery.is_weights_disabled,
                )
                await tx.insert_winners(winners)
                await tx.set_status(lottery_id, LotteryStatus.COMPLETED)
                lottery.status = LotteryStatus.COMPLETED

        units = sum(prize.quantity for prize in prizes)
        logger.info(
            f"Lottery {lottery_id} drawn: {len(winners)}/{units} unit(s) awarded "
            f"among {len(participants)} participant(s)"
        )
        self.monitor.record_winners(len(winners))
        if winners and self.dispatcher is not None:
            self.dispatcher.submit_winners_drawn(lottery, winners)
        return winners

    async def draw_with_retry(self, lottery_id: str, source: str = "manual") -> DrawOutcome:
        """The one retrying draw path, shared by the scheduler and full-mode joins."""
        outcome = await draw_with_retry(
            self.draw,
            lottery_id,
            policy=self.retry_policy,
            sleep=self._sleep,
            source=source,
            on_retry=lambda attempt, exc: self.monitor.record_retry(),
        )
        self.monitor.record_draw(source, outcome.value)
        return outcome

    def schedule_draw(self, lottery_id: str, source: str) -> asyncio.Task:
        """Run :meth:`draw_with_retry` in the background without awaiting it."""
        task = asyncio.create_task(self.draw_with_retry(lottery_id, source))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    @property
    def pending_draws(self) -> int:
        return len(self._background)

    async def aclose(self) -> None:
        """Wait for background draws started by joins."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # Edit tokens

    async def issue_edit_token(
        self,
        lottery_id: str,
        requester_id: int,
        ttl: Optional[int] = None,
    ) -> EditToken:
        """Replace the lottery's edit token with a fresh one.

        Raises:
            LotteryNotFoundError: No such lottery
            PermissionDeniedError: Requester is not the creator
        """
        ttl = self.edit_token_ttl if ttl is None else ttl
        async with self.repository.transaction() as tx:
            lottery = await tx.get_lottery(lottery_id)
            if lottery is None:
                raise LotteryNotFoundError(f"Lottery {lottery_id} not found")
            if lottery.creator_id != requester_id:
                raise PermissionDeniedError(f"User {requester_id} did not create lottery {lottery_id}")

            await tx.delete_edit_tokens(lottery_id)
            token = EditToken(
                token=secrets.token_urlsafe(EditTokenDefaults.TOKEN_BYTES),
                lottery_id=lottery_id,
                expires_at=self._clock() + timedelta(seconds=ttl),
            )
            await tx.create_edit_token(token)

        logger.info(f"Edit token issued for lottery {lottery_id}")
        return token

    async def validate_edit_token(self, lottery_id: str, token: str) -> None:
        """Fails closed: lookup errors, unknown and expired tokens are all invalid.

        Raises:
            TokenInvalidError: The token does not authorize edits
        """
        if not token:
            raise TokenInvalidError("Token required")
        try:
            stored = await self.repository.get_edit_token(lottery_id, token)
        except Exception as exc:
            logger.warning(f"Edit token lookup failed for lottery {lottery_id}: {exc}")
            raise TokenInvalidError("Token validation failed") from exc
        if stored is None or stored.expires_at <= self._clock():
            raise TokenInvalidError("Invalid or expired token")

    # Reads

    async def get_snapshot(self, lottery_id: str) -> LotterySnapshot:
        lottery = await self.repository.get_lottery(lottery_id)
        if lottery is None:
            raise LotteryNotFoundError(f"Lottery {lottery_id} not found")

        snapshot = LotterySnapshot(
            lottery=lottery,
            prizes=await self.repository.get_prizes(lottery_id),
            participant_count=await self.repository.count_participants(lottery_id),
        )
        if lottery.is_completed:
            snapshot.winners = await self.repository.get_winners(lottery_id)
        return snapshot

    async def get_results(self, lottery_id: str) -> Tuple[Lottery, List[Prize], List[Winner]]:
        lottery = await self.repository.get_lottery(lottery_id)
        if lottery is None:
            raise LotteryNotFoundError(f"Lottery {lottery_id} not found")
        if not lottery.is_completed:
            raise LotteryNotDrawnError(f"Lottery {lottery_id} has not been drawn yet")
        winners = await self.repository.get_winners(lottery_id)
        prizes = await self.repository.get_prizes(lottery_id)
        return lottery, prizes, winners

    async def get_stats(self) -> LotteryStats:
        stats = await self.repository.get_stats()
        self.monitor.record_lottery_stats(stats.draft, stats.active, stats.completed)
        return stats
