"""Per-session reconciliation of local Baku state with the stored profile.

A ``HungerSyncOrchestrator`` owns one user's ``PetState``. On ``load()`` it
adopts (or lazily creates) the stored profile, then keeps the local copy
current with a periodic decay recompute. Feeding goes through it so the
stored row and the local state change together.

States::

    UNINITIALIZED --load ok--> SYNCED
    UNINITIALIZED --load error--> ERROR --load ok--> SYNCED

``feed()`` before ``load()`` loads first. A ``LocalStateStore`` carries the
device-side ``notifications_enabled`` preference between sessions.
"""

from __future__ import annotations

import asyncio
import enum
import json
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import structlog

from hibilog.errors import PetSyncError, ProfileAlreadyExistsError, ProfileNotFoundError
from hibilog.pet.decay import (
    MAX_HUNGER,
    HungerStatus,
    apply_feed,
    current_hunger,
    hunger_status,
)
from hibilog.pet.repository import DEFAULT_NOTIFICATION_INTERVAL_HOURS, PetProfileStore

logger = structlog.get_logger()

Clock = Callable[[], datetime]
Alert = Callable[["PetState"], None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    SYNCED = "synced"
    ERROR = "error"


@dataclass
class PetState:
    """Client-side view of the pet, shared by whatever renders it."""

    hunger: float = MAX_HUNGER
    last_fed_at: datetime | None = None
    status: HungerStatus = HungerStatus.HEALTHY
    notifications_enabled: bool = False
    notification_interval: int = DEFAULT_NOTIFICATION_INTERVAL_HOURS

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["last_fed_at"] = self.last_fed_at.isoformat() if self.last_fed_at else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PetState:
        last_fed = data.get("last_fed_at")
        return cls(
            hunger=float(data.get("hunger", MAX_HUNGER)),
            last_fed_at=datetime.fromisoformat(last_fed) if last_fed else None,
            status=HungerStatus(data.get("status", HungerStatus.HEALTHY.value)),
            notifications_enabled=bool(data.get("notifications_enabled", False)),
            notification_interval=int(data.get("notification_interval", DEFAULT_NOTIFICATION_INTERVAL_HOURS)),
        )


class LocalStateStore(Protocol):
    def load(self) -> PetState | None: ...

    def save(self, state: PetState) -> None: ...


class JsonFileStateStore:
    """Keeps ``PetState`` in a JSON file between sessions."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> PetState | None:
        if not self.path.exists():
            return None
        try:
            return PetState.from_dict(json.loads(self.path.read_text(encoding="utf-8")))
        except (ValueError, TypeError):
            logger.warning("local_pet_state_unreadable", path=str(self.path), exc_info=True)
            return None

    def save(self, state: PetState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(state.to_dict()), encoding="utf-8")


class HungerSyncOrchestrator:
    """Keeps one user's ``PetState`` in step with their stored profile."""

    def __init__(
        self,
        user_id: uuid.UUID,
        repository: PetProfileStore,
        state: PetState,
        *,
        clock: Clock = utc_now,
        store: LocalStateStore | None = None,
        alert: Alert | None = None,
        tick_seconds: float = 60,
    ) -> None:
        self.user_id = user_id
        self.repository = repository
        self.state = state
        self.clock = clock
        self.store = store
        self.alert = alert
        self.tick_seconds = tick_seconds
        self.sync_state = SyncState.UNINITIALIZED
        self._task: asyncio.Task[None] | None = None
        self._restore_local()

    # -- lifecycle --

    async def __aenter__(self) -> HungerSyncOrchestrator:
        await self.load()
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def start(self) -> None:
        """Begin periodic recomputes. No-op if already running."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name=f"hunger-sync:{self.user_id}")

    async def stop(self) -> None:
        """Cancel the recompute task and persist local state."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._save_local()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.tick_seconds)
            self.tick()

    # -- protocol --

    async def load(self) -> PetState:
        """Adopt the stored profile, creating it on first use.

        On any failure other than "not found" the orchestrator moves to
        ``ERROR`` and raises ``PetSyncError``; calling ``load()`` again retries.
        """
        now = self.clock()
        try:
            record = await self.repository.get(self.user_id)
            hunger, last_fed_at = record.hunger_level, record.last_fed_at
            if record.notification_interval:
                self.state.notification_interval = record.notification_interval
        except ProfileNotFoundError:
            try:
                await self.repository.create(self.user_id, now)
                logger.info("pet_profile_created", user_id=str(self.user_id))
            except ProfileAlreadyExistsError:
                logger.info("pet_profile_already_exists", user_id=str(self.user_id))
            except Exception as exc:
                self._fail("create", exc)
            hunger, last_fed_at = MAX_HUNGER, now
        except Exception as exc:
            self._fail("load", exc)

        self.state.hunger = hunger
        self.state.last_fed_at = last_fed_at
        self.sync_state = SyncState.SYNCED
        self._recompute(now)
        self._save_local()
        return self.state

    def tick(self) -> PetState:
        """Recompute hunger from the live clock. Local only; nothing is written remotely."""
        if self.sync_state is SyncState.SYNCED:
            self._recompute(self.clock())
        return self.state

    async def feed(self, *, has_text: bool = False, mood_category: str | None = None) -> PetState:
        """Apply a feed event, persist it, and update local state."""
        if self.sync_state is SyncState.ERROR:
            raise PetSyncError("Pet state is out of sync; reload before feeding")
        if self.sync_state is SyncState.UNINITIALIZED:
            await self.load()

        now = self.clock()
        self._recompute(now)
        result = apply_feed(self.state.hunger, now, has_text=has_text, mood_category=mood_category)
        try:
            await self.repository.save_feed(self.user_id, result.hunger, result.last_fed_at)
        except Exception as exc:
            logger.error("pet_feed_save_failed", user_id=str(self.user_id), exc_info=exc)
            raise PetSyncError("Could not save feed") from exc

        self.state.hunger = result.hunger
        self.state.last_fed_at = result.last_fed_at
        self.state.status = hunger_status(result.hunger)
        self._save_local()
        logger.info("pet_fed", user_id=str(self.user_id), hunger=result.hunger, recovered=result.recovered)
        return self.state

    def set_notifications_enabled(self, enabled: bool) -> PetState:
        """Turn the local critical-hunger alert on or off. Kept in the local store only."""
        self.state.notifications_enabled = enabled
        self._save_local()
        return self.state

    # -- internals --

    def _fail(self, step: str, exc: Exception) -> None:
        self.sync_state = SyncState.ERROR
        logger.error("pet_sync_failed", user_id=str(self.user_id), step=step, exc_info=exc)
        raise PetSyncError(f"Could not {step} pet profile") from exc

    def _recompute(self, now: datetime) -> None:
        if self.state.last_fed_at is None:
            return
        previous = self.state.status
        self.state.hunger = current_hunger(self.state.hunger, self.state.last_fed_at, now)
        self.state.status = hunger_status(self.state.hunger)
        if (
            self.state.status is HungerStatus.CRITICAL
            and previous is not HungerStatus.CRITICAL
            and self.state.notifications_enabled
            and self.alert is not None
        ):
            try:
                self.alert(self.state)
            except Exception:
                logger.warning("local_hunger_alert_failed", user_id=str(self.user_id), exc_info=True)

    def _restore_local(self) -> None:
        # Only the device preference comes from local storage; hunger is always
        # taken from the stored profile on load().
        if self.store is None:
            return
        saved = self.store.load()
        if saved is not None:
            self.state.notifications_enabled = saved.notifications_enabled

    def _save_local(self) -> None:
        if self.store is not None:
            self.store.save(self.state)
