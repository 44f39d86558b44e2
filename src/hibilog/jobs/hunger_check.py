"""Hunger check: the scheduled sweep over every pet profile.

For each profile:
1. Recompute hunger from ``last_fed_at`` and persist it if it drifted
2. If the pet is hungry enough and the user's cooldown has elapsed, push a
   notification to every registered device
3. Record the send once per user and drop subscriptions the push service
   reported as gone

One user's failure is logged and counted; the sweep always finishes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

import structlog

from hibilog.config import Settings
from hibilog.notifications.push import (
    DeliveryOutcome,
    PushMessage,
    PushTransport,
    fan_out,
)
from hibilog.notifications.subscriptions import SubscriptionStore
from hibilog.pet.decay import current_hunger
from hibilog.pet.repository import (
    DEFAULT_NOTIFICATION_INTERVAL_HOURS,
    PetProfileRecord,
    PetProfileStore,
)

logger = structlog.get_logger()

HUNGER_NOTIFICATION_THRESHOLD = 25.0
# Differences below this are float noise, not worth a write.
DRIFT_EPSILON = 0.1

HUNGRY_MESSAGE = PushMessage(
    title="バクがお腹を空かせています！",
    body="思い出を投稿してバクに食べさせてあげましょう。",
    icon="/icon-192x192.png",
)


@dataclass
class HungerCheckResult:
    profiles_updated: int = 0
    notifications_sent: int = 0
    profiles_failed: int = 0

    @property
    def message(self) -> str:
        return (
            f"Hunger check complete: {self.profiles_updated} profiles updated, "
            f"{self.notifications_sent} notifications sent."
        )


def cooldown_elapsed(
    last_sent_at: datetime | None,
    interval_hours: int | None,
    now: datetime,
    default_hours: int = DEFAULT_NOTIFICATION_INTERVAL_HOURS,
) -> bool:
    """True when a new notification may go out."""
    if last_sent_at is None:
        return True
    interval = timedelta(hours=interval_hours or default_hours)
    return now - last_sent_at >= interval


class HungerCheckJob:
    """Runs one sweep. Collaborators are injected so the sweep can run anywhere."""

    def __init__(
        self,
        profiles: PetProfileStore,
        subscriptions: SubscriptionStore,
        transport: PushTransport,
        *,
        threshold: float = HUNGER_NOTIFICATION_THRESHOLD,
        message: PushMessage = HUNGRY_MESSAGE,
        default_interval_hours: int = DEFAULT_NOTIFICATION_INTERVAL_HOURS,
    ) -> None:
        self.profiles = profiles
        self.subscriptions = subscriptions
        self.transport = transport
        self.threshold = threshold
        self.message = message
        self.default_interval_hours = default_interval_hours

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        profiles: PetProfileStore,
        subscriptions: SubscriptionStore,
        transport: PushTransport,
    ) -> HungerCheckJob:
        return cls(
            profiles,
            subscriptions,
            transport,
            threshold=settings.hunger_notification_threshold,
            message=replace(HUNGRY_MESSAGE, icon=settings.push_icon),
            default_interval_hours=settings.default_notification_interval_hours,
        )

    async def run(self, now: datetime) -> HungerCheckResult:
        result = HungerCheckResult()
        for profile in await self.profiles.list_all():
            try:
                updated, sent = await self._process(profile, now)
            except Exception:
                result.profiles_failed += 1
                logger.error("hunger_check_profile_failed", user_id=str(profile.user_id), exc_info=True)
                await self._rollback()
                continue
            result.profiles_updated += int(updated)
            result.notifications_sent += int(sent)

        logger.info(
            "hunger_check_complete",
            updated=result.profiles_updated,
            sent=result.notifications_sent,
            failed=result.profiles_failed,
        )
        return result

    async def _process(self, profile: PetProfileRecord, now: datetime) -> tuple[bool, bool]:
        # Never above the stored value: a feed that landed after this sweep
        # read the row must not be overwritten with a higher stale figure.
        calculated = current_hunger(profile.hunger_level, profile.last_fed_at, now)

        updated = False
        if abs(calculated - profile.hunger_level) > DRIFT_EPSILON:
            await self.profiles.update_hunger(profile.user_id, calculated)
            updated = True

        if calculated > self.threshold:
            return updated, False
        if not cooldown_elapsed(
            profile.last_notification_sent_at,
            profile.notification_interval,
            now,
            self.default_interval_hours,
        ):
            return updated, False

        return updated, await self._notify(profile, now)

    async def _notify(self, profile: PetProfileRecord, now: datetime) -> bool:
        targets = await self.subscriptions.list_for_user(profile.user_id)
        if not targets:
            return False

        results = await fan_out(self.transport, targets, self.message)
        sent = any(r.outcome is DeliveryOutcome.SENT for r in results)
        gone = [r.endpoint for r in results if r.outcome is DeliveryOutcome.GONE]

        try:
            if sent:
                await self.profiles.mark_notified(profile.user_id, now)
                logger.info(
                    "hunger_notification_sent",
                    user_id=str(profile.user_id),
                    devices=sum(r.outcome is DeliveryOutcome.SENT for r in results),
                )
        finally:
            if gone:
                await self._remove_gone(profile, gone)
        return sent

    async def _remove_gone(self, profile: PetProfileRecord, endpoints: list[str]) -> None:
        removed = await self.subscriptions.delete_endpoints(endpoints)
        logger.info("push_subscriptions_removed", user_id=str(profile.user_id), count=removed)

    async def _rollback(self) -> None:
        """Reset storage so one profile's failure does not leak into the next."""
        for store in (self.profiles, self.subscriptions):
            try:
                await store.rollback()
            except Exception:
                logger.warning("hunger_check_rollback_failed", exc_info=True)
