"""HungerSyncOrchestrator state machine against an in-memory store."""

from __future__ import annotations

import asyncio
import json
import uuid
from datetime import timedelta

import pytest

from hibilog.errors import PetSyncError, ProfileAlreadyExistsError
from hibilog.pet.decay import HungerStatus
from hibilog.pet.sync import HungerSyncOrchestrator, JsonFileStateStore, PetState, SyncState


@pytest.fixture
def uid() -> uuid.UUID:
    return uuid.uuid4()


def orchestrator(uid, pet_store, clock, **kwargs) -> HungerSyncOrchestrator:
    state = kwargs.pop("state", None) or PetState()
    return HungerSyncOrchestrator(uid, pet_store, state, clock=clock, **kwargs)


class TestLoad:
    @pytest.mark.asyncio
    async def test_adopts_stored_profile(self, uid, pet_store, clock):
        pet_store.add(uid, 80.0, clock.now - timedelta(hours=6), notification_interval=3)
        orch = orchestrator(uid, pet_store, clock)

        state = await orch.load()

        assert orch.sync_state is SyncState.SYNCED
        assert state.hunger == 80.0
        assert state.status is HungerStatus.HEALTHY
        assert state.notification_interval == 3

    @pytest.mark.asyncio
    async def test_applies_decay_since_last_feed(self, uid, pet_store, clock):
        pet_store.add(uid, 100.0, clock.now - timedelta(hours=36))
        state = await orchestrator(uid, pet_store, clock).load()
        assert state.hunger == pytest.approx(40.0)
        assert state.status is HungerStatus.HUNGRY

    @pytest.mark.asyncio
    async def test_creates_missing_profile(self, uid, pet_store, clock):
        orch = orchestrator(uid, pet_store, clock)
        state = await orch.load()

        assert orch.sync_state is SyncState.SYNCED
        assert state.hunger == 100.0
        assert state.last_fed_at == clock.now
        assert pet_store.records[uid].hunger_level == 100.0

    @pytest.mark.asyncio
    async def test_concurrent_create_treated_as_success(self, uid, pet_store, clock):
        pet_store.fail_on["create"] = ProfileAlreadyExistsError(uid)
        orch = orchestrator(uid, pet_store, clock)

        state = await orch.load()

        assert orch.sync_state is SyncState.SYNCED
        assert state.hunger == 100.0

    @pytest.mark.asyncio
    async def test_read_failure_enters_error_state(self, uid, pet_store, clock):
        pet_store.fail_on["get"] = RuntimeError("connection reset")
        orch = orchestrator(uid, pet_store, clock)

        with pytest.raises(PetSyncError):
            await orch.load()
        assert orch.sync_state is SyncState.ERROR

    @pytest.mark.asyncio
    async def test_create_failure_enters_error_state(self, uid, pet_store, clock):
        pet_store.fail_on["create"] = RuntimeError("permission denied")
        orch = orchestrator(uid, pet_store, clock)

        with pytest.raises(PetSyncError):
            await orch.load()
        assert orch.sync_state is SyncState.ERROR

    @pytest.mark.asyncio
    async def test_reload_recovers_from_error(self, uid, pet_store, clock):
        pet_store.add(uid, 70.0, clock.now)
        pet_store.fail_on["get"] = RuntimeError("timeout")
        orch = orchestrator(uid, pet_store, clock)
        with pytest.raises(PetSyncError):
            await orch.load()

        del pet_store.fail_on["get"]
        state = await orch.load()

        assert orch.sync_state is SyncState.SYNCED
        assert state.hunger == 70.0


class TestTick:
    @pytest.mark.asyncio
    async def test_recomputes_locally_only(self, uid, pet_store, clock):
        pet_store.add(uid, 100.0, clock.now)
        orch = orchestrator(uid, pet_store, clock)
        await orch.load()
        writes_before = [c for c in pet_store.calls if c != "get"]

        clock.advance(hours=24)
        state = orch.tick()

        assert state.hunger == pytest.approx(60.0)
        assert state.status is HungerStatus.NORMAL
        assert pet_store.records[uid].hunger_level == 100.0
        assert [c for c in pet_store.calls if c != "get"] == writes_before

    def test_noop_before_load(self, uid, pet_store, clock):
        orch = orchestrator(uid, pet_store, clock)
        assert orch.tick().hunger == 100.0
        assert orch.sync_state is SyncState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_alert_fires_once_when_entering_critical(self, uid, pet_store, clock):
        pet_store.add(uid, 100.0, clock.now - timedelta(hours=42))  # hunger 30
        alerts: list[PetState] = []
        orch = orchestrator(
            uid, pet_store, clock,
            state=PetState(notifications_enabled=True),
            alert=alerts.append,
        )
        await orch.load()
        assert orch.state.status is HungerStatus.HUNGRY

        clock.advance(hours=4)
        orch.tick()
        clock.advance(hours=1)
        orch.tick()

        assert orch.state.status is HungerStatus.CRITICAL
        assert len(alerts) == 1

    @pytest.mark.asyncio
    async def test_no_alert_when_notifications_disabled(self, uid, pet_store, clock):
        pet_store.add(uid, 100.0, clock.now - timedelta(hours=42))
        alerts: list[PetState] = []
        orch = orchestrator(uid, pet_store, clock, alert=alerts.append)
        await orch.load()

        clock.advance(hours=4)
        orch.tick()

        assert orch.state.status is HungerStatus.CRITICAL
        assert alerts == []


class TestFeed:
    @pytest.mark.asyncio
    async def test_feed_persists_and_updates_state(self, uid, pet_store, clock):
        pet_store.add(uid, 50.0, clock.now - timedelta(hours=1))
        orch = orchestrator(uid, pet_store, clock)
        await orch.load()

        state = await orch.feed(has_text=True)

        assert state.hunger == 80.0
        assert state.last_fed_at == clock.now
        assert state.status is HungerStatus.HEALTHY
        assert pet_store.records[uid].hunger_level == 80.0
        assert pet_store.records[uid].last_fed_at == clock.now

    @pytest.mark.asyncio
    async def test_feed_uses_decayed_value(self, uid, pet_store, clock):
        pet_store.add(uid, 100.0, clock.now)
        orch = orchestrator(uid, pet_store, clock)
        await orch.load()

        clock.advance(hours=48)  # 100 - 80 = 20
        state = await orch.feed()

        assert state.hunger == pytest.approx(45.0)

    @pytest.mark.asyncio
    async def test_feed_rejected_in_error_state(self, uid, pet_store, clock):
        pet_store.fail_on["get"] = RuntimeError("down")
        orch = orchestrator(uid, pet_store, clock)
        with pytest.raises(PetSyncError):
            await orch.load()

        with pytest.raises(PetSyncError):
            await orch.feed()
        assert "save_feed" not in pet_store.calls

    @pytest.mark.asyncio
    async def test_feed_before_load_uses_stored_hunger(self, uid, pet_store, clock):
        pet_store.add(uid, 20.0, clock.now - timedelta(hours=48))
        orch = orchestrator(uid, pet_store, clock)

        state = await orch.feed()

        assert orch.sync_state is SyncState.SYNCED
        assert state.hunger == pytest.approx(45.0)
        assert pet_store.records[uid].hunger_level == pytest.approx(45.0)
        assert pet_store.calls.index("get") < pet_store.calls.index("save_feed")

    @pytest.mark.asyncio
    async def test_feed_before_failed_load_writes_nothing(self, uid, pet_store, clock):
        pet_store.fail_on["get"] = RuntimeError("down")
        orch = orchestrator(uid, pet_store, clock)

        with pytest.raises(PetSyncError):
            await orch.feed()
        assert orch.sync_state is SyncState.ERROR
        assert "save_feed" not in pet_store.calls

    @pytest.mark.asyncio
    async def test_failed_save_leaves_state_unchanged(self, uid, pet_store, clock):
        pet_store.add(uid, 50.0, clock.now - timedelta(hours=1))
        pet_store.fail_on["save_feed"] = RuntimeError("write failed")
        orch = orchestrator(uid, pet_store, clock)
        await orch.load()

        with pytest.raises(PetSyncError):
            await orch.feed()

        assert orch.state.hunger == 50.0
        assert orch.sync_state is SyncState.SYNCED


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, uid, pet_store, clock, tmp_path):
        store = JsonFileStateStore(tmp_path / "pet.json")
        pet_store.add(uid, 90.0, clock.now)
        orch = orchestrator(uid, pet_store, clock, store=store, tick_seconds=0.01)
        await orch.load()

        orch.start()
        assert orch.running
        await asyncio.sleep(0.05)
        await orch.stop()

        assert not orch.running
        assert store.load().hunger == 90.0

    @pytest.mark.asyncio
    async def test_context_manager(self, uid, pet_store, clock):
        async with orchestrator(uid, pet_store, clock, tick_seconds=60) as orch:
            assert orch.running
            assert orch.sync_state is SyncState.SYNCED
        assert not orch.running

    @pytest.mark.asyncio
    async def test_notification_preference_restored_from_store(self, uid, pet_store, clock, tmp_path):
        store = JsonFileStateStore(tmp_path / "pet.json")
        store.save(PetState(hunger=99.0, notifications_enabled=True))
        pet_store.add(uid, 100.0, clock.now - timedelta(hours=42))
        alerts: list[PetState] = []

        orch = orchestrator(uid, pet_store, clock, store=store, alert=alerts.append)
        assert orch.state.notifications_enabled
        state = await orch.load()
        assert state.hunger == pytest.approx(30.0)

        clock.advance(hours=4)
        orch.tick()
        assert len(alerts) == 1

    @pytest.mark.asyncio
    async def test_toggle_notifications_persists_locally(self, uid, pet_store, clock, tmp_path):
        store = JsonFileStateStore(tmp_path / "pet.json")
        orch = orchestrator(uid, pet_store, clock, store=store)

        orch.set_notifications_enabled(True)
        assert store.load().notifications_enabled

        reopened = orchestrator(uid, pet_store, clock, store=store)
        assert reopened.state.notifications_enabled
        reopened.set_notifications_enabled(False)
        assert not store.load().notifications_enabled

    @pytest.mark.asyncio
    async def test_stop_without_start(self, uid, pet_store, clock):
        await orchestrator(uid, pet_store, clock).stop()


class TestJsonFileStateStore:
    def test_round_trip(self, tmp_path, clock):
        store = JsonFileStateStore(tmp_path / "nested" / "pet.json")
        state = PetState(
            hunger=42.5,
            last_fed_at=clock.now,
            status=HungerStatus.HUNGRY,
            notifications_enabled=True,
            notification_interval=4,
        )
        store.save(state)
        assert store.load() == state

    def test_missing_file(self, tmp_path):
        assert JsonFileStateStore(tmp_path / "absent.json").load() is None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "pet.json"
        path.write_text("{not json", encoding="utf-8")
        assert JsonFileStateStore(path).load() is None

    def test_unknown_status(self, tmp_path):
        path = tmp_path / "pet.json"
        path.write_text(json.dumps({"hunger": 50, "status": "asleep"}), encoding="utf-8")
        assert JsonFileStateStore(path).load() is None
