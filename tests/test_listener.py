"""HeartbeatListener inside the background agent."""

import asyncio
from datetime import date, datetime, time

import pytest

from fakes import RecordingNotifier
from pushalarm.agent.lifecycle import AgentState, BackgroundAgent, PushEvent
from pushalarm.agent.listener import HeartbeatListener
from pushalarm.agent.storage import AlarmBook, AlarmStore, JsonFileKeyValueStore


NOW = datetime(2024, 1, 1, 9, 0, 1)


@pytest.fixture
def store(tmp_path):
    return AlarmStore(JsonFileKeyValueStore(tmp_path / "store.json"))


@pytest.fixture
def coffee(store):
    book = AlarmBook(store)
    book.create("Coffee", date(2024, 1, 1), time(9, 0))
    book.create("Lunch", date(2024, 1, 1), time(12, 0))
    return book


def _active_agent() -> BackgroundAgent:
    return BackgroundAgent(state=AgentState.ACTIVATED)


@pytest.mark.asyncio
async def test_heartbeat_shows_notification_for_fired_alarm(store, coffee):
    notifier = RecordingNotifier()
    agent = _active_agent()
    HeartbeatListener(store, notifier, clock=lambda: NOW).install(agent)

    await agent.dispatch_push(b"heartbeat")

    assert notifier.shown == [('"Coffee" at 09:00:00', "Alarm")]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [b"hello", b"Heartbeat", b"", None])
async def test_other_payloads_are_ignored(store, coffee, payload):
    notifier = RecordingNotifier()
    agent = _active_agent()
    HeartbeatListener(store, notifier, clock=lambda: NOW).install(agent)

    event = await agent.dispatch_push(payload)

    assert notifier.shown == []
    assert event._extensions == []


@pytest.mark.asyncio
async def test_dispatch_waits_for_notifications_to_settle(store, coffee):
    notifier = RecordingNotifier(delay=0.02)
    agent = _active_agent()
    HeartbeatListener(store, notifier, clock=lambda: NOW).install(agent)

    await agent.dispatch_push(b"heartbeat")

    assert len(notifier.shown) == 1


@pytest.mark.asyncio
async def test_every_heartbeat_fires_again(store, coffee):
    notifier = RecordingNotifier()
    agent = _active_agent()
    HeartbeatListener(store, notifier, clock=lambda: NOW).install(agent)

    await agent.dispatch_push(b"heartbeat")
    await agent.dispatch_push(b"heartbeat")

    assert [title for title, _ in notifier.shown] == ['"Coffee" at 09:00:00'] * 2


@pytest.mark.asyncio
async def test_listener_reads_current_store_contents(store):
    notifier = RecordingNotifier()
    agent = _active_agent()
    HeartbeatListener(store, notifier, clock=lambda: NOW).install(agent)

    await agent.dispatch_push(b"heartbeat")
    assert notifier.shown == []

    AlarmBook(store).create("Late", date(2024, 1, 1), time(8, 0))
    await agent.dispatch_push(b"heartbeat")
    assert notifier.shown == [('"Late" at 08:00:00', "Alarm")]


@pytest.mark.asyncio
async def test_failed_notification_does_not_stop_the_others(store):
    book = AlarmBook(store)
    book.create("Coffee", date(2024, 1, 1), time(8, 0))
    book.create("Tea", date(2024, 1, 1), time(7, 0))
    notifier = RecordingNotifier(fail_for={'"Coffee" at 08:00:00'})
    agent = _active_agent()
    listener = HeartbeatListener(store, notifier, clock=lambda: NOW)
    listener.install(agent)

    await agent.dispatch_push(b"heartbeat")

    assert notifier.shown == [('"Tea" at 07:00:00', "Alarm")]


@pytest.mark.asyncio
async def test_install_is_deferred_until_activated(store, coffee):
    notifier = RecordingNotifier()
    agent = BackgroundAgent(state=AgentState.INSTALLING)
    listener = HeartbeatListener(store, notifier, clock=lambda: NOW)
    listener.install(agent)

    await agent.dispatch_push(b"heartbeat")
    assert not listener.attached
    assert notifier.shown == []

    agent.set_state(AgentState.INSTALLED)
    agent.set_state(AgentState.ACTIVATING)
    assert not listener.attached

    agent.set_state(AgentState.ACTIVATED)
    assert listener.attached

    await agent.dispatch_push(b"heartbeat")
    assert len(notifier.shown) == 1


@pytest.mark.asyncio
async def test_listener_attaches_only_once(store, coffee):
    notifier = RecordingNotifier()
    agent = _active_agent()
    listener = HeartbeatListener(store, notifier, clock=lambda: NOW)
    listener.install(agent)
    listener.install(agent)

    await agent.dispatch_push(b"heartbeat")

    assert len(notifier.shown) == 1


@pytest.mark.asyncio
async def test_check_alarms_returns_fired(store, coffee):
    listener = HeartbeatListener(store, RecordingNotifier(), clock=lambda: NOW)

    fired = await listener.check_alarms()

    assert [f.alarm.name for f in fired] == ["Coffee"]


class TestPushEvent:
    def test_text(self):
        assert PushEvent(b"heartbeat").text() == "heartbeat"
        assert PushEvent(None).text() is None

    @pytest.mark.asyncio
    async def test_settle_reports_failures(self):
        async def boom():
            raise ValueError("nope")

        event = PushEvent(b"x")
        event.wait_until(boom())

        assert await event.settle() is False

    @pytest.mark.asyncio
    async def test_settle_without_extensions(self):
        assert await PushEvent(b"x").settle() is True


@pytest.mark.asyncio
async def test_dispatches_are_serialized():
    agent = _active_agent()
    running = []
    overlaps = []

    async def work():
        if running:
            overlaps.append(True)
        running.append(1)
        await asyncio.sleep(0.01)
        running.pop()

    agent.add_push_listener(lambda event: event.wait_until(work()))

    await asyncio.gather(*(agent.dispatch_push(b"heartbeat") for _ in range(3)))

    assert overlaps == []
