import asyncio
import datetime as dt
import json

from pixeloffice.core.rule_engine import ActivityState
from pixeloffice.core.state_store import StateStore, UnitSnapshot
from pixeloffice.ui.hub import BroadcastHub, build_update_message


class _Socket:
    def __init__(self) -> None:
        self.messages: list[dict] = []
        self.closed = False

    async def send_text(self, data: str) -> None:
        self.messages.append(json.loads(data))

    async def close(self) -> None:
        self.closed = True


class _BrokenSocket(_Socket):
    def __init__(self, fail_after: int = 0) -> None:
        super().__init__()
        self._fail_after = fail_after

    async def send_text(self, data: str) -> None:
        if len(self.messages) >= self._fail_after:
            raise ConnectionResetError("connection lost")
        await super().send_text(data)


def _crunch(unit_id: str) -> UnitSnapshot:
    return UnitSnapshot(unit_id=unit_id, state=ActivityState.CRUNCH, population=8)


def test_build_update_message_shape() -> None:
    now = dt.datetime(2024, 1, 1, 8, 30, tzinfo=dt.timezone.utc)
    message = build_update_message([_crunch("Eng")], now=now)

    assert message["type"] == "update"
    assert message["timestamp"] == "2024-01-01T08:30:00+00:00"
    assert message["departments"][0]["space"] == "Eng"
    assert message["departments"][0]["characterCount"] == 8


def test_broadcast_reaches_all_subscribers_with_full_state() -> None:
    async def scenario() -> None:
        store = StateStore(["Eng", "QA"])
        hub = BroadcastHub(store)
        first, second = _Socket(), _Socket()
        await hub.subscribe(first)
        await hub.subscribe(second)

        store.apply_refresh([_crunch("Eng")])
        delivered = await hub.broadcast()

        assert delivered == 2
        for socket in (first, second):
            assert len(socket.messages) == 2
            latest = {d["space"]: d["state"] for d in socket.messages[-1]["departments"]}
            assert latest == {"Eng": "crunch", "QA": "idle"}

    asyncio.run(scenario())


def test_failed_send_drops_only_that_subscriber() -> None:
    async def scenario() -> None:
        hub = BroadcastHub(StateStore(["Eng"]))
        healthy, broken = _Socket(), _BrokenSocket(fail_after=1)
        await hub.subscribe(healthy)
        await hub.subscribe(broken)
        assert hub.subscriber_count == 2

        delivered = await hub.broadcast()

        assert delivered == 1
        assert hub.subscriber_count == 1
        assert len(healthy.messages) == 2

        assert await hub.broadcast() == 1
        assert len(broken.messages) == 1

    asyncio.run(scenario())


def test_subscriber_failing_initial_send_is_not_registered() -> None:
    async def scenario() -> None:
        hub = BroadcastHub(StateStore(["Eng"]))

        assert await hub.subscribe(_BrokenSocket()) is False
        assert hub.subscriber_count == 0

    asyncio.run(scenario())


def test_close_disconnects_everyone() -> None:
    async def scenario() -> None:
        hub = BroadcastHub(StateStore(["Eng"]))
        socket = _Socket()
        await hub.subscribe(socket)

        await hub.close()

        assert socket.closed
        assert hub.subscriber_count == 0
        assert await hub.broadcast() == 0

    asyncio.run(scenario())


class _StalledSocket(_Socket):
    """首条消息正常送达，之后的发送永远挂起。"""

    async def send_text(self, data: str) -> None:
        if self.messages:
            await asyncio.Event().wait()
        await super().send_text(data)


def test_stalled_subscriber_times_out_without_blocking_others() -> None:
    async def scenario() -> None:
        store = StateStore(["Eng"])
        hub = BroadcastHub(store, send_timeout=0.05)
        healthy, stalled = _Socket(), _StalledSocket()
        await hub.subscribe(stalled)
        await hub.subscribe(healthy)

        store.apply_refresh([_crunch("Eng")])
        delivered = await asyncio.wait_for(hub.broadcast(), timeout=2)

        assert delivered == 1
        assert hub.subscriber_count == 1
        assert len(healthy.messages) == 2
        assert len(stalled.messages) == 1

        # 锁已释放，后续订阅与广播照常进行
        late = _Socket()
        assert await asyncio.wait_for(hub.subscribe(late), timeout=2)
        assert await asyncio.wait_for(hub.broadcast(), timeout=2) == 2

    asyncio.run(scenario())
