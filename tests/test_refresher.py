import asyncio

import pytest

from quotabar.errors import TransportError
from quotabar.refresher import Refresher


class ScriptedEngine:
    """
    A mock engine returning (or raising) scripted results in order.
    """

    def __init__(self, results: "list[object]") -> "None":
        self._results = list(results)
        self.calls = 0

    async def refresh(self) -> "object":
        self.calls += 1
        result = self._results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class TestRefresher:
    @pytest.mark.asyncio
    async def test_run_once_delivers_payload(self) -> "None":
        seen: "list[object]" = []
        refresher = Refresher(ScriptedEngine(["payload"]), seen.append)

        await refresher.run_once()

        assert seen == ["payload"]

    @pytest.mark.asyncio
    async def test_async_callback_is_awaited(self) -> "None":
        seen: "list[object]" = []

        async def on_payload(payload: "object") -> "None":
            seen.append(payload)

        await Refresher(ScriptedEngine(["p"]), on_payload).run_once()
        assert seen == ["p"]

    @pytest.mark.asyncio
    async def test_failure_reported_and_loop_continues(self) -> "None":
        seen: "list[object]" = []
        errors: "list[Exception]" = []
        engine = ScriptedEngine([TransportError("down"), "second"])
        refresher = Refresher(engine, seen.append, 0.01, on_error=errors.append)

        def _stop_after_payload(payload: "object") -> "None":
            seen.append(payload)
            refresher.stop()

        refresher._on_payload = _stop_after_payload
        await asyncio.wait_for(refresher.run(), timeout=5)

        assert engine.calls == 2
        assert seen == ["second"]
        assert len(errors) == 1
        assert str(errors[0]) == "down"

    @pytest.mark.asyncio
    async def test_stop_before_run_exits_immediately(self) -> "None":
        engine = ScriptedEngine([])
        refresher = Refresher(engine, lambda payload: None)
        refresher.stop()

        await refresher.run()

        assert engine.calls == 0
