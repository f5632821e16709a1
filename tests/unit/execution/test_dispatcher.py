"""
Unit tests for Dispatcher.
"""
import asyncio

import pytest

from routercm.execution.dispatcher import Dispatcher
from routercm.execution.outcome import Err, Ok, TimedOut
from routercm.utils.exceptions import DeviceRequestError, NoTargetsError

from conftest import make_node


class TestDispatcher:
    """Test suite for Dispatcher."""

    @pytest.fixture
    def dispatcher(self):
        return Dispatcher(default_timeout=0.2)

    def test_initialization(self):
        dispatcher = Dispatcher(default_timeout=7)

        assert dispatcher.default_timeout == 7
        assert dispatcher.logger is not None

    @pytest.mark.asyncio
    async def test_empty_node_list_raises_no_targets(self, dispatcher):
        called = []

        async def operation(node):
            called.append(node)

        with pytest.raises(NoTargetsError):
            await dispatcher.dispatch([], operation)

        assert called == []

    @pytest.mark.asyncio
    async def test_one_result_per_node(self, dispatcher, nodes):
        async def operation(node):
            return node.name

        results = await dispatcher.dispatch(nodes, operation)

        assert len(results) == len(nodes)
        assert {r.node.id for r in results} == {n.id for n in nodes}
        for result in results:
            assert result.outcome == Ok(result.node.name)

    @pytest.mark.asyncio
    async def test_exception_becomes_err_with_reason_unchanged(self, dispatcher, nodes):
        error = DeviceRequestError("chr-2", 400, "Bad Request", "failure: already have such entry")

        async def operation(node):
            if node.id == 2:
                raise error
            return {}

        results = await dispatcher.dispatch(nodes, operation)
        by_id = {r.node.id: r.outcome for r in results}

        assert by_id[2] == Err(error)
        assert by_id[2].reason is error
        assert isinstance(by_id[1], Ok)
        assert isinstance(by_id[3], Ok)

    @pytest.mark.asyncio
    async def test_returned_outcomes_are_kept(self, dispatcher, nodes):
        async def operation(node):
            if node.id == 1:
                return Err("device said no")
            return Ok("explicit")

        results = await dispatcher.dispatch(nodes, operation)
        by_id = {r.node.id: r.outcome for r in results}

        assert by_id[1] == Err("device said no")
        assert by_id[2] == Ok("explicit")

    @pytest.mark.asyncio
    async def test_slow_node_times_out(self, dispatcher, nodes):
        async def operation(node):
            if node.id == 3:
                await asyncio.sleep(5)
            return "done"

        results = await dispatcher.dispatch(nodes, operation, timeout=0.1)
        by_id = {r.node.id: r.outcome for r in results}

        assert len(results) == 3
        assert by_id[3] == TimedOut(0.1)
        assert by_id[1] == Ok("done")
        assert by_id[2] == Ok("done")
        # Timeouts come after completed units
        assert results[-1].node.id == 3

    @pytest.mark.asyncio
    async def test_slow_node_does_not_delay_others(self, dispatcher, nodes):
        loop = asyncio.get_running_loop()
        started = loop.time()

        async def operation(node):
            if node.id == 1:
                await asyncio.sleep(5)
            return node.id

        results = await dispatcher.dispatch(nodes, operation, timeout=0.2)
        elapsed = loop.time() - started

        assert elapsed < 1.0
        assert sum(1 for r in results if r.ok) == 2

    @pytest.mark.asyncio
    async def test_timed_out_unit_is_cancelled(self, dispatcher):
        cancelled = asyncio.Event()

        async def operation(node):
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        await dispatcher.dispatch([make_node(1)], operation, timeout=0.05)
        await asyncio.wait_for(cancelled.wait(), timeout=1)

        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_all_nodes_time_out(self, dispatcher, nodes):
        async def operation(node):
            await asyncio.sleep(5)

        results = await dispatcher.dispatch(nodes, operation, timeout=0.05)

        assert len(results) == 3
        assert all(isinstance(r.outcome, TimedOut) for r in results)

    @pytest.mark.asyncio
    async def test_results_in_completion_order(self, dispatcher, nodes):
        delays = {1: 0.06, 2: 0.0, 3: 0.03}

        async def operation(node):
            await asyncio.sleep(delays[node.id])
            return node.id

        results = await dispatcher.dispatch(nodes, operation, timeout=1)

        assert [r.node.id for r in results] == [2, 3, 1]

    @pytest.mark.asyncio
    async def test_default_timeout_used(self, nodes):
        dispatcher = Dispatcher(default_timeout=0.05)

        async def operation(node):
            await asyncio.sleep(5)

        results = await dispatcher.dispatch(nodes[:1], operation)

        assert results[0].outcome == TimedOut(0.05)

    @pytest.mark.asyncio
    async def test_caller_cancellation_cancels_units(self, dispatcher, nodes):
        cancelled = []

        async def operation(node):
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append(node.id)
                raise

        task = asyncio.create_task(dispatcher.dispatch(nodes, operation, timeout=10))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.05)

        assert sorted(cancelled) == [1, 2, 3]
