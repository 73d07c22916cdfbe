import asyncio
import threading
import unittest
from types import SimpleNamespace

from ab_ajax.exceptions import AccessorResolutionError, APIClientHTTPError, CancellationError
from ab_ajax.facade import create_facade
from ab_ajax.handle import AsyncRequestHandle, accessorize, cancelable
from ab_ajax.plugin import DebugSink
from ajax_fixtures import FakeTransport, make_response, wait_entered


class StubClient:
    """遵循取消令牌约定的客户端替身，不经过线程池"""

    def __init__(self, result=None, error=None, block=False):
        self.result = result
        self.error = error
        self.block = block
        self.calls = []

    async def request(self, config):
        self.calls.append(config)
        if self.block:
            token = config["cancel_token"]
            raise await token.wait()
        if self.error is not None:
            raise self.error
        return self.result


class TestDecorators(unittest.IsolatedAsyncioTestCase):
    async def test_cancelable_attaches_token(self):
        client = StubClient(result={"data": 1})
        config = {"url": "/a"}
        pending = cancelable(client)(config)
        assert await pending == {"data": 1}
        assert client.calls[0]["cancel_token"] is pending.source.token

    async def test_non_cancel_errors_reraised_unchanged(self):
        error = KeyError("x")
        pending = cancelable(StubClient(error=error))({"url": "/a"})
        with self.assertRaises(KeyError) as ctx:
            await pending
        assert ctx.exception is error

    async def test_noisy_cancel(self):
        pending = cancelable(StubClient(block=True))({"url": "/a"})
        await asyncio.sleep(0)
        with self.assertLogs("ab_ajax.handle", level="WARNING") as logs:
            pending.cancel("stopped")
            with self.assertRaises(CancellationError) as ctx:
                await pending
        assert str(ctx.exception) == "stopped"
        assert logs.output[0].endswith("stopped")

    async def test_silent_cancel(self):
        pending = cancelable(StubClient(block=True))({"url": "/a"})
        await asyncio.sleep(0)
        with self.assertLogs("ab_ajax.handle", level="WARNING") as logs:
            pending.cancel()
            done, _ = await asyncio.wait({pending.task}, timeout=0.1)
        assert not done
        assert not pending.done()
        assert logs.output[0].endswith("Request canceled. /a")

    async def test_accessorize_keeps_cancel(self):
        client = StubClient(block=True)
        handle = accessorize(cancelable(client))({"url": "/a"})
        assert isinstance(handle, AsyncRequestHandle)
        handle.cancel("bye")
        with self.assertRaises(AccessorResolutionError) as ctx:
            await handle.status
        assert str(ctx.exception) == "bye"


class TestAsyncRequestHandle(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.facade = create_facade({"base_url": "http://api.test"})
        self.transport = FakeTransport(make_response(body={"id": 1}, headers={"Content-Type": "application/json"}))
        self.facade.client.session.request = self.transport
        self.gate = threading.Event()
        self.addCleanup(self.facade.close)
        self.addCleanup(self.gate.set)

    async def test_accessors_on_success(self):
        handle = self.facade.get("/users/{id}", {"params": {"id": 1}})
        assert await handle.data == {"id": 1}
        assert await handle.status == 200
        assert await handle.status_text == "OK"
        assert (await handle.headers)["content-type"] == "application/json"
        assert (await handle.config)["url"] == "http://api.test/users/1"
        assert (await handle.request).url == "http://api.test/"
        assert await handle.message is None

    async def test_accessor_read_without_await(self):
        """只读取访问器而不 await 时不会产生未等待的协程"""
        handle = self.facade.get("/users")
        assert not asyncio.iscoroutine(handle.data)
        accessor = handle.status
        assert await accessor == 200
        assert await accessor == 200
        await handle

    async def test_accessors_share_one_request(self):
        handle = self.facade("/users")
        values = await asyncio.gather(handle.data, handle.status, handle.status_text, handle.headers, handle)
        assert values[0] == {"id": 1}
        assert values[1] == 200
        assert len(self.transport.calls) == 1

    async def test_accessors_raise_error_response_fields(self):
        self.transport.response = make_response(status=404, body={"error": "missing"}, reason="Not Found")
        handle = self.facade.get("/users/2")
        with self.assertRaises(AccessorResolutionError) as ctx:
            await handle.data
        assert ctx.exception.value == {"error": "missing"}
        assert isinstance(ctx.exception.__cause__, APIClientHTTPError)
        with self.assertRaises(AccessorResolutionError) as ctx:
            await handle.status
        assert ctx.exception.value == 404
        with self.assertRaises(AccessorResolutionError) as ctx:
            await handle.status_text
        assert str(ctx.exception) == "Not Found"
        with self.assertRaises(APIClientHTTPError):
            await handle

    async def test_accessors_without_error_response(self):
        import requests

        self.transport.error = requests.exceptions.ConnectionError("refused")
        handle = self.facade.get("/users")
        with self.assertRaises(AccessorResolutionError) as ctx:
            await handle.data
        assert ctx.exception.value is None
        assert "refused" in str(ctx.exception)
        with self.assertRaises(AccessorResolutionError) as ctx:
            await handle.message
        assert "refused" in ctx.exception.value
        with self.assertRaises(AccessorResolutionError) as ctx:
            await handle.status_text
        assert ctx.exception.value == ""

    async def test_noisy_cancel_in_flight(self):
        self.transport.gate = self.gate
        handle = self.facade.get("/slow")
        await wait_entered(self.transport)
        handle.cancel("stopped")
        with self.assertRaises(CancellationError) as ctx:
            await handle
        assert str(ctx.exception) == "stopped"
        for accessor in ("data", "status", "headers"):
            with self.assertRaises(AccessorResolutionError) as ctx:
                await getattr(handle, accessor)
            assert str(ctx.exception) == "stopped"
        with self.assertRaises(AccessorResolutionError) as ctx:
            await handle.message
        assert ctx.exception.value == "stopped"

    async def test_cancel_before_dispatch(self):
        handle = self.facade.get("/users")
        handle.cancel("early")
        with self.assertRaises(CancellationError):
            await handle
        assert self.transport.calls == []

    async def test_silent_cancel_stays_pending(self):
        self.transport.gate = self.gate
        with self.assertLogs("ab_ajax.handle", level="WARNING") as logs:
            handle = self.facade.get("/slow")
            await wait_entered(self.transport)
            handle.cancel()
            self.gate.set()
            done, _ = await asyncio.wait({handle.task}, timeout=0.2)
        assert not done
        assert not handle.done()
        assert "Request canceled. /slow" in logs.output[0]

    async def test_cancel_after_settlement_is_noop(self):
        handle = self.facade.get("/users")
        response = await handle
        handle.cancel("late")
        assert await handle is response
        assert await handle.data == {"id": 1}

    async def test_handle_is_read_only(self):
        handle = self.facade.get("/users")
        with self.assertRaises(AttributeError):
            handle.cancel = lambda reason=None: None
        with self.assertRaises(AttributeError):
            handle.data = 1
        await handle

    async def test_debug_sink_of_caller(self):
        self.transport.gate = self.gate
        caller = SimpleNamespace(debug=DebugSink("tests.ajax.debug"))
        handle = self.facade.bind(caller).get("/slow")
        await wait_entered(self.transport)
        with self.assertLogs("tests.ajax.debug", level="WARNING") as logs:
            handle.cancel("bye")
            with self.assertRaises(CancellationError):
                await handle
        assert logs.output[0].endswith("bye")

    async def test_debug_sink_requires_token(self):
        caller = SimpleNamespace(debug=SimpleNamespace(token=object(), warning=print))
        handle = self.facade.bind(caller).get("/users")
        with self.assertLogs("ab_ajax.handle", level="WARNING"):
            handle.cancel("bye")
            with self.assertRaises(CancellationError):
                await handle


if __name__ == "__main__":
    unittest.main()
