import unittest

from ab_ajax.exceptions import AccessorResolutionError, InvalidMethodError, InvalidUrlError
from ab_ajax.facade import RequestFacade, create_facade
from ab_ajax.plugin import AppContext, RequestPlugin
from ajax_fixtures import FakeTransport, make_response

FORM_HEADERS = {"headers": {"Content-Type": "application/x-www-form-urlencoded"}}


class MockPlugin:
    """把请求地址改写到本地 mock 服务器"""

    name = "mock"

    def __init__(self):
        self.seen = []

    def apply(self, config):
        self.seen.append(config["url"])
        return {**config, "url": config["url"].replace("http://api.test", "http://mock.local")}


class TestRequestFacade(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.facade = create_facade({"base_url": "http://api.test"})
        self.transport = FakeTransport(make_response(body={"ok": True}))
        self.facade.client.session.request = self.transport
        self.addCleanup(self.facade.close)

    async def test_post_json_body(self):
        await self.facade.post("/users", {"name": "a"})
        call = self.transport.last
        assert call["method"] == "POST"
        assert call["url"] == "http://api.test/users"
        assert call["json"] == {"name": "a"}
        assert call["headers"]["X-Requested-With"] == "XMLHttpRequest"
        assert call["headers"]["Cache-Control"] == "no-store"

    async def test_put_and_patch_signatures(self):
        await self.facade.put("/users/{id}", {"name": "b"}, {"params": {"id": 3}})
        assert self.transport.last["method"] == "PUT"
        assert self.transport.last["url"] == "http://api.test/users/3"
        await self.facade.patch("/users/3", "raw")
        assert self.transport.last["data"] == "raw"

    async def test_post_form_body(self):
        await self.facade.post("/login", {"u": "x", "p": "y"}, FORM_HEADERS)
        call = self.transport.last
        assert call["data"] == "u=x&p=y"
        assert call["headers"]["Content-Type"] == "application/x-www-form-urlencoded"

    async def test_bodyless_aliases(self):
        for alias in ("get", "delete", "options"):
            await getattr(self.facade, alias)("/items", {"params": {"page": 1}})
            assert self.transport.last["method"] == alias.upper()
            assert self.transport.last["url"] == "http://api.test/items?page=1"
            expected = None if alias == "options" else "XMLHttpRequest"
            assert self.transport.last["headers"].get("X-Requested-With") == expected

    async def test_head_has_no_ajax_header(self):
        await self.facade.head("/items")
        assert "X-Requested-With" not in self.transport.last["headers"]

    async def test_multiple_configs_merge(self):
        await self.facade("/a", {"params": {"x": 1}}, {"params": {"y": 2}})
        assert self.transport.last["url"] == "http://api.test/a?x=1&y=2"

    async def test_request_is_the_facade(self):
        await self.facade.request({"url": "/a"})
        assert self.transport.last["url"] == "http://api.test/a"

    async def test_method_token_overrides_method(self):
        await self.facade({"url": "delete /items/{id}", "method": "get", "params": {"id": 7}})
        assert self.transport.last["method"] == "DELETE"
        assert self.transport.last["url"] == "http://api.test/items/7"

    async def test_caller_params_not_consumed(self):
        params = {"id": 7, "q": "s"}
        await self.facade.get("/i/{id}", {"params": params})
        assert self.transport.last["url"] == "http://api.test/i/7?q=s"
        assert params == {"id": 7, "q": "s"}

    async def test_invalid_method_fails_before_transport(self):
        handle = self.facade({"url": "/x", "method": "trace"})
        with self.assertRaises(InvalidMethodError):
            await handle
        with self.assertRaises(AccessorResolutionError) as ctx:
            await handle.data
        assert str(ctx.exception) == "Request method is invalid."
        assert self.transport.calls == []

    async def test_empty_url_without_base(self):
        facade = create_facade()
        self.addCleanup(facade.close)
        with self.assertRaises(InvalidUrlError):
            await facade("")

    async def test_user_interceptor_runs_before_builtin(self):
        self.facade.interceptors.request.use(lambda config: {**config, "url": "delete /items/{id}"})
        await self.facade({"url": "/ignored", "params": {"id": 9}})
        assert self.transport.last["method"] == "DELETE"
        assert self.transport.last["url"] == "http://api.test/items/9"

    async def test_all_and_spread(self):
        results = await self.facade.all(self.facade.get("/a"), self.facade.get("/b"))
        assert [response.status for response in results] == [200, 200]
        assert self.facade.spread(lambda a, b: a.status + b.status)(results) == 400

    async def test_create_is_independent(self):
        other = self.facade.create({"base_url": "http://other.test", "timeout": 500})
        self.addCleanup(other.close)
        transport = FakeTransport(make_response(body={}))
        other.client.session.request = transport

        assert other is not self.facade
        assert other.defaults["timeout"] == 500
        assert self.facade.defaults["timeout"] == 10000
        assert other.interceptors is not self.facade.interceptors
        assert len(other.interceptors.request) == 1

        await other.get("/x/{id}", {"params": {"id": 1}})
        assert transport.last["url"] == "http://other.test/x/1"
        assert transport.last["timeout"] == 0.5
        assert self.transport.calls == []


class TestFacadeUtilities(unittest.TestCase):
    def test_stringify(self):
        assert RequestFacade.stringify({"a": 1, "b": [1]}) == "a=1&b%5B0%5D=1"

    def test_query_of_current_location(self):
        context = AppContext(location="http://app.test/page?tab=2&f[a]=1#top")
        facade = create_facade(context=context)
        self.addCleanup(facade.close)
        assert facade.query == {"tab": "2", "f": {"a": "1"}}

    def test_query_without_location(self):
        facade = create_facade()
        self.addCleanup(facade.close)
        assert facade.query == {}

    def test_cancel_helpers(self):
        assert RequestFacade.is_cancel(RequestFacade.Cancel("x"))
        assert not RequestFacade.is_cancel(ValueError("x"))

    def test_defaults_are_read_only(self):
        facade = create_facade()
        self.addCleanup(facade.close)
        with self.assertRaises(AttributeError):
            facade.defaults = {}
        with self.assertRaises(AttributeError):
            facade.interceptors = None


class TestRequestPlugin(unittest.IsolatedAsyncioTestCase):
    async def test_install_registers_facade(self):
        context = AppContext()
        facade = RequestPlugin().install(context, {"base_url": "http://api.test"}, [])
        self.addCleanup(facade.close)
        assert context.request is facade
        assert context.lookup("request") is facade
        assert len(facade.interceptors.request) == 1
        assert len(facade.interceptors.response) == 1

    async def test_mock_runs_after_builtin_normalization(self):
        mock = MockPlugin()
        context = AppContext()
        facade = RequestPlugin().install(context, {"base_url": "http://api.test"}, [None, object(), mock])
        self.addCleanup(facade.close)
        transport = FakeTransport(make_response(body={}))
        facade.client.session.request = transport

        await facade.get("/users/{id}", {"params": {"id": 1}})
        assert mock.seen == ["http://api.test/users/1"]
        assert transport.last["url"] == "http://mock.local/users/1"
        assert len(facade.interceptors.request) == 2

    async def test_mock_from_service_registry(self):
        mock = MockPlugin()
        context = AppContext()
        context.register("mock", mock)
        facade = RequestPlugin().install(context, {"base_url": "http://api.test"})
        self.addCleanup(facade.close)
        facade.client.session.request = FakeTransport(make_response(body={}))

        await facade.get("/ping")
        assert mock.seen == ["http://api.test/ping"]


if __name__ == "__main__":
    unittest.main()
