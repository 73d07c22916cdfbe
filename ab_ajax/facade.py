"""
请求门面模块

对 HttpClient 进行代理包装，提供增强型的请求对象：

    facade = create_facade({"base_url": "https://api.example.com"})

    handle = facade("GET /users/{id}", {"params": {"id": 1, "tab": "base"}})
    user = await handle.data

    await facade.post("/users", {"name": "demo"}, {"headers": {"Content-Type": FORM_URLENCODED}})

门面的调用必须发生在运行中的事件循环里，请求在调用时即开始执行
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from urllib3.util import parse_url

from ab_ajax.cancel import Cancel, CancelToken, is_cancel
from ab_ajax.client import HttpClient
from ab_ajax.constants import LOG_FORMAT
from ab_ajax.descriptor import build_config, method_config_parser
from ab_ajax.handle import AsyncRequestHandle, accessorize, cancelable
from ab_ajax.interceptors import (
    Interceptors,
    after_response_data,
    before_request_send,
    handle_request_error,
    handle_response_error,
)
from ab_ajax.querystring import parse, stringify

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


class RequestFacade:
    """
    请求门面

    - facade(url | config, ...)：多个配置参数从左到右合并，字符串参数作为 url
    - get/delete/head/options(url, config=None)
    - post/put/patch(url, data=None, config=None)

    每次调用返回 AsyncRequestHandle，可以 await、cancel，或通过访问器读取响应属性

    参数:
        client: 底层 HTTP 客户端
        caller: 调用者，用于关联调试对象输出取消日志
        context: 进程级上下文对象，提供当前页面地址等信息
    """

    Cancel = Cancel
    CancelToken = CancelToken
    is_cancel = staticmethod(is_cancel)

    # 工具方法，可将参数转换为 url-form-encoded 格式
    stringify = staticmethod(stringify)
    parse = staticmethod(parse)

    def __init__(self, client: HttpClient, caller: Any = None, context: Any = None):
        self._client = client
        self._caller = caller
        self._context = context

    def __call__(self, *args: Any) -> AsyncRequestHandle:
        config = build_config(*args)
        # accessorize 进行取值器装饰，cancelable 使请求可以通过 handle.cancel 取消
        return accessorize(cancelable(self._client, self._caller))(config)

    def request(self, *args: Any) -> AsyncRequestHandle:
        return self(*args)

    def _alias(self, method: str, *args: Any) -> AsyncRequestHandle:
        return self(method_config_parser(method)(*args))

    def get(self, url: str, config: dict[str, Any] | None = None) -> AsyncRequestHandle:
        return self._alias("get", url, config)

    def delete(self, url: str, config: dict[str, Any] | None = None) -> AsyncRequestHandle:
        return self._alias("delete", url, config)

    def head(self, url: str, config: dict[str, Any] | None = None) -> AsyncRequestHandle:
        return self._alias("head", url, config)

    def options(self, url: str, config: dict[str, Any] | None = None) -> AsyncRequestHandle:
        return self._alias("options", url, config)

    def post(self, url: str, data: Any = None, config: dict[str, Any] | None = None) -> AsyncRequestHandle:
        return self._alias("post", url, data, config)

    def put(self, url: str, data: Any = None, config: dict[str, Any] | None = None) -> AsyncRequestHandle:
        return self._alias("put", url, data, config)

    def patch(self, url: str, data: Any = None, config: dict[str, Any] | None = None) -> AsyncRequestHandle:
        return self._alias("patch", url, data, config)

    @property
    def defaults(self) -> dict[str, Any]:
        return self._client.defaults

    @property
    def interceptors(self) -> Interceptors:
        return self._client.interceptors

    @property
    def client(self) -> HttpClient:
        return self._client

    @property
    def query(self) -> dict[str, Any]:
        """当前页面地址的查询参数（来自上下文的 location）"""
        location = getattr(self._context, "location", None) or ""
        return parse(parse_url(location).query or "", ignore_query_prefix=True)

    def bind(self, caller: Any) -> "RequestFacade":
        """返回与调用者关联的门面，共享同一个客户端"""
        return RequestFacade(self._client, caller, self._context)

    def create(self, defaults: dict[str, Any] | None = None) -> "RequestFacade":
        """创建一个独立配置的门面实例，同样带有内置的拦截处理"""
        return create_facade(defaults, context=self._context)

    @staticmethod
    def all(*handles: Any) -> "asyncio.Future[list[Any]]":
        return asyncio.gather(*handles)

    @staticmethod
    def spread(callback: Callable[..., Any]) -> Callable[[list[Any]], Any]:
        def wrap(values: list[Any]) -> Any:
            return callback(*values)

        return wrap

    def close(self) -> None:
        self._client.close()


def install_interceptors(client: HttpClient, mock: Any = None) -> None:
    """
    为客户端注册内置拦截器

    请求拦截器的执行顺序与添加顺序相反，mock 拦截器先于内置拦截器注册，
    也即 mock 拦截器会在内置拦截器之后执行，拿到的是已经解析完成的请求配置
    """
    if mock is not None:
        client.interceptors.request.use(mock.apply)

    client.interceptors.request.use(before_request_send, handle_request_error)

    # 响应拦截器执行顺序与添加顺序相同
    client.interceptors.response.use(after_response_data, handle_response_error)


def create_facade(
    defaults: dict[str, Any] | None = None,
    mock: Any = None,
    context: Any = None,
    client_class: type[HttpClient] = HttpClient,
    **client_kwargs: Any,
) -> RequestFacade:
    """
    创建请求门面

    参数:
        defaults: 默认请求配置，与内置默认配置合并
        mock: mock 插件，需提供 apply(config) 方法
        context: 进程级上下文对象
        client_class: 底层 HTTP 客户端类
        **client_kwargs: 传递给客户端构造函数的额外参数
    """
    # 内置默认配置（超时 10000 毫秒与禁用缓存的请求头）来自客户端的类属性
    client = client_class(defaults=defaults, **client_kwargs)
    install_interceptors(client, mock)
    logger.debug(f"Request facade created with defaults: {client.defaults}")
    return RequestFacade(client, context=context)
