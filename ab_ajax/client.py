"""
HTTP 客户端核心模块

请求门面依赖的底层 HTTP 客户端，提供：
- request(config) 协程，按拦截器链执行请求
- 可配置的默认请求配置和请求/响应拦截器
- 基于取消令牌的协作式取消
- 自动重试和连接池管理
- 完善的错误处理

传输层使用 requests，阻塞调用由异步执行器放到线程池中执行
"""

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from requests.auth import AuthBase
from urllib3.util.retry import Retry

from ab_ajax.async_executor import BaseAsyncExecutor, ThreadPoolAsyncExecutor
from ab_ajax.cancel import CancelToken
from ab_ajax.constants import (
    DEFAULT_HEADERS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_POOL_CONFIG,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_CONFIG,
    DEFAULT_TIMEOUT,
    LOG_FORMAT,
    METHODS,
)
from ab_ajax.descriptor import merge_config
from ab_ajax.exceptions import (
    APIClientError,
    APIClientHTTPError,
    APIClientNetworkError,
    APIClientTimeoutError,
    APIClientValidationError,
)
from ab_ajax.interceptors import Interceptors
from ab_ajax.querystring import stringify

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


@dataclass
class Response:
    """
    请求响应对象

    属性:
        data: 响应数据，JSON 响应会被解析为 Python 对象
        status: 响应状态码（200）
        status_text: 响应状态消息（OK）
        headers: 响应头，名称不区分大小写
        config: 当次请求的配置对象
        request: 已发出的请求对象（requests.PreparedRequest）
    """

    data: Any
    status: int
    status_text: str
    headers: Any = field(default_factory=dict)
    config: dict[str, Any] = field(default_factory=dict)
    request: Any = None


def flatten_headers(headers: Any, method: str) -> dict[str, str]:
    """
    合并请求头：common 请求头 -> 当前请求方法的请求头 -> 其他字符串请求头

    其他请求方法的请求头以及非字符串的值会被丢弃
    """
    if not isinstance(headers, dict):
        return {}
    flattened: dict[str, str] = {}
    for group in (headers.get("common"), headers.get(method)):
        if isinstance(group, dict):
            flattened.update({k: v for k, v in group.items() if isinstance(v, str)})
    for name, value in headers.items():
        if name in METHODS or name == "common":
            continue
        if isinstance(value, str):
            flattened[name] = value
    return flattened


def _parse_data(response: requests.Response) -> Any:
    """尽量将响应内容解析为 JSON，解析失败时返回文本"""
    if not response.content:
        return ""
    try:
        return response.json()
    except ValueError:
        return response.text


async def _settle(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class HttpClient:
    """
    HTTP 客户端

    类属性:
        base_url: 根地址，相对地址的请求会拼接此地址
        default_timeout: 默认超时时间（毫秒），0 表示不超时
        default_retries: 默认重试次数
        default_headers: 默认请求头
        max_workers: 传输线程池大小
        retry_config: 重试策略配置字典
        pool_config: 连接池配置字典
        verify: SSL 证书验证开关
        authentication_class: 认证类或实例
        executor_class: 异步执行器类或实例
    """

    # ========== 基础配置 ==========
    base_url: str = ""

    verify: bool = True

    # ========== 超时和重试配置 ==========
    default_timeout: int = DEFAULT_TIMEOUT

    default_retries: int = DEFAULT_RETRIES

    # 配置项: total(重试次数), backoff_factor(退避因子), status_forcelist(重试状态码),
    #         allowed_methods(允许重试的方法), raise_on_status(是否抛出状态异常)
    retry_config: dict[str, Any] = DEFAULT_RETRY_CONFIG

    # 配置项: pool_connections(连接池大小), pool_maxsize(连接池最大连接数)
    pool_config: dict[str, Any] = DEFAULT_POOL_CONFIG

    # ========== 请求头和并发配置 ==========
    default_headers: dict[str, str] = DEFAULT_HEADERS

    max_workers: int = DEFAULT_MAX_WORKERS

    # ========== 可插拔组件配置 ==========
    authentication_class: type[AuthBase] | AuthBase | None = None

    executor_class: type[BaseAsyncExecutor] | BaseAsyncExecutor | None = ThreadPoolAsyncExecutor

    def __init__(
        self,
        defaults: dict[str, Any] | None = None,
        timeout: int | None = None,
        verify: bool | None = None,
        retries: int | None = None,
        max_workers: int | None = None,
        retry_config: dict[str, Any] | None = None,
        pool_config: dict[str, Any] | None = None,
        authentication: AuthBase | type[AuthBase] | None = None,
        executor: BaseAsyncExecutor | type[BaseAsyncExecutor] | None = None,
        **kwargs,
    ):
        """
        初始化 HTTP 客户端实例

        参数:
            defaults: 默认请求配置，每次请求都会与之合并（url、headers、timeout、base_url 等）
            timeout: 请求超时时间（毫秒）
            verify: SSL 证书验证开关
            retries: 失败重试次数
            max_workers: 传输线程池大小
            retry_config: 重试策略配置字典（覆盖类级别配置）
            pool_config: 连接池配置字典（覆盖类级别配置）
            authentication: 认证类或实例
            executor: 异步执行器类或实例
            **kwargs: 其他传递给 requests 的参数（proxies、cert 等）
        """
        self.timeout = timeout if timeout is not None else self.default_timeout
        self.retries = retries if retries is not None else self.default_retries
        self.verify = verify if verify is not None else self.verify
        if max_workers is not None:
            self.max_workers = max_workers

        self.retry_config = {**self.retry_config, **(retry_config or {})}
        if retries is not None:
            self.retry_config["total"] = retries
        self.pool_config = {**self.pool_config, **(pool_config or {})}

        self.auth_instance = self._resolve_authentication(authentication)
        self.executor_instance = self._resolve_executor(executor)

        # 合并顺序：类级别默认配置 -> 实例级别默认配置，后者覆盖前者
        base = {"timeout": self.timeout, "headers": self.default_headers}
        if self.base_url:
            base["base_url"] = self.base_url
        self.defaults = merge_config(base, defaults)

        if "verify" not in kwargs:
            kwargs["verify"] = self.verify
        self.default_request_kwargs = kwargs

        self.interceptors = Interceptors()
        self.session = self._create_session()

    def _resolve_authentication(self, authentication: AuthBase | type[AuthBase] | None) -> AuthBase | None:
        """
        解析认证配置，返回认证实例

        异常:
            APIClientValidationError: 当认证配置类型无效时抛出
        """
        source = authentication if authentication is not None else getattr(self, "authentication_class", None)
        if source is None:
            return None
        if isinstance(source, type) and issubclass(source, AuthBase):
            return source()
        if isinstance(source, AuthBase):
            return source
        raise APIClientValidationError("authentication must be an AuthBase subclass or instance")

    def _resolve_executor(self, executor: BaseAsyncExecutor | type[BaseAsyncExecutor] | None) -> BaseAsyncExecutor:
        """
        解析异步执行器配置，返回执行器实例

        异常:
            APIClientValidationError: 当执行器配置类型无效时抛出
        """
        source = executor if executor is not None else getattr(self, "executor_class", None)
        if source is None:
            return ThreadPoolAsyncExecutor(max_workers=self.max_workers)
        if isinstance(source, type) and issubclass(source, BaseAsyncExecutor):
            return source(max_workers=self.max_workers)
        if isinstance(source, BaseAsyncExecutor):
            return source
        raise APIClientValidationError("executor must be a BaseAsyncExecutor subclass or instance")

    def _create_session(self) -> requests.Session:
        """
        创建并配置 requests.Session 对象

        请求头不挂载到会话上，每次请求的请求头都由请求配置决定
        """
        session = requests.Session()
        if self.auth_instance:
            session.auth = self.auth_instance

        if self.retries > 0:
            retry_strategy = Retry(**self.retry_config)
            adapter = HTTPAdapter(max_retries=retry_strategy, **self.pool_config)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        return session

    async def request(self, config: dict[str, Any] | None = None) -> Response:
        """
        按拦截器链执行请求

        执行顺序:
            请求拦截器（后注册的先执行）-> 传输 -> 响应拦截器（按注册顺序执行）

        参数:
            config: 请求配置，会与 defaults 合并

        返回:
            Response 对象（或响应拦截器返回的值）
        """
        config = merge_config(self.defaults, config)
        config["method"] = str(config.get("method") or "get").lower()

        chain: list[tuple[Any, Any]] = [(self._dispatch, None)]
        for handler in self.interceptors.request:
            chain.insert(0, handler)
        for handler in self.interceptors.response:
            chain.append(handler)

        value: Any = config
        error: Exception | None = None
        for fulfilled, rejected in chain:
            if error is None:
                if fulfilled is None:
                    continue
                try:
                    value = await _settle(fulfilled(value))
                except Exception as e:
                    error = e
            elif rejected is not None:
                try:
                    value = await _settle(rejected(error))
                    error = None
                except Exception as e:
                    error = e

        if error is not None:
            raise error
        return value

    async def _dispatch(self, config: dict[str, Any]) -> Response:
        """
        将阻塞的传输调用提交到执行器，并与取消令牌竞争

        令牌先被触发时，丢弃传输结果并抛出令牌上的 Cancel 异常
        """
        token: CancelToken | None = config.get("cancel_token")
        if token is not None:
            token.throw_if_requested()

        request_id = f"REQ-{uuid.uuid4().hex[:6]}"
        future = self.executor_instance.submit(self._make_request, request_id, config)
        if token is None:
            return await future

        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({future, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if token.requested:
                future.cancel()

        if token.requested:
            logger.info(f"[{request_id}] Request canceled")
            raise token.reason
        return future.result()

    def _build_url(self, config: dict[str, Any]) -> str:
        url = config.get("url") or ""
        params = config.get("params")
        if not params:
            return url
        query = stringify(params)
        if not query:
            return url
        return f"{url}{'&' if '?' in url else '?'}{query}"

    def _make_request(self, request_id: str, config: dict[str, Any]) -> Response:
        """
        执行单个 HTTP 请求（在执行器线程中运行）

        执行步骤:
            1. 拼接未被路径模板消费的 params 作为查询参数
            2. 合并请求头，确定请求体的发送方式
            3. 执行 HTTP 请求，检查响应状态码
            4. 捕获并转换各类异常为自定义异常

        异常:
            APIClientTimeoutError: 请求超时
            APIClientHTTPError: HTTP 错误响应（4xx, 5xx）
            APIClientNetworkError: 网络连接错误
        """
        method = config["method"].upper()
        url = self._build_url(config)
        timeout_ms = config.get("timeout")
        timeout = timeout_ms / 1000 if timeout_ms else None

        request_kwargs = {
            **self.default_request_kwargs,
            "headers": flatten_headers(config.get("headers"), config["method"]),
        }
        data = config.get("data")
        if isinstance(data, (str, bytes)):
            request_kwargs["data"] = data
        elif data is not None:
            request_kwargs["json"] = data

        logger.info(f"[{request_id}] Starting {method} request to {url}")
        logger.debug(f"[{request_id}] Request kwargs: {request_kwargs}")

        response: requests.Response | None = None
        try:
            response = self.session.request(method=method, url=url, timeout=timeout, **request_kwargs)
            logger.info(f"[{request_id}] Received {response.status_code} response")
            logger.debug(f"[{request_id}] Response headers: {response.headers}")
            response.raise_for_status()
            return self._build_response(response, config)

        except requests.exceptions.RequestException as original_exception:
            if isinstance(original_exception, requests.exceptions.Timeout):
                converted_exception: APIClientError = APIClientTimeoutError(
                    f"timeout of {timeout_ms}ms exceeded", config=config
                )

            elif isinstance(original_exception, requests.exceptions.HTTPError) and response is not None:
                converted_exception = APIClientHTTPError(
                    f"Request failed with status code {response.status_code}",
                    config=config,
                    response=self._build_response(response, config),
                    request=response.request,
                )

            else:
                converted_exception = APIClientNetworkError(f"Request to {url} failed: {original_exception}", config)

            logger.error(f"[{request_id}] Request failed: {converted_exception}")
            raise converted_exception from original_exception

    @staticmethod
    def _build_response(response: requests.Response, config: dict[str, Any]) -> Response:
        return Response(
            data=_parse_data(response),
            status=response.status_code,
            status_text=response.reason or "",
            headers=response.headers,
            config=config,
            request=response.request,
        )

    def close(self):
        """关闭 Session 会话和执行器，释放连接池资源"""
        if self.session:
            self.session.close()
            logger.info("Session closed")
        self.executor_instance.shutdown(wait=False)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
