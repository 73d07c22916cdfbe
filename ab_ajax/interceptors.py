"""
请求拦截器模块

提供拦截器注册表和内置的请求/响应拦截处理

拦截器执行顺序:
    - 请求拦截器：后注册的先执行（栈的顺序）
    - 响应拦截器：按注册顺序执行
"""

import logging
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from ab_ajax.constants import (
    AJAX_HEADER_NAME,
    AJAX_HEADER_VALUE,
    BODY_METHODS,
    FORM_URLENCODED,
    LOG_FORMAT,
    METHODS,
    NON_AJAX_METHODS,
)
from ab_ajax.exceptions import InvalidMethodError
from ab_ajax.querystring import stringify
from ab_ajax.resolver import url_filter

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class InterceptorManager:
    """
    拦截器注册表

    每个拦截器由一对处理函数组成：
        fulfilled: 处理上一步的结果（请求配置或响应对象）
        rejected: 处理上一步抛出的异常，返回值会使流程恢复正常，抛出异常则继续传递
    """

    def __init__(self):
        self.handlers: list[tuple[Handler | None, Handler | None] | None] = []

    def use(self, fulfilled: Handler | None = None, rejected: Handler | None = None) -> int:
        """注册拦截器，返回可用于 eject 的拦截器编号"""
        self.handlers.append((fulfilled, rejected))
        return len(self.handlers) - 1

    def eject(self, handler_id: int) -> None:
        """移除拦截器，编号保持不变"""
        if 0 <= handler_id < len(self.handlers):
            self.handlers[handler_id] = None

    def clear(self) -> None:
        self.handlers = []

    def __iter__(self) -> Iterator[tuple[Handler | None, Handler | None]]:
        return (handler for handler in self.handlers if handler is not None)

    def __len__(self) -> int:
        return sum(1 for _ in self)


class Interceptors:
    """请求与响应两组拦截器"""

    def __init__(self):
        self.request = InterceptorManager()
        self.response = InterceptorManager()


def _has_header(headers: Mapping[str, Any], name: str) -> bool:
    lower_name = name.lower()
    return any(key.lower() == lower_name and isinstance(value, str) for key, value in headers.items())


def before_request_send(config: dict[str, Any]) -> dict[str, Any]:
    """
    在请求被发送前进行拦截处理

    执行步骤:
        1. 拷贝配置对象和 params（地址解析时会删除已匹配的参数）
        2. 解析扩展格式的请求地址，检查请求方法是否有效
        3. 为 ajax 请求添加 X-Requested-With 请求头
        4. 规范化 Content-Type，表单编码类型的请求将字典数据编码为查询字符串

    异常:
        InvalidUrlError: 请求地址为空
        InvalidMethodError: 请求方法无效
    """
    config = dict(config)
    if config.get("params"):
        config["params"] = dict(config["params"])

    url_filter(config)
    method = config.get("method")
    data = config.get("data")

    if method not in METHODS:
        raise InvalidMethodError("Request method is invalid.")

    headers = config["headers"] = dict(config.get("headers") or {})
    headers[method] = dict(headers.get(method) or {})

    # express 服务器或一些其他应用服务器会根据该请求头来判断当前请求是不是一个 ajax 请求
    if method not in NON_AJAX_METHODS and not _has_header(headers, AJAX_HEADER_NAME):
        headers[method] = {AJAX_HEADER_NAME: AJAX_HEADER_VALUE, **headers[method]}

    if method in BODY_METHODS:
        for name in list(headers):
            if name.lower() != "content-type":
                continue
            content_type = headers.pop(name)
            if isinstance(content_type, str):
                headers["Content-Type"] = content_type.strip()
            break

        content_type = headers.get("Content-Type")
        if content_type and content_type.startswith(FORM_URLENCODED) and isinstance(data, Mapping):
            config["data"] = stringify(data)
            logger.debug(f"Encoded form data for {config['url']}")

    return config


def after_response_data(response: Any) -> Any:
    """在请求得到响应时进行拦截处理"""
    return response


def handle_request_error(error: Exception) -> Any:
    raise error


def handle_response_error(error: Exception) -> Any:
    raise error
