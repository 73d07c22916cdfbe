"""
请求门面异常模块

定义所有请求相关的异常类，提供统一的错误处理机制
"""

from typing import Any


class APIClientError(Exception):
    """
    请求客户端异常基类

    所有自定义异常的基类，用于统一捕获和处理请求相关错误
    """


class APIClientValidationError(APIClientError):
    """
    输入验证异常

    当请求配置（地址、方法等）验证失败时抛出此异常，此时请求尚未发出
    """


class InvalidUrlError(APIClientValidationError):
    """解析后的请求地址为空"""


class InvalidMethodError(APIClientValidationError):
    """解析后的请求方法不在允许的请求方法列表中"""


class CancellationError(APIClientError):
    """
    请求取消异常

    参数:
        message: 取消原因，静默取消时为 None
    """

    def __init__(self, message: str | None = None):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return "" if self.message is None else str(self.message)


class APIClientRequestError(APIClientError):
    """
    网络或服务端异常基类

    参数:
        message: 错误描述信息
        config: 当次请求的配置对象
        response: 响应对象（服务端有响应时）
        request: 已发出的请求对象（可选）

    属性:
        response: 保存响应对象，响应访问器会优先从它读取属性
        status_code: HTTP 状态码，无响应时为 None
    """

    def __init__(
        self,
        message: str,
        config: dict[str, Any] | None = None,
        response: Any = None,
        request: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.config = config
        self.response = response
        self.request = request
        self.status_code = response.status if response is not None else None


class APIClientHTTPError(APIClientRequestError):
    """服务器返回 2xx 以外的状态码"""


class APIClientNetworkError(APIClientRequestError):
    """网络连接失败、DNS 解析失败等网络层面问题"""


class APIClientTimeoutError(APIClientRequestError):
    """请求执行时间超过设定的超时时间"""


class AccessorResolutionError(APIClientError):
    """
    响应访问器解析异常

    请求失败时，访问器会将从异常响应中读取到的属性值以此异常抛出

    属性:
        field: 访问器名称
        value: 读取到的属性值
    """

    def __init__(self, field: str, value: Any, message: str = ""):
        if isinstance(value, str) and value:
            message = value
        super().__init__(message)
        self.field = field
        self.value = value
