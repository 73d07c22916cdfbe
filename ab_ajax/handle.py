"""
请求句柄模块

对单次请求进行装饰：
- cancelable: 使请求可以通过 handle.cancel() 取消
- accessorize: 为请求句柄添加响应属性访问器，如 await handle.data

用法:

    handle = facade("/a/b/c")
    data = await handle.data
    status = await facade.get("/a/b/c").status

    handle.cancel("请求被取消了！")
    # 等待 handle 会抛出 CancellationError，异常信息为传入的参数内容

    handle.cancel()
    # 静默取消，handle 永远不会完成，也不会抛出异常
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

from ab_ajax.cancel import CancelToken, CancelTokenSource, is_cancel
from ab_ajax.constants import DEBUG_TOKEN, LOG_FORMAT
from ab_ajax.exceptions import AccessorResolutionError

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


class CancellableRequest:
    """
    可取消的请求

    包装执行请求的任务和取消令牌源，可以直接 await 得到响应对象
    cancel 方法不可被重新赋值
    """

    __slots__ = ("_task", "_source")

    def __init__(self, task: "asyncio.Task[Any]", source: CancelTokenSource):
        self._task = task
        self._source = source

    def __await__(self):
        return self._task.__await__()

    def cancel(self, reason: str | None = None) -> None:
        """
        取消请求，请求完成后调用无效果

        参数:
            reason: 取消原因，为 None 时静默取消（请求永远不会完成）；
                    否则请求以携带该原因的 CancellationError 失败
        """
        self._source.cancel(reason)

    def done(self) -> bool:
        return self._task.done()

    @property
    def task(self) -> "asyncio.Task[Any]":
        return self._task

    @property
    def source(self) -> CancelTokenSource:
        return self._source


def _project(source: Any, field: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(field)
    return getattr(source, field, None)


class ResponseAccessor:
    """
    响应属性访问器

    只有在被 await 时才会读取请求任务的结果，读取后不 await 不会产生未等待的协程；
    同一个访问器可以被多次 await
    """

    __slots__ = ("_handle", "_field")

    def __init__(self, handle: "AsyncRequestHandle", field: str):
        self._handle = handle
        self._field = field

    def __await__(self):
        return self._handle._resolve(self._field).__await__()

    def __repr__(self) -> str:
        return f"<ResponseAccessor {self._field}>"


class AsyncRequestHandle(CancellableRequest):
    """
    带响应属性访问器的请求句柄

    可以访问的响应属性有：
        - data         服务器的响应数据
        - status       服务器的响应状态码（200）
        - status_text  服务器的响应状态消息（OK）
        - headers      服务器的响应头
        - config       当次请求的配置对象
        - request      当次请求的请求对象
        - message      与当次请求相关的消息内容，一般是异常时的消息

    所有访问器共享同一个请求任务，不会重复发起请求；
    请求失败时，访问器从异常的响应对象中读取属性，并以 AccessorResolutionError 抛出
    """

    __slots__ = ()

    async def _resolve(self, field: str) -> Any:
        try:
            response = await self._task
        except Exception as error:
            source = getattr(error, "response", None)
            if source is None:
                source = {"status_text": "", "message": str(error)}
            raise AccessorResolutionError(field, _project(source, field), str(error)) from error
        return _project(response, field)

    @property
    def data(self):
        return ResponseAccessor(self, "data")

    @property
    def status(self):
        return ResponseAccessor(self, "status")

    @property
    def status_text(self):
        return ResponseAccessor(self, "status_text")

    @property
    def headers(self):
        return ResponseAccessor(self, "headers")

    @property
    def config(self):
        return ResponseAccessor(self, "config")

    @property
    def request(self):
        return ResponseAccessor(self, "request")

    @property
    def message(self):
        return ResponseAccessor(self, "message")


def _resolve_debug(caller: Any) -> Any:
    """获取与调用者关联的调试对象，调试对象必须持有有效的调试令牌"""
    debug = getattr(caller, "debug", None) if caller is not None else None
    if debug is None or getattr(debug, "token", None) is not DEBUG_TOKEN:
        return None
    return debug


def cancelable(client: Any, caller: Any = None) -> Callable[[dict[str, Any]], CancellableRequest]:
    """
    将单次请求转换为可取消的请求

    参数:
        client: 提供 request(config) 协程的 HTTP 客户端
        caller: 发起请求的调用者，存在有效的调试对象时优先用它输出取消日志

    返回:
        request(config) 函数，返回 CancellableRequest
    """
    debug = _resolve_debug(caller)

    def request(config: dict[str, Any]) -> CancellableRequest:
        source = CancelToken.source()
        config["cancel_token"] = source.token

        async def settle() -> Any:
            try:
                return await client.request(config)
            except Exception as error:
                if not is_cancel(error):
                    raise

                message = error.message
                text = message if isinstance(message, str) else f"Request canceled. {config.get('url')}"
                (debug or logger).warning(text)
                if message is not None:
                    raise

                # 静默取消：返回一个永远不会完成的等待
                await asyncio.get_running_loop().create_future()

        task = asyncio.get_running_loop().create_task(settle())
        return CancellableRequest(task, source)

    return request


def accessorize(
    request: Callable[[dict[str, Any]], CancellableRequest],
) -> Callable[[dict[str, Any]], AsyncRequestHandle]:
    """
    为请求添加响应属性访问器

    返回的函数仍然复用原请求的任务和取消令牌源，因此 cancel 方法保持有效
    """

    def accessor(config: dict[str, Any]) -> AsyncRequestHandle:
        pending = request(config)
        return AsyncRequestHandle(pending.task, pending.source)

    return accessor
