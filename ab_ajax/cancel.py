"""
请求取消令牌模块

令牌在请求之间传递，用于协作式地中止一个未完成的请求：
令牌被触发后，正在等待传输结果的请求会立即以 Cancel 异常结束，
已经在执行的传输线程不会被打断，其结果会被丢弃
"""

import asyncio
from typing import Any

from ab_ajax.exceptions import CancellationError


class Cancel(CancellationError):
    """请求被取消时抛出的异常，message 为取消原因（可能为 None）"""

    def __repr__(self) -> str:
        return f"Cancel({self.message!r})"


def is_cancel(error: Any) -> bool:
    """判断异常是否是请求取消异常"""
    return isinstance(error, Cancel)


class CancelToken:
    """
    取消令牌

    属性:
        reason: 触发后为 Cancel 实例，未触发时为 None
    """

    def __init__(self):
        self.reason: Cancel | None = None
        self._event = asyncio.Event()

    @property
    def requested(self) -> bool:
        return self.reason is not None

    def throw_if_requested(self) -> None:
        if self.reason is not None:
            raise self.reason

    async def wait(self) -> Cancel:
        """等待令牌被触发，返回 Cancel 实例"""
        await self._event.wait()
        return self.reason

    def _trigger(self, message: str | None) -> None:
        # 只有第一次触发有效
        if self.reason is not None:
            return
        self.reason = Cancel(message)
        self._event.set()

    @classmethod
    def source(cls) -> "CancelTokenSource":
        return CancelTokenSource(cls())


class CancelTokenSource:
    """令牌与触发方法的组合"""

    def __init__(self, token: CancelToken | None = None):
        self.token = token or CancelToken()

    def cancel(self, message: str | None = None) -> None:
        self.token._trigger(message)
