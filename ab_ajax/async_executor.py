"""
异步执行器模块

requests 的传输过程是阻塞的，执行器负责将其放到事件循环之外执行，
使事件循环中可以同时存在多个未完成的请求
当前支持线程池执行方式
"""

import asyncio
import functools
import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from ab_ajax.constants import LOG_FORMAT

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


class BaseAsyncExecutor:
    """
    异步执行器基类

    定义将阻塞调用转换为可等待对象的统一接口，子类需实现具体的执行策略

    参数:
        max_workers: 最大工作线程数
        **kwargs: 其他传递给具体执行器的参数
    """

    def __init__(self, max_workers: int | None = None, **kwargs):
        self.max_workers = max_workers
        self.executor_kwargs = kwargs

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> "asyncio.Future[Any]":
        """
        提交一个阻塞调用

        返回:
            绑定到当前事件循环的 Future，调用完成后得到其返回值或异常
        """
        raise NotImplementedError("Subclasses must implement the 'submit' method.")

    def shutdown(self, wait: bool = True) -> None:
        """释放执行器持有的资源"""


class ThreadPoolAsyncExecutor(BaseAsyncExecutor):
    """
    线程池异步执行器

    使用 ThreadPoolExecutor 执行阻塞的传输调用，线程池在第一次提交时创建
    适用于 I/O 密集型任务

    注意:
        取消等待中的 Future 不会中断已经在线程中执行的调用，只会丢弃其结果
    """

    def __init__(self, max_workers: int | None = None, **kwargs):
        super().__init__(max_workers=max_workers, **kwargs)
        self._pool: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()

    def _get_pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(max_workers=self.max_workers, **self.executor_kwargs)
                logger.debug(f"Thread pool created with {self.max_workers} workers")
            return self._pool

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> "asyncio.Future[Any]":
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(self._get_pool(), functools.partial(fn, *args, **kwargs))

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            if self._pool is not None:
                self._pool.shutdown(wait=wait)
                self._pool = None
                logger.debug("Thread pool shut down")
