"""
请求插件模块

应用启动时通过 RequestPlugin.install 创建请求门面，并注册到进程级上下文对象中。
如果插件列表中存在 mock 插件（开发模式下），会为请求门面添加 mock 拦截处理
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ab_ajax.constants import DEBUG_TOKEN, LOG_FORMAT, MOCK_PLUGIN_NAME, PLUGIN_NAME
from ab_ajax.facade import RequestFacade, create_facade

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """
    进程级上下文对象

    属性:
        services: 服务注册表（名称 -> 插件或处理对象）
        location: 当前页面地址，门面的 query 属性从这里读取查询参数
        request: 安装请求插件后得到的请求门面
    """

    services: dict[str, Any] = field(default_factory=dict)
    location: str = ""
    request: RequestFacade | None = None

    def register(self, name: str, service: Any) -> None:
        self.services[name] = service

    def lookup(self, name: str) -> Any:
        return self.services.get(name)


class DebugSink:
    """
    调试对象

    持有调试令牌，请求取消日志会优先通过与调用者关联的调试对象输出

    参数:
        name: 日志记录器名称
    """

    token = DEBUG_TOKEN

    def __init__(self, name: str = "ab_ajax.debug"):
        self.logger = logging.getLogger(name)

    def warning(self, message: str) -> None:
        self.logger.warning(message)


class RequestPlugin:
    """
    请求插件

    注意:
        请求拦截器的执行顺序与注册顺序相反。mock 插件的拦截器先于内置拦截器注册，
        因此会在内置拦截器之后执行，拿到的是已经解析为绝对地址的请求配置
    """

    name = PLUGIN_NAME
    mock_plugin_name = MOCK_PLUGIN_NAME

    def _find_mock_plugin(self, context: AppContext, plugins: Any) -> Any:
        for plugin in plugins or ():
            if plugin is not None and getattr(plugin, "name", None) == self.mock_plugin_name:
                return plugin
        return context.lookup(self.mock_plugin_name)

    def install(
        self,
        context: AppContext,
        defaults: dict[str, Any] | None = None,
        plugins: Any = None,
        **client_kwargs: Any,
    ) -> RequestFacade:
        """
        安装插件

        参数:
            context: 进程级上下文对象
            defaults: 默认请求配置
            plugins: 内置插件列表，用于查找 mock 插件
            **client_kwargs: 传递给 HttpClient 的额外参数

        返回:
            请求门面，同时设置为 context.request 并以插件名称注册到服务注册表
        """
        mock_plugin = self._find_mock_plugin(context, plugins)
        facade = create_facade(defaults, mock=mock_plugin, context=context, **client_kwargs)

        context.request = facade
        context.register(self.name, facade)
        logger.info(f"Request plugin installed. Mock: {'enabled' if mock_plugin else 'disabled'}")
        return facade
