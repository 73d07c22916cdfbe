"""
请求配置构建模块

不同请求方法的别名函数有不同的参数签名，这里将它们一致化为同一种请求配置字典
"""

from collections.abc import Callable, Mapping
from typing import Any

from ab_ajax.constants import BODY_METHODS


def merge_config(*configs: Any) -> dict[str, Any]:
    """
    递归合并多个配置字典，后面的配置覆盖前面的配置

    返回一个新的字典，不会修改传入的配置对象（嵌套字典同样会被拷贝）
    """
    result: dict[str, Any] = {}
    for config in configs:
        if not isinstance(config, Mapping):
            continue
        for key, value in config.items():
            if isinstance(value, Mapping):
                previous = result.get(key)
                result[key] = merge_config(previous, value) if isinstance(previous, Mapping) else merge_config(value)
            else:
                result[key] = value
    return result


def build_config(*args: Any) -> dict[str, Any]:
    """
    将门面的调用参数合并为一个请求配置

    可以追加多个配置参数，后面的配置参数会覆盖前面的；
    字符串参数作为 url 对待；其他类型的参数会被忽略
    """
    config: dict[str, Any] = {}
    for arg in args:
        if isinstance(arg, str):
            config["url"] = arg
        elif isinstance(arg, Mapping):
            config = merge_config(config, arg)
    return config


def method_config_parser(method: str) -> Callable[..., dict[str, Any]]:
    """
    获取请求方法别名函数的参数解析器

    - post、put、patch: (url, data=None, config=None)
    - 其他请求方法: (url, config=None)
    """
    carries_body = method in BODY_METHODS

    def parse(url: Any, *rest: Any) -> dict[str, Any]:
        data = None
        if carries_body:
            data = rest[0] if len(rest) > 0 else None
            config = rest[1] if len(rest) > 1 else None
        else:
            config = rest[0] if len(rest) > 0 else None
        return {"url": url, "method": method, "data": data, **(config if isinstance(config, Mapping) else {})}

    return parse
