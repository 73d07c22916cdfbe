"""
常量配置模块

集中定义请求门面使用的默认配置、请求方法列表和日志格式
"""

from typing import Any

# ========== 日志配置 ==========
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# ========== 请求方法 ==========
# 所有可以通过门面发起请求的请求方法（小写）
METHODS = ("get", "delete", "head", "options", "post", "put", "patch")

# 可以携带请求体（data 参数）的请求方法
BODY_METHODS = ("post", "put", "patch")

# 不需要添加 ajax 请求头声明的请求方法
NON_AJAX_METHODS = ("head", "options")

# ========== 默认请求配置 ==========
# 请求超时时间（毫秒）
DEFAULT_TIMEOUT = 10000

# 默认请求头，禁用中间缓存
DEFAULT_HEADERS: dict[str, str] = {
    "Cache-Control": "no-store",
    "Pragma": "no-cache",
}

# ajax 请求头声明，服务端据此判断是否为 ajax 请求
AJAX_HEADER_NAME = "X-Requested-With"
AJAX_HEADER_VALUE = "XMLHttpRequest"

FORM_URLENCODED = "application/x-www-form-urlencoded"

# ========== 重试与连接池 ==========
DEFAULT_RETRIES = 0

DEFAULT_RETRY_CONFIG: dict[str, Any] = {
    "total": DEFAULT_RETRIES,
    "backoff_factor": 0.3,
    "status_forcelist": (500, 502, 503, 504),
    "allowed_methods": frozenset(m.upper() for m in METHODS if m not in BODY_METHODS),
    "raise_on_status": False,
}

DEFAULT_POOL_CONFIG: dict[str, Any] = {
    "pool_connections": 10,
    "pool_maxsize": 10,
}

# 执行阻塞传输的线程池大小
DEFAULT_MAX_WORKERS = 10

# ========== 插件 ==========
# 请求插件名称，关联插件配置参数时依赖此值
PLUGIN_NAME = "request"

# mock 插件名称，安装请求插件时据此在插件列表中查找 mock 插件
MOCK_PLUGIN_NAME = "mock"

# 调试插件令牌，只有持有该令牌的调试对象才会被用于输出取消日志
DEBUG_TOKEN = object()
