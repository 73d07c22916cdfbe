"""
请求地址解析模块

扩展了请求地址的格式，支持在地址中声明请求方法和路径参数模板，如：

    POST /users/{id}/profile?tab=base

解析流程:
    1. 分割出地址开头的请求方法（不区分大小写）
    2. 使用 params 中的参数值替换路径中的 {name} 模板，并从 params 中删除已替换的参数
    3. 对查询参数部分重新编码
    4. 相对地址拼接 base_url，补全协议并清除 hash
"""

import logging
import re
from typing import Any

from urllib3.exceptions import LocationParseError
from urllib3.util import parse_url

from ab_ajax.constants import LOG_FORMAT, METHODS
from ab_ajax.exceptions import InvalidUrlError
from ab_ajax.querystring import format_value, parse, stringify

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

_SPLIT_URL_PATTERN = re.compile(rf"^\s*(?:({'|'.join(METHODS)})\s+)?(.+)\s*$", re.IGNORECASE)

# 参数模板，反斜杠可以出现在左括号前、左括号后或右括号前，用于转义
_PLACEHOLDER_PATTERN = re.compile(r"(.?)\{(\\?)(\s*)(.*?)(\s*)(\\?)\}")

_QUERY_PATTERN = re.compile(r"\?(.+)$", re.DOTALL)
_HASH_PATTERN = re.compile(r"#.*$", re.DOTALL)

# 不是以 // 开头、不是 http(s): 或 scheme:// 开头、也不是不带协议的主机名，即视为相对地址
_RELATIVE_URL_PATTERN = re.compile(
    r"^(?!/{2,}|[^/:?&=#.]+(?:\.[^/:?&=#.]+)+)(?:/|(?!https?:/*|[a-z][a-z0-9+.\-]*://)).*",
    re.IGNORECASE | re.DOTALL,
)

# 没有协议的主机名，如：10.0.2.222/abc/
_BARE_HOST_PATTERN = re.compile(r"^[^/:?&=#.]+(?:\.[^/:?&=#.]+)+")


def split_method(url: Any) -> tuple[str | None, str | None]:
    """
    分割地址开头声明的请求方法

    返回:
        (小写的请求方法或 None, 路径部分或 None)
    """
    match = _SPLIT_URL_PATTERN.match(url if isinstance(url, str) else "")
    if not match:
        return None, None
    method, path = match.groups()
    return (method.lower() if method else None), path


def _render(value: Any) -> str:
    # restful 风格接口，参数值为 None 时采用 null（服务端的空为 null）
    if value is None:
        return "null"
    return format_value(value)


def fill_params(path: Any, params: Any) -> str:
    """
    将路径中的参数模板替换为对应的参数值

    已替换的参数会从 params 中删除，未使用的参数仍保留在 params 中，
    可以继续作为查询参数发送。被反斜杠转义的模板（\\{name}、{\\name}、{name\\}）
    视作普通字符，去掉转义符后原样输出。

    参数:
        path: 包含参数模板的路径
        params: 参数字典，会被原地修改

    返回:
        替换后的路径；params 不是字典时返回原路径（保留模板，让请求暴露出配置错误）
    """
    if not isinstance(path, str):
        return ""
    if not isinstance(params, dict):
        return path.strip()

    def replace(match: re.Match) -> str:
        before, lead, space_before, name, space_after, trail = match.groups()
        if before == "\\" or lead or trail:
            prefix = "" if before == "\\" else before
            return f"{prefix}{{{space_before}{name}{space_after}}}"
        if not name:
            return before
        value = params.pop(name, None)
        return f"{before}{_render(value)}"

    return _PLACEHOLDER_PATTERN.sub(replace, path).strip()


def encode_query(url: str) -> str:
    """使用查询字符串编解码器重新编码地址中的查询参数部分"""
    return _QUERY_PATTERN.sub(lambda match: f"?{stringify(parse(match.group(1)))}", url, count=1)


def is_relative(url: str) -> bool:
    return bool(_RELATIVE_URL_PATTERN.match(url))


def join_url(base_url: str, url: str) -> str:
    """拼接根地址与相对地址，连接处只保留一个斜杠"""
    if not url:
        return base_url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"


def canonicalize_url(url: str) -> str:
    """通过 urllib3 重新解析地址，规范化协议、主机名及编码"""
    try:
        parsed = parse_url(url)
    except LocationParseError as e:
        raise InvalidUrlError(f"Request url is invalid: {e}") from e
    canonical = parsed.url
    # 协议相对地址（//host/path）在没有协议时，urllib3 不会保留开头的 //
    if url.startswith("//") and parsed.scheme is None and not canonical.startswith("//"):
        canonical = f"//{canonical}"
    return canonical


def resolve_url(url: Any, params: Any = None, base_url: str | None = None) -> tuple[str, str | None]:
    """
    解析扩展格式的请求地址

    参数:
        url: 请求地址，可以以请求方法开头，可以包含参数模板
        params: 路径参数字典，已替换的参数会被删除
        base_url: 根地址，仅对相对地址生效

    返回:
        (绝对地址, 地址中声明的小写请求方法或 None)

    异常:
        InvalidUrlError: 解析后的地址为空或无法解析
    """
    method, path = split_method(url)

    filtered_url = fill_params(path, params)
    filtered_url = _HASH_PATTERN.sub("", filtered_url)
    filtered_url = encode_query(filtered_url)

    if isinstance(base_url, str) and is_relative(filtered_url):
        absolute_url = join_url(base_url, filtered_url)
    else:
        absolute_url = filtered_url

    # 兼容没加协议的情况
    absolute_url = _BARE_HOST_PATTERN.sub(lambda match: f"http://{match.group(0)}", absolute_url, count=1)
    absolute_url = _HASH_PATTERN.sub("", absolute_url)

    absolute_url = canonicalize_url(absolute_url)
    if not absolute_url:
        raise InvalidUrlError("Request url cannot be empty.")

    logger.debug(f"Resolved url {url!r} to {absolute_url!r}")
    return absolute_url, method


def url_filter(config: dict[str, Any]) -> dict[str, Any]:
    """
    解析请求配置中的地址，原地修改配置对象

    地址中声明的请求方法会覆盖配置中的 method
    """
    base_url = config.get("base_url", config.get("baseURL"))
    url, method = resolve_url(config.get("url"), config.get("params"), base_url)
    config["url"] = url
    if method in METHODS:
        config["method"] = method
    return config
