"""
查询字符串编解码模块

实现与 qs 库一致的查询字符串格式：
- 嵌套对象：a[b][c]=1
- 数组：a[0]=1&a[1]=2，解析时也兼容 a[]=1&a[]=2 和重复键 a=1&a=2
- 百分号编码采用 RFC 3986 规则，空格编码为 %20
"""

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, unquote_plus

# 形如 parent[child][grandchild] 的键
_KEY_PATTERN = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])+)$")
_SEGMENT_PATTERN = re.compile(r"\[([^\[\]]*)\]")

# 显式下标的最大值，超过时按对象的键解析
ARRAY_LIMIT = 20


def _encode(value: str) -> str:
    return quote(value, safe="")


def format_value(value: Any) -> str:
    """将标量转换为字符串，整数值的浮点数不带小数部分（1.0 -> "1"）"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _decode(raw: str) -> str:
    # 不是合法 UTF-8 的百分号编码保留原文，避免被替换为 U+FFFD
    try:
        return unquote_plus(raw, errors="strict")
    except UnicodeDecodeError:
        return raw.replace("+", " ")


def _serialize(pairs: list[str], prefix: str, value: Any) -> None:
    if isinstance(value, Mapping):
        for key, child in value.items():
            _serialize(pairs, f"{prefix}[{key}]", child)
    elif isinstance(value, (list, tuple)):
        for index, child in enumerate(value):
            _serialize(pairs, f"{prefix}[{index}]", child)
    else:
        pairs.append(f"{_encode(prefix)}={_encode(format_value(value))}")


def stringify(obj: Any, add_query_prefix: bool = False) -> str:
    """
    将对象序列化为查询字符串（也即 application/x-www-form-urlencoded 格式）

    参数:
        obj: 待序列化的字典，非字典时返回空字符串
        add_query_prefix: 结果非空时是否添加 ? 前缀

    返回:
        查询字符串，如 stringify({"a": {"b": 1}}) == "a%5Bb%5D=1"
    """
    if not isinstance(obj, Mapping):
        return ""
    pairs: list[str] = []
    for key, value in obj.items():
        _serialize(pairs, str(key), value)
    query = "&".join(pairs)
    return f"?{query}" if add_query_prefix and query else query


def _split_key(key: str) -> list[str]:
    match = _KEY_PATTERN.match(key)
    if not match:
        return [key]
    return [match.group(1), *_SEGMENT_PATTERN.findall(match.group(2))]


def _assign(target: dict[str, Any], segments: list[str], value: Any) -> None:
    key = segments[0]
    if len(segments) == 1:
        if key not in target:
            target[key] = value
        elif isinstance(target[key], list):
            target[key].append(value)
        else:
            # 重复的键合并为数组
            target[key] = [target[key], value]
        return

    node = target.get(key)
    if isinstance(node, list):
        node = {str(i): item for i, item in enumerate(node)}
    elif not isinstance(node, dict):
        node = {} if node is None else {"0": node}
    target[key] = node

    child_key = segments[1]
    if child_key == "":
        # a[]=1 形式，追加到数组末尾
        child_key = str(len(node))
    _assign(node, [child_key, *segments[2:]], value)


def _compact(value: Any) -> Any:
    """
    将键全部为数字的字典还原为数组

    与 qs 一致，下标超过 ARRAY_LIMIT 的键保留为对象的键（a[100]=x -> {"a": {"100": "x"}}）；
    由 a[]= 或重复键产生的连续下标不受此限制
    """
    if isinstance(value, list):
        return [_compact(item) for item in value]
    if not isinstance(value, dict):
        return value
    compacted = {key: _compact(child) for key, child in value.items()}
    if compacted and all(key.isdigit() for key in compacted):
        indexes = sorted(compacted, key=int)
        contiguous = [int(key) for key in indexes] == list(range(len(indexes)))
        if contiguous or int(indexes[-1]) <= ARRAY_LIMIT:
            return [compacted[key] for key in indexes]
    return compacted


def parse(query: Any, ignore_query_prefix: bool = False) -> dict[str, Any]:
    """
    解析查询字符串为字典，支持嵌套键和数组

    参数:
        query: 查询字符串，非字符串时返回空字典
        ignore_query_prefix: 是否忽略开头的 ? 字符

    返回:
        解析后的字典，如 parse("a[b]=1&c=2") == {"a": {"b": "1"}, "c": "2"}
    """
    if not isinstance(query, str):
        return {}
    if ignore_query_prefix and query.startswith("?"):
        query = query[1:]

    result: dict[str, Any] = {}
    for part in query.split("&"):
        if not part:
            continue
        raw_key, _, raw_value = part.partition("=")
        key = _decode(raw_key)
        if not key:
            continue
        _assign(result, _split_key(key), _decode(raw_value))
    return {key: _compact(value) for key, value in result.items()}
