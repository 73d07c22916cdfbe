from ab_ajax.cancel import Cancel, CancelToken, CancelTokenSource, is_cancel
from ab_ajax.client import HttpClient, Response
from ab_ajax.exceptions import (
    AccessorResolutionError,
    APIClientError,
    APIClientHTTPError,
    APIClientNetworkError,
    APIClientRequestError,
    APIClientTimeoutError,
    APIClientValidationError,
    CancellationError,
    InvalidMethodError,
    InvalidUrlError,
)
from ab_ajax.facade import RequestFacade, create_facade
from ab_ajax.handle import AsyncRequestHandle
from ab_ajax.plugin import AppContext, DebugSink, RequestPlugin
from ab_ajax.querystring import parse, stringify
from ab_ajax.resolver import resolve_url

__all__ = [
    "APIClientError",
    "APIClientHTTPError",
    "APIClientNetworkError",
    "APIClientRequestError",
    "APIClientTimeoutError",
    "APIClientValidationError",
    "AccessorResolutionError",
    "AppContext",
    "AsyncRequestHandle",
    "Cancel",
    "CancelToken",
    "CancelTokenSource",
    "CancellationError",
    "DebugSink",
    "HttpClient",
    "InvalidMethodError",
    "InvalidUrlError",
    "RequestFacade",
    "RequestPlugin",
    "Response",
    "create_facade",
    "is_cancel",
    "parse",
    "resolve_url",
    "stringify",
]
