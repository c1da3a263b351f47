"""Caller identity, taken from headers set by the upstream token verifier."""

from fastapi import Request

from config import AppSettings
from context import StoreContext
from roles import Caller

USER_HEADER = "X-User-Id"


def resolve_caller(request: Request, settings: AppSettings) -> Caller:
    """Classify the request's caller.

    With auth disabled every request runs as the test identity.
    """
    if settings.auth_disabled:
        return Caller.test()
    return Caller.from_identity(request.headers.get(USER_HEADER), settings.admin_id)


def get_context(request: Request) -> StoreContext:
    return request.app.state.context


def get_caller(request: Request) -> Caller:
    return resolve_caller(request, get_context(request).settings)
