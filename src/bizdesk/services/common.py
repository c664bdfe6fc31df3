"""Helpers for the response envelopes the backend uses."""

import logging
from typing import Any

import httpx

from src.bizdesk.errors import ApiError

logger = logging.getLogger(__name__)

_LIST_KEYS = ("data", "articles", "items")


def unwrap(response: httpx.Response) -> Any:
    """
    Return the useful part of a response body.

    Laravel resources answer ``{"success": ..., "message": ..., "data": ...}``;
    some endpoints return the object bare. ``success: false`` with a 2xx
    status is turned into an ``ApiError``.
    """
    body = response.json()
    if not isinstance(body, dict):
        return body
    if body.get("success") is False:
        raise ApiError(
            body.get("message") or "Request failed",
            status_code=response.status_code,
            response=response,
        )
    return body["data"] if "data" in body else body


def normalize_list(body: Any) -> list:
    """Accept a bare list or a dict carrying it under data/articles/items."""
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for key in _LIST_KEYS:
            if isinstance(body.get(key), list):
                return body[key]
    logger.warning("unexpected_list_shape type=%s", type(body).__name__)
    return []
