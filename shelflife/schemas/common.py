"""
Shared response schemas.
"""

import math

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    error_code: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


# Documented on every authenticated router; the handlers in main.py produce this shape
ERROR_RESPONSES = {
    status: {"model": ErrorResponse}
    for status in (400, 401, 403, 404, 409, 502)
}
