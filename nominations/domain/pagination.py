"""
Offset pagination for dashboard tables.

Pages are 1-based. Each request reads exactly one page of rows plus the
total count; there is no consistency guarantee across concurrent writes.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")

# Keeps offset_for() inside PostgreSQL's bigint OFFSET for any allowed page size
MAX_PAGE = 2**31 - 1

_LEADING_INT = re.compile(r"\s*([+-]?)(\d+)")


@dataclass
class Page(Generic[T]):
    """One page of a table plus the links a client needs to walk it."""

    total_size: int
    per_page: int
    page: int
    last_page: int
    next_page_url: str | None
    prev_page_url: str | None
    from_index: int
    to_index: int
    items: list[T]


def parse_page(raw: Any) -> int:
    """
    Coerce a query-string page number.

    Leading digits are read the way parseInt reads them, so "2.5" and
    "2abc" are page 2. Absent, junk, or < 1 means page 1; anything above
    MAX_PAGE is capped there.
    """
    if raw is None:
        return 1
    match = _LEADING_INT.match(str(raw))
    if match is None:
        return 1
    sign, digits = match.groups()
    if sign == "-":
        return 1
    # int() refuses very long digit strings, so compare lengths first
    if len(digits.lstrip("0")) > len(str(MAX_PAGE)):
        return MAX_PAGE
    page = int(digits)
    if page < 1:
        return 1
    return min(page, MAX_PAGE)


def offset_for(page: int, per_page: int) -> int:
    return (page - 1) * per_page


def next_page(current: int, last: int) -> int | None:
    if current >= last:
        return None
    if current < 1:
        return 1
    return current + 1


def previous_page(current: int, last: int) -> int | None:
    if current <= 1:
        return None
    if current > last:
        return last
    return current - 1


def paginate(rows: list[T], total: int, page: int, per_page: int, base_url: str) -> Page[T]:
    """
    Wrap a fetched page of rows with totals and navigation links.

    Args:
        rows: The rows for this page (at most per_page)
        total: Count of all matching rows
        page: Current 1-based page number
        per_page: Page size
        base_url: URL the page links are built from, without query string

    Returns:
        Page with next/prev links set only when such a page exists
    """
    last = math.ceil(total / per_page)
    next_number = next_page(page, last)
    prev_number = previous_page(page, last)
    offset = offset_for(page, per_page)

    return Page(
        total_size=total,
        per_page=per_page,
        page=page,
        last_page=last,
        next_page_url=f"{base_url}?page={next_number}" if next_number is not None else None,
        prev_page_url=f"{base_url}?page={prev_number}" if prev_number is not None else None,
        from_index=offset + 1 if rows else 0,
        to_index=offset + len(rows),
        items=rows,
    )
