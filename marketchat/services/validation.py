from typing import Tuple

from marketchat.database.counters import MAX_ID
from marketchat.errors import InvalidArgument


MAX_PAGE_SIZE = 100
# keeps (page - 1) * page_size inside int64 for the cursor skip
MAX_PAGE = MAX_ID // MAX_PAGE_SIZE


def is_valid_id(value: int) -> bool:
    return 0 < value <= MAX_ID


def check_id(name: str, value: int) -> int:
    if not is_valid_id(value):
        raise InvalidArgument(f"{name} must be between 1 and {MAX_ID}")
    return value


def clamp_page(page: int, page_size: int) -> Tuple[int, int]:
    if page > MAX_PAGE:
        raise InvalidArgument(f"page must not exceed {MAX_PAGE}")
    return max(page, 1), min(max(page_size, 1), MAX_PAGE_SIZE)
