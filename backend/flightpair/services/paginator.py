from typing import Sequence, TypeVar

T = TypeVar("T")


def paginate(items: Sequence[T], page: int, page_size: int) -> list[T]:
    """Return the half-open slice for a 1-based page; past the end is an empty page.

    Paging values are expected to be normalized already (page >= 1, page_size >= 1).
    """
    start = (page - 1) * page_size
    return list(items[start:start + page_size])
