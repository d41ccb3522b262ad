from __future__ import annotations

from typing import Any, Callable, Generator, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")


def paginate(fetch: Callable[[Optional[str]], Tuple[Sequence[T], Optional[str]]]) -> Generator[T, None, None]:
    """
    Yield items from a fetch(page_token) function returning (items, next_page_token).
    Stops when next_page_token is falsy.
    """
    page: Optional[str] = None
    while True:
        items, next_page = fetch(page)
        yield from items
        if not next_page:
            break
        page = next_page


def list_all(call: Callable[..., Any], *args: Any, **kwargs: Any) -> List[Any]:
    """
    Drain an OCI SDK list_* call, following the opc-next-page header.
    Items keep the order the service returned them in.
    """

    def fetch(page: Optional[str]) -> Tuple[Sequence[Any], Optional[str]]:
        resp = call(*args, page=page, **kwargs) if page else call(*args, **kwargs)
        headers = getattr(resp, "headers", None) or {}
        return list(getattr(resp, "data", None) or []), headers.get("opc-next-page")

    return list(paginate(fetch))
