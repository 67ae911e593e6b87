"""Explicit success/failure results for best-effort steps.

Some construction steps (variant properties, fallback label fonts) are
allowed to fail. Instead of wrapping them in a blanket ``except``, the call
site runs them through :func:`attempt` / :func:`attempt_async` and decides
what to do with the returned :class:`Attempt`.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Attempt(Generic[T]):
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def attempt(func: Callable[..., T], *args: Any, **kwargs: Any) -> Attempt[T]:
    try:
        return Attempt(value=func(*args, **kwargs))
    except Exception as e:
        return Attempt(error=e)


async def attempt_async(func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> Attempt[T]:
    try:
        return Attempt(value=await func(*args, **kwargs))
    except Exception as e:
        return Attempt(error=e)
