"""Priority-ordered middleware pipeline with explicit ``next()`` continuation.

Each middleware is an async callable ``(ctx, next)``. Calling
``await next()`` runs the rest of the chain; returning without calling
it short-circuits every middleware after it for this invocation::

    pipeline = MiddlewarePipeline()
    pipeline.use(MiddlewareDefinition("auth", priority=0, handler=auth))
    pipeline.use(MiddlewareDefinition("audit", priority=10, handler=audit))
    await pipeline.execute(ctx)

Lower priorities run first; equal priorities keep registration order.
Exceptions raised by a middleware propagate out of ``execute``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, List, Optional, TypeVar, Union

import structlog

from .exceptions import MiddlewareChainError

logger = structlog.get_logger("hookwire.middleware")

T = TypeVar("T")

NextFunction = Callable[[], Awaitable[None]]
"""Signature of the continuation passed to each middleware."""

MiddlewareHandler = Callable[[T, NextFunction], Awaitable[None]]


@dataclass
class MiddlewareDefinition(Generic[T]):
    """A named, prioritised middleware.

    Attributes:
        name: Unique key; re-using a name replaces the earlier entry.
        priority: Sort key, ascending. Negative values are allowed.
        handler: Async callable ``(ctx, next) -> None``.
    """
    name: str
    priority: Union[int, float]
    handler: Callable[[T, NextFunction], Awaitable[None]]


class MiddlewarePipeline(Generic[T]):
    """Ordered set of middlewares run as a single continuation chain."""

    def __init__(self) -> None:
        self._middlewares: Dict[str, MiddlewareDefinition[T]] = {}

    def use(self, middleware: MiddlewareDefinition[T]) -> None:
        """Add a middleware, replacing any existing one with the same name."""
        replaced = middleware.name in self._middlewares
        self._middlewares[middleware.name] = middleware
        logger.debug(
            "middleware_added",
            middleware=middleware.name,
            priority=middleware.priority,
            replaced=replaced,
        )

    def remove(self, name: str) -> None:
        """Remove a middleware by name. Unknown names are ignored."""
        if self._middlewares.pop(name, None) is not None:
            logger.debug("middleware_removed", middleware=name)

    def get_middleware(self, name: str) -> Optional[MiddlewareDefinition[T]]:
        """Look up a middleware definition by name."""
        return self._middlewares.get(name)

    def get_ordered_middlewares(self) -> List[MiddlewareDefinition[T]]:
        """Return middlewares sorted by ascending priority.

        ``sorted`` is stable, so ties keep registration order.
        """
        return sorted(self._middlewares.values(), key=lambda m: m.priority)

    async def execute(self, ctx: T) -> None:
        """Run ``ctx`` through the chain in priority order.

        Raises:
            MiddlewareChainError: If a middleware calls its ``next`` more
                than once.
        """
        ordered = self.get_ordered_middlewares()
        if not ordered:
            return
        await self._run(ctx, ordered, 0)

    async def _run(
        self, ctx: T, ordered: List[MiddlewareDefinition[T]], index: int
    ) -> None:
        if index >= len(ordered):
            return

        current = ordered[index]
        called = False

        async def run_next() -> None:
            nonlocal called
            if called:
                raise MiddlewareChainError(
                    f"Middleware {current.name!r} called next() more than once",
                    middleware_name=current.name,
                )
            called = True
            await self._run(ctx, ordered, index + 1)

        await current.handler(ctx, run_next)

        if not called and index + 1 < len(ordered):
            logger.debug(
                "middleware_chain_halted",
                middleware=current.name,
                skipped=[m.name for m in ordered[index + 1:]],
            )

    def __len__(self) -> int:
        return len(self._middlewares)

    def __contains__(self, name: object) -> bool:
        return name in self._middlewares
