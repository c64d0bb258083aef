"""Tests for the priority-ordered middleware pipeline."""

import random

import pytest

from hookwire.exceptions import MiddlewareChainError
from hookwire.middleware import MiddlewareDefinition, MiddlewarePipeline


def _recording(name, log, call_next=True):
    """Middleware that appends its name to ``log`` and optionally continues."""
    async def handler(ctx, next):
        log.append(name)
        if call_next:
            await next()
    return MiddlewareDefinition(name=name, priority=0, handler=handler)


def _with_priority(definition, priority):
    definition.priority = priority
    return definition


class TestOrdering:

    def test_ordered_ascending(self):
        pipeline = MiddlewarePipeline()
        log = []
        pipeline.use(_with_priority(_recording("p10", log), 10))
        pipeline.use(_with_priority(_recording("p0", log), 0))
        pipeline.use(_with_priority(_recording("p5", log), 5))

        assert [m.name for m in pipeline.get_ordered_middlewares()] == ["p0", "p5", "p10"]

    def test_ties_keep_registration_order(self):
        pipeline = MiddlewarePipeline()
        log = []
        for name in ("first", "second", "third"):
            pipeline.use(_with_priority(_recording(name, log), 1))
        pipeline.use(_with_priority(_recording("early", log), -1))

        names = [m.name for m in pipeline.get_ordered_middlewares()]
        assert names == ["early", "first", "second", "third"]

    def test_random_priorities_are_non_decreasing(self):
        rng = random.Random(7)
        for _ in range(50):
            pipeline = MiddlewarePipeline()
            for i in range(rng.randint(0, 20)):
                priority = rng.randint(-10, 10)
                pipeline.use(_with_priority(_recording(f"m{i}", []), priority))
            priorities = [m.priority for m in pipeline.get_ordered_middlewares()]
            assert priorities == sorted(priorities)

    def test_use_same_name_replaces(self):
        pipeline = MiddlewarePipeline()
        log = []
        pipeline.use(_with_priority(_recording("auth", log), 0))
        pipeline.use(_with_priority(_recording("auth", log), 7))

        ordered = pipeline.get_ordered_middlewares()
        assert len(ordered) == 1
        assert ordered[0].priority == 7

    def test_get_middleware(self):
        pipeline = MiddlewarePipeline()
        auth = _recording("auth", [])
        pipeline.use(auth)
        assert pipeline.get_middleware("auth") is auth
        assert pipeline.get_middleware("missing") is None

    def test_remove(self):
        pipeline = MiddlewarePipeline()
        pipeline.use(_recording("auth", []))
        pipeline.remove("auth")
        pipeline.remove("missing")
        assert pipeline.get_ordered_middlewares() == []
        assert "auth" not in pipeline


class TestExecute:

    @pytest.mark.asyncio
    async def test_runs_in_priority_order(self):
        pipeline = MiddlewarePipeline()
        log = []
        pipeline.use(_with_priority(_recording("p10", log), 10))
        pipeline.use(_with_priority(_recording("p0", log), 0))
        pipeline.use(_with_priority(_recording("p5", log), 5))

        await pipeline.execute({})
        assert log == ["p0", "p5", "p10"]

    @pytest.mark.asyncio
    async def test_not_calling_next_stops_chain(self):
        pipeline = MiddlewarePipeline()
        log = []
        pipeline.use(_with_priority(_recording("p0", log), 0))
        pipeline.use(_with_priority(_recording("p5", log, call_next=False), 5))
        pipeline.use(_with_priority(_recording("p10", log), 10))

        await pipeline.execute({})
        assert log == ["p0", "p5"]

    @pytest.mark.asyncio
    async def test_empty_pipeline_is_noop(self):
        ctx = {"untouched": True}
        await MiddlewarePipeline().execute(ctx)
        assert ctx == {"untouched": True}

    @pytest.mark.asyncio
    async def test_context_passed_unchanged(self):
        pipeline = MiddlewarePipeline()
        seen = []

        async def capture(ctx, next):
            seen.append(ctx)
            await next()

        pipeline.use(MiddlewareDefinition(name="a", priority=0, handler=capture))
        pipeline.use(MiddlewareDefinition(name="b", priority=1, handler=capture))
        ctx = object()

        await pipeline.execute(ctx)
        assert seen == [ctx, ctx]
        assert all(item is ctx for item in seen)

    @pytest.mark.asyncio
    async def test_code_after_next_runs_after_downstream(self):
        pipeline = MiddlewarePipeline()
        log = []

        async def outer(ctx, next):
            log.append("outer:before")
            await next()
            log.append("outer:after")

        async def inner(ctx, next):
            log.append("inner")
            await next()

        pipeline.use(MiddlewareDefinition(name="outer", priority=0, handler=outer))
        pipeline.use(MiddlewareDefinition(name="inner", priority=1, handler=inner))

        await pipeline.execute({})
        assert log == ["outer:before", "inner", "outer:after"]

    @pytest.mark.asyncio
    async def test_calling_next_twice_raises(self):
        pipeline = MiddlewarePipeline()
        log = []

        async def greedy(ctx, next):
            await next()
            await next()

        pipeline.use(MiddlewareDefinition(name="greedy", priority=0, handler=greedy))
        pipeline.use(_with_priority(_recording("tail", log), 1))

        with pytest.raises(MiddlewareChainError) as exc_info:
            await pipeline.execute({})
        assert exc_info.value.middleware_name == "greedy"
        assert log == ["tail"]

    @pytest.mark.asyncio
    async def test_middleware_exception_propagates(self):
        pipeline = MiddlewarePipeline()
        log = []

        async def failing(ctx, next):
            raise ValueError("bad update")

        pipeline.use(MiddlewareDefinition(name="failing", priority=0, handler=failing))
        pipeline.use(_with_priority(_recording("after", log), 1))

        with pytest.raises(ValueError, match="bad update"):
            await pipeline.execute({})
        assert log == []

    @pytest.mark.asyncio
    async def test_each_execute_starts_fresh(self):
        pipeline = MiddlewarePipeline()
        log = []
        pipeline.use(_with_priority(_recording("a", log), 0))
        pipeline.use(_with_priority(_recording("b", log), 1))

        await pipeline.execute({})
        await pipeline.execute({})
        assert log == ["a", "b", "a", "b"]
