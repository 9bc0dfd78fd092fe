import asyncio

import pytest

from plugins.llms_builder.hooks import HookRegistry, create_llms_hooks


class TestHookRegistry:
    def test_handlers_run_in_order(self):
        calls = []
        hooks = HookRegistry()
        hooks.hook("generate:prepare", lambda ctx: calls.append(("first", ctx)))
        hooks.hook("generate:prepare", lambda ctx: calls.append(("second", ctx)))
        hooks.call_hook("generate:prepare", "ctx")
        assert calls == [("first", "ctx"), ("second", "ctx")]

    def test_unregister(self):
        calls = []
        hooks = HookRegistry()
        unregister = hooks.hook("generate:prepare", lambda ctx: calls.append(ctx))
        unregister()
        unregister()
        hooks.call_hook("generate:prepare", "ctx")
        assert calls == []

    def test_async_handler_is_awaited(self):
        """A coroutine handler completes before the next handler runs."""
        calls = []

        async def first(ctx):
            calls.append("async")

        hooks = HookRegistry()
        hooks.hook("generate:prepare", first)
        hooks.hook("generate:prepare", lambda ctx: calls.append("sync"))
        hooks.call_hook("generate:prepare", None)
        assert calls == ["async", "sync"]

    def test_unknown_event_is_noop(self):
        HookRegistry().call_hook("generate:prepare", None)

    def test_async_handler_inside_running_loop(self):
        """Coroutine handlers need a synchronous caller; the error says so."""
        calls = []

        async def handler(ctx):
            calls.append(ctx)

        hooks = HookRegistry()
        hooks.hook("generate:prepare", handler)

        async def main():
            with pytest.raises(RuntimeError, match="running event loop"):
                hooks.call_hook("generate:prepare", "ctx")

        asyncio.run(main())
        assert calls == []

    def test_sync_handler_inside_running_loop(self):
        calls = []
        hooks = HookRegistry()
        hooks.hook("generate:prepare", calls.append)

        async def main():
            hooks.call_hook("generate:prepare", "ctx")

        asyncio.run(main())
        assert calls == ["ctx"]


class TestCreateLLMsHooks:
    def test_merges_sources(self):
        def shared(ctx):
            pass

        def local(ctx):
            pass

        registry = create_llms_hooks({"generate:prepare": [shared]}, {"generate:prepare": local})
        assert registry.handlers("generate:prepare") == [shared, local]

    def test_sources_are_not_shared(self):
        base = HookRegistry()
        base.hook("generate:prepare", print)
        registry = create_llms_hooks(base.as_mapping())
        registry.hook("generate:prepare", repr)
        assert base.handlers("generate:prepare") == [print]
