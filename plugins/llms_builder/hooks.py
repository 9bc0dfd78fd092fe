import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Sequence

from plugins.llms_builder.models import FullContent, LinkIndex, SiteContext

log = logging.getLogger("mkdocs.plugins.llms_builder")


@dataclass
class BuildContext:
    """What ``generate:prepare`` handlers receive; both aggregates are mutable."""

    llms_txt: LinkIndex
    llms_full_txt: FullContent
    site: SiteContext
    hooks: "HookRegistry"


class HookRegistry:
    """Named events with zero or more handlers, run in registration order.

    Handlers may be plain callables or coroutine functions; an awaitable
    result is awaited before the next handler runs. Awaiting starts a fresh
    event loop, so ``call_hook`` with a coroutine handler raises
    ``RuntimeError`` when invoked from inside a running loop.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def hook(self, name: str, handler: Callable) -> Callable[[], None]:
        """Register ``handler`` for ``name`` and return a function removing it."""
        self._handlers.setdefault(name, []).append(handler)

        def unregister():
            handlers = self._handlers.get(name, [])
            if handler in handlers:
                handlers.remove(handler)

        return unregister

    def add_hooks(self, hooks: Mapping[str, Sequence[Callable]]) -> None:
        for name, handlers in hooks.items():
            if callable(handlers):
                handlers = [handlers]
            for handler in handlers:
                self.hook(name, handler)

    def as_mapping(self) -> Dict[str, List[Callable]]:
        return {name: list(handlers) for name, handlers in self._handlers.items()}

    def handlers(self, name: str) -> List[Callable]:
        return list(self._handlers.get(name, []))

    def call_hook(self, name: str, *args) -> None:
        for handler in self.handlers(name):
            result = handler(*args)
            if inspect.isawaitable(result):
                _run_awaitable(name, result)


async def _await(awaitable):
    return await awaitable


def _run_awaitable(name: str, awaitable) -> None:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(_await(awaitable))
        return
    if inspect.iscoroutine(awaitable):
        awaitable.close()
    raise RuntimeError(
        f"[llms_builder] async handler for {name!r} cannot run inside a running event loop; "
        "call generate() from synchronous code"
    )


def create_llms_hooks(*sources: Mapping[str, Sequence[Callable]]) -> HookRegistry:
    """Registry holding the handlers of every mapping in ``sources``."""
    registry = HookRegistry()
    for hooks in sources:
        registry.add_hooks(hooks)
    log.debug(f"[llms_builder] hooks registered: {sorted(registry.as_mapping())}")
    return registry
