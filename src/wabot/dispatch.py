"""
Middleware dispatch.

For each inbound message the chain is: every global middleware in
registration order, then the middlewares registered for the matched command.
Each middleware gets the context and a ``next`` continuation; a step may call
``next`` at most once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

from wabot.errors import MiddlewareReentry

if TYPE_CHECKING:
    from wabot.context import Context

NextFn = Callable[[], Awaitable[None]]
Middleware = Callable[["Context", NextFn], Awaitable[None]]


class Dispatcher:
    def __init__(self) -> None:
        self._middlewares: list[Middleware] = []
        self._commands: dict[str, list[Middleware]] = {}

    def use(self, *middlewares: Middleware) -> None:
        self._middlewares.extend(middlewares)

    def command(self, name: str, *middlewares: Middleware) -> None:
        """Register (or replace) the middlewares for one command name."""
        if not name:
            raise ValueError("The command name must be at least 1 character long.")
        self._commands[name.lower()] = list(middlewares)

    @property
    def commands(self) -> list[str]:
        return list(self._commands)

    def chain(self, command_name: str) -> list[Middleware]:
        return [*self._middlewares, *self._commands.get(command_name, [])] if command_name else list(self._middlewares)

    async def dispatch(self, ctx: Context) -> None:
        middlewares = self.chain(ctx.command_name)
        if not middlewares:
            return
        last = -1

        async def run(i: int) -> None:
            nonlocal last
            if i <= last:
                raise MiddlewareReentry()
            last = i
            if i >= len(middlewares):
                return

            async def next_() -> None:
                await run(i + 1)

            await middlewares[i](ctx, next_)

        await run(0)
