import asyncio
from typing import Any, Awaitable, Dict

from telegram.ext import BaseUpdateProcessor


class UserSequentialUpdateProcessor(BaseUpdateProcessor):
    """
    Runs updates concurrently across users but one at a time per user, so a
    user's second /transfer waits for the first to be confirmed.
    """

    def __init__(self, max_concurrent_updates: int):
        super().__init__(max_concurrent_updates)
        self._user_locks: Dict[int, asyncio.Lock] = {}

    async def do_process_update(
        self,
        update: object,
        coroutine: Awaitable[Any],
    ) -> None:
        user_id = self._get_user_id(update)
        lock = self._user_locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            await coroutine

    def _get_user_id(self, update: object) -> int:
        user = getattr(update, "effective_user", None)
        return user.id if user is not None else 0

    async def initialize(self) -> None:
        pass

    async def shutdown(self) -> None:
        self._user_locks.clear()
