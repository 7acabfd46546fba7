import asyncio
from contextlib import asynccontextmanager


class ChatLocks:
    """
    One asyncio.Lock per chat, shared by the dispatcher and the scheduled
    pushes so a push never interleaves with a dispatch for the same chat.
    A lock lives only while some task holds or waits for it.
    """
    def __init__(self):
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, chat_id: int):
        lock = self._locks.setdefault(chat_id, asyncio.Lock())
        self._users[chat_id] = self._users.get(chat_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[chat_id] -= 1
            if not self._users[chat_id]:
                del self._users[chat_id]
                del self._locks[chat_id]
