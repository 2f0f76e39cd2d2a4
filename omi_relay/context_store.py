"""Per-session conversation history kept in process memory.

Each session holds at most ``max_turns`` question/answer pairs; appending past
the cap drops the oldest turn (FIFO). Nothing survives a restart.
"""

import asyncio
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field

DEFAULT_MAX_TURNS = 5


@dataclass
class ConversationTurn:
    question: str
    answer: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return asdict(self)


def render(context: list[ConversationTurn]) -> str:
    """Format prior turns as alternating ``Q:``/``A:`` lines."""
    lines = []
    for turn in context:
        lines.append(f"Q: {turn.question}")
        lines.append(f"A: {turn.answer}")
    return "\n".join(lines)


class ConversationContextStore:
    """Bounded turn history per session, guarded by a lock per session.

    ``get`` and ``append`` each take the session lock. Callers that need a
    read-complete-write sequence to be atomic for one session wrap it in
    ``async with store.session(session_id)`` and use the ``*_unlocked``
    variants inside.
    """

    def __init__(self, max_turns: int = DEFAULT_MAX_TURNS):
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.max_turns = max_turns
        self._turns: dict[str, deque] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @classmethod
    def from_config(cls, config: dict) -> "ConversationContextStore":
        return cls(max_turns=config.get("context", {}).get("max_turns", DEFAULT_MAX_TURNS))

    def __len__(self) -> int:
        return len(self._turns)

    def session_ids(self) -> list[str]:
        return list(self._turns)

    @asynccontextmanager
    async def session(self, session_id: str):
        # A lock lives only while some caller holds or waits on it
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
                del self._locks[session_id]

    def get_unlocked(self, session_id: str) -> list[ConversationTurn]:
        return list(self._turns.get(session_id, ()))

    def append_unlocked(self, session_id: str, turn: ConversationTurn):
        if session_id not in self._turns:
            self._turns[session_id] = deque(maxlen=self.max_turns)
        self._turns[session_id].append(turn)

    async def get(self, session_id: str) -> list[ConversationTurn]:
        if session_id not in self._turns and session_id not in self._locks:
            return []
        async with self.session(session_id):
            return self.get_unlocked(session_id)

    async def append(self, session_id: str, turn: ConversationTurn):
        async with self.session(session_id):
            self.append_unlocked(session_id, turn)

    async def clear(self, session_id: str):
        async with self.session(session_id):
            self._turns.pop(session_id, None)
