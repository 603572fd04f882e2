"""Shared test fixtures: in-memory store, memory, scripted generators, driver factory."""

import random
from typing import Callable, List, Optional

import pytest

from src.advisor.agent import FinanceAgent
from src.advisor.memory import ConversationMemory
from src.advisor.storage import InMemoryStore
from src.core.errors import RemoteCallError
from src.simulator.driver import ConversationDriver
from src.simulator.events import EventChannel
from src.simulator.persona import PersonaGenerator


class ScriptedGenerator:
    """Stands in for RemoteTextGenerator: replays canned replies in order."""

    def __init__(self, replies: List[str], on_call: Optional[Callable[[int], None]] = None):
        self.replies = list(replies)
        self.on_call = on_call
        self.calls: List[tuple] = []

    @property
    def available(self) -> bool:
        return True

    async def generate(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.on_call is not None:
            self.on_call(len(self.calls))
        return self.replies[(len(self.calls) - 1) % len(self.replies)]


class FailingGenerator:
    available = True

    def __init__(self):
        self.calls = 0

    async def generate(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        self.calls += 1
        raise RemoteCallError("HTTP 503 from upstream")


class BrokenGenerator:
    """Fails with something other than RemoteCallError."""

    available = True

    def __init__(self):
        self.calls = 0

    async def generate(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        self.calls += 1
        raise ValueError("choices[0] missing")


CLIENT_SCRIPT = [
    "Hola, soy Lucía y trabajo en ventas",
    "Gané 3500 de comisión este mes",
    "Gasté 450 en el super",
    "¿Conviene abrir una cuenta de ahorros?",
    "Quiero juntar para un viaje",
    "¿Qué me recomiendas?",
    "Interesante lo que me dices",
    "Gracias, nos vemos",
]


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def memory(store: InMemoryStore) -> ConversationMemory:
    mem = ConversationMemory(store, max_context_messages=10, save_delay=0.05)
    mem.load()
    return mem


@pytest.fixture
def events() -> EventChannel:
    return EventChannel()


@pytest.fixture
def make_driver(memory: ConversationMemory, events: EventChannel):
    """Build a driver with zero pacing delays; generators default to offline."""

    def _make(client_generator=None, agent_generator=None, seed: int = 42) -> ConversationDriver:
        rng = random.Random(seed)
        agent = FinanceAgent(memory, agent_generator, rng=rng)
        return ConversationDriver(
            memory=memory,
            agent=agent,
            client_generator=client_generator,
            events=events,
            persona_generator=PersonaGenerator(rng),
            rng=rng,
            turn_delay=0,
            exchange_delay=0,
        )

    return _make
