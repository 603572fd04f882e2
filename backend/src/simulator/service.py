from __future__ import annotations

from typing import Any, Dict, List, Optional, Set
import asyncio
import logging
import random

from src.advisor.agent import FinanceAgent
from src.advisor.memory import ConversationMemory
from src.advisor.storage import ConversationStore, JsonFileStore
from src.core.llm import RemoteTextGenerator
from src.core.settings import SimulatorSettings

from .client import CLIENT_SEARCH_DOMAINS
from .driver import ConversationDriver
from .events import EventChannel
from .persona import PersonaGenerator

logger = logging.getLogger(__name__)

AGENT_SEARCH_DOMAINS = [
    "wikipedia.org",
    "bcp.com.pe",
    "interbank.pe",
    "bbva.pe",
    "scotiabank.com.pe",
    "-pinterest.com",
    "-reddit.com",
]


def build_generators(settings: SimulatorSettings) -> Dict[str, RemoteTextGenerator]:
    common = {"api_key": settings.api_key, "base_url": settings.base_url, "model": settings.model}
    return {
        "client": RemoteTextGenerator(
            **common,
            max_tokens=settings.client_max_tokens,
            temperature=0.7,
            search_context_size="low",
            search_domain_filter=list(CLIENT_SEARCH_DOMAINS),
        ),
        "agent": RemoteTextGenerator(
            **common,
            max_tokens=settings.agent_max_tokens,
            temperature=0.7,
            search_context_size="medium",
            search_domain_filter=AGENT_SEARCH_DOMAINS,
        ),
    }


class SimulatorService:
    """Owns one simulation run and its collaborators for the HTTP layer."""

    def __init__(
        self,
        settings: SimulatorSettings,
        *,
        store: Optional[ConversationStore] = None,
        client_generator: Any = None,
        agent_generator: Any = None,
    ) -> None:
        self.settings = settings
        generators = build_generators(settings) if client_generator is None or agent_generator is None else {}
        rng = random.Random(settings.seed)

        self.memory = ConversationMemory(
            store or JsonFileStore(settings.data_dir),
            max_context_messages=settings.max_context_messages,
            save_delay=settings.save_delay,
        )
        self.memory.load()
        self.events = EventChannel()
        self.agent = FinanceAgent(self.memory, agent_generator or generators.get("agent"), rng=rng)
        self.driver = ConversationDriver(
            memory=self.memory,
            agent=self.agent,
            client_generator=client_generator or generators.get("client"),
            events=self.events,
            persona_generator=PersonaGenerator(rng),
            rng=rng,
            turn_delay=settings.turn_delay,
            exchange_delay=settings.exchange_delay,
        )
        self._tasks: Set[asyncio.Task] = set()
        logger.info(
            "Simulator ready - client: %s, agent: %s",
            "offline" if self.driver.client.offline_mode else settings.model,
            "local mode" if self.agent.use_local_mode else settings.model,
        )

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Simulation task failed: %s", exc, exc_info=exc)

    async def start(self) -> Dict[str, Any]:
        if not self.driver.state.is_active:
            self._spawn(self.driver.start())
            # let the loop take its first step so the reply reflects it
            await asyncio.sleep(0)
        return self.state()

    def pause(self) -> Dict[str, Any]:
        self.driver.pause()
        return self.state()

    async def resume(self) -> Dict[str, Any]:
        if self.driver.state.is_paused:
            self._spawn(self.driver.resume())
            await asyncio.sleep(0)
        return self.state()

    def stop(self) -> Dict[str, Any]:
        self.driver.stop()
        return self.state()

    def reset(self) -> Dict[str, Any]:
        self.driver.reset()
        self.events.drain()
        return self.state()

    def state(self) -> Dict[str, Any]:
        return {**self.driver.state.model_dump(), "user_id": self.driver.user_id}

    def persona(self) -> Dict[str, Any]:
        return self.driver.persona.model_dump()

    def drain_events(self) -> List[Dict[str, Any]]:
        return [event.model_dump(mode="json") for event in self.events.drain()]

    def stats(self) -> Optional[Dict[str, Any]]:
        stats = self.driver.last_stats
        return stats.model_dump() if stats is not None else None

    async def wait_idle(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        self.driver.stop()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self.memory.close()
