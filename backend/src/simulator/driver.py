"""
Conversation driver: walks the synthetic client through the test plan.

States: idle -> running -> (paused <-> running) -> stopped. The step counter
only moves once a turn is complete (client message emitted, reply emitted and
stored), so pausing mid-turn keeps the pending message/reply and resumes from
there instead of regenerating or skipping anything.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional
import asyncio
import logging
import random
import uuid

from src.advisor.agent import FinanceAgent
from src.advisor.memory import ConversationMemory
from src.advisor.schemas import SimulationStats
from src.advisor.stats import aggregate_stats

from .client import ClientSimulator
from .events import EventChannel
from .persona import PersonaGenerator
from .schemas import TEST_PLAN, ChatEvent, ConversationState, Persona, StatsEvent

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


def new_user_id() -> str:
    return f"ai_client_{uuid.uuid4().hex}"


class ConversationDriver:
    def __init__(
        self,
        *,
        memory: ConversationMemory,
        agent: FinanceAgent,
        client_generator: Any = None,
        events: Optional[EventChannel] = None,
        persona_generator: Optional[PersonaGenerator] = None,
        rng: Optional[random.Random] = None,
        turn_delay: float = 1.0,
        exchange_delay: float = 1.5,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.memory = memory
        self.agent = agent
        self.events = events or EventChannel()
        self.rng = rng or random.Random()
        self.persona_generator = persona_generator or PersonaGenerator(self.rng)
        self.client = ClientSimulator(self.persona_generator.generate(), client_generator, rng=self.rng)
        self.turn_delay = turn_delay
        self.exchange_delay = exchange_delay
        self._sleep = sleep

        self.user_id = new_user_id()
        self.last_stats: Optional[SimulationStats] = None
        self._state = ConversationState(total_steps=len(TEST_PLAN))
        self._pending_client: Optional[str] = None
        self._pending_reply: Optional[str] = None
        self._run_id = 0
        self._loop_run_id: Optional[int] = None

    # ---------- read-only views ----------

    @property
    def state(self) -> ConversationState:
        return self._state.model_copy()

    @property
    def persona(self) -> Persona:
        return self.client.persona

    # ---------- transitions ----------

    async def start(self) -> None:
        if self._state.is_active:
            return
        self._set_state(is_active=True, is_paused=False)
        self._run_id += 1
        p = self.persona
        self._publish_system(f"👤 Cliente IA generado: {p.name}, {p.age} años, {p.profession}", sender="client")
        await self._run_conversation()

    def pause(self) -> None:
        if self._state.is_active:
            self._set_state(is_paused=True)

    async def resume(self) -> None:
        if not self._state.is_paused:
            return
        self._set_state(is_paused=False)
        if not self._state.is_active or self._loop_run_id == self._run_id:
            # a suspended loop of this run picks the flag up on wake
            return
        await self._run_conversation()

    def stop(self) -> None:
        self._set_state(is_active=False, is_paused=False)
        self._run_id += 1

    def reset(self) -> None:
        self.stop()
        self.memory.discard_user(self.user_id)
        self.user_id = new_user_id()
        self.client.reset(self.persona_generator.generate())
        self._pending_client = None
        self._pending_reply = None
        self.last_stats = None
        self._set_state(current_step=0)

    # ---------- loop ----------

    def _is_current(self, run_id: int) -> bool:
        return run_id == self._run_id and self._state.is_active

    def _can_continue(self, run_id: int) -> bool:
        return self._is_current(run_id) and not self._state.is_paused

    async def _run_conversation(self) -> None:
        run_id = self._run_id
        user_id = self.user_id
        self._loop_run_id = run_id
        try:
            while self._can_continue(run_id):
                if self._pending_client is None:
                    if self._state.current_step >= self._state.total_steps:
                        self._finish()
                        break

                    intent = TEST_PLAN[self._state.current_step]
                    message = await self.client.generate_message(intent)
                    if not self._is_current(run_id):
                        break
                    self._pending_client = message
                    self.events.publish(ChatEvent(content=message, sender="client"))

                    await self._sleep(self.turn_delay)
                    if not self._can_continue(run_id):
                        break

                if self._pending_reply is None:
                    context = self.memory.get_conversation_context(user_id)
                    try:
                        reply = await self.agent.generate_response(self._pending_client, context, user_id)
                    except Exception:
                        logger.exception("Error in conversation at step %s", self._state.current_step)
                        if not self._is_current(run_id):
                            break
                        self._publish_system("❌ Error en la conversación", sender="agent")
                        self._pending_client = None
                        self._advance()
                        await self._sleep(self.exchange_delay)
                        continue

                    if not self._is_current(run_id):
                        if user_id != self.user_id:
                            # reset happened mid-call; drop facts the reply registered
                            self.memory.discard_user(user_id)
                        else:
                            # facts are already registered, so the next run must not ask again
                            self._pending_reply = reply
                        break
                    self._pending_reply = reply
                    if self._state.is_paused:
                        break

                self._complete_turn()
                await self._sleep(self.exchange_delay)
        except Exception:
            if run_id == self._run_id:
                self._set_state(is_active=False, is_paused=False)
            raise
        finally:
            if self._loop_run_id == run_id:
                self._loop_run_id = None

    def _complete_turn(self) -> None:
        message, reply = self._pending_client, self._pending_reply
        self.events.publish(ChatEvent(content=reply, sender="agent"))
        self.memory.add_message(self.user_id, message, reply)
        self.client.add_to_history(message, reply)
        self._pending_client = None
        self._pending_reply = None
        self._advance()

    def _advance(self) -> None:
        self._set_state(current_step=min(self._state.current_step + 1, self._state.total_steps))

    def _finish(self) -> None:
        self._set_state(is_active=False, is_paused=False)
        self._publish_system("🏁 Conversación terminada", sender="client")
        stats = aggregate_stats(self.memory.get_user_profile(self.user_id))
        self.last_stats = stats
        self.events.publish(StatsEvent(stats=stats))
        logger.info(
            "Simulation finished: %s incomes, %s expenses, name detected=%s",
            stats.income_count,
            stats.expense_count,
            stats.name_detected,
        )

    # ---------- helpers ----------

    def _set_state(self, **changes: Any) -> None:
        self._state = ConversationState(**{**self._state.model_dump(), **changes})

    def _publish_system(self, content: str, *, sender: str) -> None:
        self.events.publish(ChatEvent(content=content, sender=sender, kind="system"))
