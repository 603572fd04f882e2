from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
import logging
import random

from src.core.errors import RemoteCallError

from .schemas import Persona

logger = logging.getLogger(__name__)

CLIENT_SEARCH_DOMAINS: Tuple[str, ...] = (
    "wikipedia.org",
    "bcp.com.pe",
    "interbank.pe",
    "-pinterest.com",
    "-reddit.com",
)

INTENT_GOALS: Dict[str, str] = {
    "greeting": "Salúdate y di tu nombre de forma natural",
    "income_report": "Menciona cuánto ganaste recientemente (trabajo, freelance, etc.)",
    "expense_report": "Comenta sobre gastos que tuviste (compras, servicios, etc.)",
    "financial_question": "Haz una pregunta sobre finanzas personales o inversiones",
    "goal_setting": "Menciona una meta financiera que tienes",
    "advice_request": "Pide consejo específico sobre tu situación financiera",
    "follow_up": "Comenta algo que te dijo SofIA o pide más detalles",
    "farewell": "Despídete de forma natural y agradece",
}


def fallback_messages(intent: str, persona: Persona, rng: random.Random) -> List[str]:
    """Canned client lines for one plan step. Amounts are drawn from ``rng``."""
    table: Dict[str, List[str]] = {
        "greeting": [
            f"Hola! Soy {persona.name}, trabajo como {persona.profession}",
            f"Buenas! Me llamo {persona.name}",
            f"Hola Sofia! Soy {persona.name}",
        ],
        "income_report": [
            f"Este mes me llegaron como {rng.randrange(2500, 4500)} soles del trabajo",
            f"Recibí mi sueldo de {rng.randrange(3000, 5000)} soles",
            f"Me pagaron {rng.randrange(2800, 4300)} soles esta semana",
        ],
        "expense_report": [
            f"Gasté como {rng.randrange(300, 800)} soles en el super esta semana",
            f"Se me fueron {rng.randrange(400, 1200)} soles en comida este mes",
            f"Pagué {rng.randrange(150, 450)} soles de luz y agua",
        ],
        "financial_question": [
            "¿Crees que es buen momento para invertir?",
            "¿Cuánto debería ahorrar al mes?",
            "¿Qué opinas de los bancos digitales?",
            "¿Es buena idea tener cuenta en dólares?",
        ],
        "goal_setting": [
            "Quiero ahorrar para una casa",
            "Mi meta es juntar como 10 mil soles este año",
            "Quiero empezar a invertir en algo seguro",
            "Necesito un fondo de emergencia",
        ],
        "advice_request": [
            "¿Qué me recomiendas para manejar mejor mi dinero?",
            "¿Cómo puedo reducir mis gastos?",
            "¿En qué banco me conviene ahorrar?",
            "¿Debería usar tarjeta de crédito?",
        ],
        "follow_up": [
            "Interesante lo que me dices",
            "Eso no lo sabía",
            "¿Podrías explicarme más?",
            "Tiene sentido",
        ],
        "farewell": [
            "Gracias por todo! Nos vemos",
            "Muchas gracias Sofia!",
            "Me ayudaste mucho, hasta la próxima!",
        ],
    }
    return table.get(intent, ["Continúo con la conversación"])


class ClientSimulator:
    """Writes the synthetic client's side of the chat for a given plan intent."""

    def __init__(
        self,
        persona: Persona,
        generator: Any = None,
        *,
        rng: Optional[random.Random] = None,
        history_exchanges: int = 2,
    ) -> None:
        self.persona = persona
        self.generator = generator
        self.rng = rng or random.Random()
        self.history_exchanges = history_exchanges
        self.history: List[Tuple[str, str]] = []

    @property
    def offline_mode(self) -> bool:
        return self.generator is None or not bool(getattr(self.generator, "available", True))

    def fallback_message(self, intent: str) -> str:
        return self.rng.choice(fallback_messages(intent, self.persona, self.rng))

    async def generate_message(self, intent: str) -> str:
        if self.offline_mode:
            return self.fallback_message(intent)

        try:
            return await self.generator.generate(
                self.build_system_prompt(intent),
                self.build_user_prompt(intent),
            )
        except RemoteCallError as exc:
            logger.error("Client message generation failed for intent %s: %s", intent, exc)
            return self.fallback_message(intent)
        except Exception:
            logger.exception("Unexpected error generating client message for intent %s", intent)
            return self.fallback_message(intent)

    def add_to_history(self, user_message: str, bot_response: str) -> None:
        self.history.append((user_message, bot_response))

    def reset(self, persona: Persona) -> None:
        self.persona = persona
        self.history = []

    def build_system_prompt(self, intent: str) -> str:
        p = self.persona
        return (
            f"Eres {p.name}, una persona de {p.age} años que trabaja como {p.profession}.\n"
            f"Tu personalidad: {p.personality}. Tu situación financiera: {p.financial_situation}.\n"
            "Hablas con SofIA, un bot de asesoría financiera por WhatsApp.\n"
            "Escribe como en WhatsApp, informal y natural, en 1-2 oraciones. "
            "Usa cantidades concretas en soles peruanos, sin símbolos de moneda.\n"
            f"Objetivo actual: {INTENT_GOALS.get(intent, 'Continúa la conversación naturalmente')}"
        )

    def build_user_prompt(self, intent: str) -> str:
        lines = [f"Genera UN mensaje de WhatsApp natural para {intent}."]
        recent = self.history[-self.history_exchanges :] if self.history_exchanges > 0 else []
        if recent:
            lines.append("")
            lines.append(f"Conversación previa (últimos {len(recent)} intercambios):")
            for mine, reply in recent:
                lines.append(f'Tú: "{mine}"')
                lines.append(f'SofIA: "{reply}"')
        lines.append("")
        lines.append("Escribe tu próximo mensaje considerando tu personalidad y el contexto.")
        return "\n".join(lines)
