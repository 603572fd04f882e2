from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging
import random

from src.core.errors import RemoteCallError

from .extraction import FinancialFactDetector, extract_amounts
from .memory import ConversationMemory
from .schemas import ConversationContext, DetectedFacts, FinancialData
from .stats import calculate_financial_summary

logger = logging.getLogger(__name__)

AGENT_NAME = "SofIA"


class FinanceAgent:
    """
    SofIA, the advisor side of the simulated chat.

    Replies come from the remote generator when one is configured; without a
    credential, or when the call fails, a canned local reply is used instead.
    Every user message is scanned for name, income and expenses either way.
    """

    def __init__(
        self,
        memory: ConversationMemory,
        generator: Any = None,
        *,
        detector: Optional[FinancialFactDetector] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.memory = memory
        self.generator = generator
        self.detector = detector or FinancialFactDetector()
        self.rng = rng or random.Random()

    @property
    def use_local_mode(self) -> bool:
        return self.generator is None or not bool(getattr(self.generator, "available", True))

    async def generate_response(self, user_message: str, context: ConversationContext, user_id: str) -> str:
        if self.use_local_mode:
            return self.get_local_response(user_message, context, user_id)

        try:
            response = await self.generator.generate(
                self.build_system_prompt(context),
                self.build_user_prompt(user_message, context),
            )
        except RemoteCallError as exc:
            logger.warning("SofIA remote reply failed, using local reply: %s", exc)
            return self.get_local_response(user_message, context, user_id)

        self.process_financial_info(user_message, user_id)
        return response

    def process_financial_info(self, user_message: str, user_id: str) -> DetectedFacts:
        facts = self.detector.detect(user_message)
        if facts.name:
            self.memory.update_user_profile(user_id, {"name": facts.name})
            logger.info("Name detected: %s", facts.name)
        for income in facts.incomes:
            self.memory.register_income(user_id, income.amount, source=income.source)
        for expense in facts.expenses:
            self.memory.register_expense(user_id, expense.amount, category=expense.category)
        return facts

    def get_local_response(self, user_message: str, context: ConversationContext, user_id: str) -> str:
        name = f" {context.user_profile.name}" if context.user_profile.name else ""
        self.process_financial_info(user_message, user_id)

        if context.total_interactions == 0:
            return (
                f"¡Hola! 👋 Soy {AGENT_NAME}, tu asesora financiera personal. "
                "Ahora mismo estoy en modo básico, pero igual te ayudo a llevar tus ingresos y gastos. "
                "¿Cómo te gusta que te llame? 💰"
            )

        amounts = extract_amounts(user_message)
        if amounts:
            detail = "Veo varios montos ahí." if len(amounts) > 1 else f"Son S/{amounts[0]:g}, ¿verdad?"
            return f"¡Perfecto{name}! 📝 Lo dejé registrado. {detail} ¿Quieres que revisemos cómo vas este mes? 📊"

        responses: List[str] = [
            f"Te entiendo{name} 🤗 Sigamos con tus finanzas, ¿qué necesitas hacer hoy?",
            f"Te escucho{name} 😊 ¿Tienes algún ingreso o gasto que quieras registrar?",
            f"Perfecto{name} 💙 Vamos paso a paso, ¿en qué te apoyo?",
        ]
        return self.rng.choice(responses)

    def build_system_prompt(self, context: ConversationContext) -> str:
        profile = context.user_profile
        data = profile.financial_data
        has_data = bool(data.income or data.expenses)
        relation = (
            "Primera conversación"
            if context.total_interactions == 0
            else f"{context.total_interactions} interacciones previas"
        )
        return (
            f"Eres {AGENT_NAME}, asesora financiera personal del Perú: cálida, empática y práctica.\n"
            f"- Nombre del usuario: {profile.name or 'aún no lo sabes'}\n"
            f"- Relación: {relation}\n"
            f"- Datos financieros: {'tiene registros' if has_data else 'sin registros aún'}\n"
            "Las cantidades son soles peruanos (S/) salvo que digan otra moneda. "
            "Si mencionan dinero, confirma el registro con naturalidad. "
            "Responde en 3-4 oraciones como máximo, con 2-3 emojis y una pregunta de seguimiento."
        )

    def build_user_prompt(self, user_message: str, context: ConversationContext) -> str:
        lines = [f'El usuario me escribió: "{user_message}"']
        recent = context.recent_messages[-2:]
        if recent:
            lines.append("")
            lines.append("Conversación reciente:")
            for index, exchange in enumerate(recent, start=1):
                lines.append(f'{index}. Usuario: "{exchange.user}"')
                lines.append(f'   {AGENT_NAME}: "{exchange.agent}"')

        summary = self.calculate_financial_summary(context.user_profile.financial_data)
        if summary["income_count"] or summary["expense_count"]:
            lines.append("")
            lines.append("Su situación financiera:")
            if summary["income_count"]:
                lines.append(f"- Ingresos: S/{summary['total_income']:,.2f} ({summary['income_count']} registros)")
            if summary["expense_count"]:
                lines.append(f"- Gastos: S/{summary['total_expenses']:,.2f} ({summary['expense_count']} registros)")

        lines.append("")
        lines.append(f"Responde como {AGENT_NAME} de forma natural y personalizada.")
        return "\n".join(lines)

    @staticmethod
    def calculate_financial_summary(financial_data: FinancialData) -> Dict[str, float]:
        return calculate_financial_summary(financial_data)
