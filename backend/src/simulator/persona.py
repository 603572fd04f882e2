from __future__ import annotations

from typing import Optional, Sequence
import random

from .schemas import Persona

NAMES: Sequence[str] = ("María", "Carlos", "Ana", "José", "Carmen", "Luis", "Elena", "Diego", "Sofia", "Miguel")
PROFESSIONS: Sequence[str] = (
    "ingeniera de software",
    "médico",
    "profesora",
    "contador",
    "diseñadora gráfica",
    "vendedor",
    "enfermera",
    "abogado",
    "arquitecta",
    "freelancer",
)
PERSONALITIES: Sequence[str] = (
    "cautelosa con el dinero",
    "impulsiva en compras",
    "muy organizada",
    "preocupada por el futuro",
    "optimista financiera",
    "práctica y directa",
)
FINANCIAL_SITUATIONS: Sequence[str] = (
    "quiere empezar a ahorrar",
    "busca invertir por primera vez",
    "tiene deudas que controlar",
    "planea comprar casa",
    "quiere mejorar sus finanzas",
    "acaba de recibir aumento de sueldo",
)


class PersonaGenerator:
    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()

    def generate(self) -> Persona:
        return Persona(
            name=self.rng.choice(NAMES),
            age=self.rng.randint(25, 54),
            profession=self.rng.choice(PROFESSIONS),
            personality=self.rng.choice(PERSONALITIES),
            financial_situation=self.rng.choice(FINANCIAL_SITUATIONS),
        )
