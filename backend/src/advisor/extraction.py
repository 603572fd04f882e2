"""
Heuristic extraction of amounts, income, expenses and names from chat text.

Amounts are resolved with a single-tier-wins policy: format tiers are tried in
priority order and the first tier with at least one positive value is the only
one used for the whole message.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Tuple
import logging
import re

from .schemas import UNSPECIFIED, DetectedFacts, ExpenseCandidate, IncomeCandidate

logger = logging.getLogger(__name__)


def _strip_commas(raw: str) -> str:
    return raw.replace(",", "")


def _strip_periods(raw: str) -> str:
    return raw.replace(".", "")


def _european(raw: str) -> str:
    return raw.replace(".", "").replace(",", ".")


def _as_is(raw: str) -> str:
    return raw


AMOUNT_TIERS: Sequence[Tuple[str, "re.Pattern[str]", Callable[[str], str]]] = (
    # 1,500.50
    ("us_grouped_decimal", re.compile(r"(?<!\d)\d{1,3}(?:,\d{3})*\.\d{1,2}(?!\d)"), _strip_commas),
    # 1.500,50
    ("eu_grouped_decimal", re.compile(r"(?<!\d)\d{1,3}(?:\.\d{3})*,\d{1,2}(?!\d)"), _european),
    # 1,500
    ("comma_thousands", re.compile(r"(?<!\d)\d{1,3}(?:,\d{3})+(?!\d)"), _strip_commas),
    # 1.500
    ("period_thousands", re.compile(r"(?<!\d)\d{1,3}(?:\.\d{3})+(?!\d)"), _strip_periods),
    # 15.75
    ("simple_decimal", re.compile(r"(?<!\d)\d+\.\d{1,2}(?!\d)"), _as_is),
    # 1500
    ("integer", re.compile(r"\d+"), _as_is),
)

INCOME_KEYWORDS: Tuple[str, ...] = ("gané", "ganó", "ingreso", "sueldo", "salario", "comisión", "básico", "pago")
EXPENSE_KEYWORDS: Tuple[str, ...] = ("gasté", "gastó", "compré", "pagué", "gasto")

INCOME_SOURCES: Tuple[Tuple[str, str], ...] = (
    ("comisión", "comisiones"),
    ("sueldo", "sueldo"),
    ("básico", "sueldo básico"),
    ("ventas", "ventas"),
    ("trabajo", "trabajo"),
)
EXPENSE_CATEGORIES: Tuple[Tuple[str, str], ...] = (
    ("super", "alimentación"),
    ("comida", "alimentación"),
    ("luz", "servicios"),
    ("agua", "servicios"),
    ("transporte", "transporte"),
    ("ropa", "ropa"),
    ("gasolina", "transporte"),
)

NAME_RE = re.compile(r"soy\s+(\w+)|me\s+llamo\s+(\w+)|mi\s+nombre\s+es\s+(\w+)", re.IGNORECASE)


def extract_amounts(text: str) -> List[float]:
    amounts: List[float] = []
    for _, pattern, normalize in AMOUNT_TIERS:
        for match in pattern.findall(text or ""):
            try:
                value = float(normalize(match))
            except ValueError:
                continue
            if value > 0:
                amounts.append(value)
        if amounts:
            break
    return amounts


def _mentions(text: str, keywords: Sequence[str]) -> bool:
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in keywords)


def _first_label(text: str, table: Sequence[Tuple[str, str]]) -> str:
    lowered = (text or "").lower()
    for key, label in table:
        if key in lowered:
            return label
    return UNSPECIFIED


class FinancialFactDetector:
    def __init__(
        self,
        *,
        income_keywords: Sequence[str] = INCOME_KEYWORDS,
        expense_keywords: Sequence[str] = EXPENSE_KEYWORDS,
        income_sources: Sequence[Tuple[str, str]] = INCOME_SOURCES,
        expense_categories: Sequence[Tuple[str, str]] = EXPENSE_CATEGORIES,
    ) -> None:
        self.income_keywords = tuple(income_keywords)
        self.expense_keywords = tuple(expense_keywords)
        self.income_sources = tuple(income_sources)
        self.expense_categories = tuple(expense_categories)

    def detect_income_source(self, text: str) -> str:
        return _first_label(text, self.income_sources)

    def detect_expense_category(self, text: str) -> str:
        return _first_label(text, self.expense_categories)

    def detect_income(self, text: str) -> List[IncomeCandidate]:
        if not _mentions(text, self.income_keywords):
            return []
        source = self.detect_income_source(text)
        return [IncomeCandidate(amount=amount, source=source) for amount in extract_amounts(text)]

    def detect_expenses(self, text: str) -> List[ExpenseCandidate]:
        if not _mentions(text, self.expense_keywords):
            return []
        category = self.detect_expense_category(text)
        return [ExpenseCandidate(amount=amount, category=category) for amount in extract_amounts(text)]

    @staticmethod
    def detect_name(text: str) -> Optional[str]:
        match = NAME_RE.search(text or "")
        if not match:
            return None
        return next((group for group in match.groups() if group), None)

    def detect(self, text: str) -> DetectedFacts:
        facts = DetectedFacts(
            name=self.detect_name(text),
            incomes=self.detect_income(text),
            expenses=self.detect_expenses(text),
        )
        if facts.name or facts.incomes or facts.expenses:
            logger.debug("Facts detected in %r: %s", (text or "")[:60], facts.model_dump())
        return facts
