from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional
import asyncio
import logging

from pydantic import ValidationError

from src.core.errors import PersistenceError

from .schemas import (
    DEFAULT_CURRENCY,
    UNSPECIFIED,
    ConversationContext,
    Exchange,
    Transaction,
    UserProfile,
)
from .storage import CONVERSATIONS, USER_PROFILES, ConversationStore

logger = logging.getLogger(__name__)


class ConversationMemory:
    """
    Per-user exchange log plus profile store, backed by a ConversationStore.

    Lifecycle: construct -> load() -> add/update -> force_sync() -> close().
    Exchange logs are written debounced (one timer per record, reset on each
    request); profile updates are written immediately so registered money
    movements survive an abrupt exit.
    """

    def __init__(
        self,
        store: ConversationStore,
        *,
        max_context_messages: int = 10,
        retention_factor: int = 1,
        save_delay: float = 2.0,
    ) -> None:
        self.store = store
        self.max_context_messages = max(1, int(max_context_messages))
        self.max_stored_exchanges = self.max_context_messages * max(1, int(retention_factor))
        self.save_delay = save_delay
        self.conversations: Dict[str, List[Exchange]] = {}
        self.user_profiles: Dict[str, UserProfile] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    # ---------- lifecycle ----------

    def load(self) -> None:
        self.conversations = {}
        for user_id, raw in self._read(CONVERSATIONS).items():
            try:
                self.conversations[user_id] = [Exchange.model_validate(item) for item in raw or []]
            except (TypeError, ValidationError) as exc:
                logger.warning("Skipping unreadable conversation for %s: %s", user_id, exc)

        self.user_profiles = {}
        for user_id, raw in self._read(USER_PROFILES).items():
            try:
                self.user_profiles[user_id] = UserProfile.model_validate(raw or {})
            except (TypeError, ValidationError) as exc:
                logger.warning("Skipping unreadable profile for %s: %s", user_id, exc)

    def close(self) -> None:
        self.force_sync()

    def _read(self, name: str) -> Dict[str, Any]:
        try:
            return self.store.read(name)
        except PersistenceError as exc:
            logger.error("Error loading %s, starting empty: %s", name, exc)
            return {}

    # ---------- persistence ----------

    def _snapshot(self, name: str) -> Dict[str, Any]:
        if name == CONVERSATIONS:
            return {
                user_id: [exchange.model_dump() for exchange in log]
                for user_id, log in self.conversations.items()
            }
        return {user_id: profile.model_dump() for user_id, profile in self.user_profiles.items()}

    def _write(self, name: str) -> None:
        try:
            self.store.write(name, self._snapshot(name))
        except PersistenceError as exc:
            logger.error("Error saving %s: %s", name, exc)

    def _cancel(self, name: str) -> None:
        handle = self._timers.pop(name, None)
        if handle is not None:
            handle.cancel()

    def _fire(self, name: str) -> None:
        self._timers.pop(name, None)
        self._write(name)

    def _write_debounced(self, name: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no loop to schedule on
            self._write(name)
            return
        self._cancel(name)
        self._timers[name] = loop.call_later(self.save_delay, self._fire, name)

    def has_pending_writes(self) -> bool:
        return bool(self._timers)

    def force_sync(self) -> None:
        self._cancel(CONVERSATIONS)
        self._cancel(USER_PROFILES)
        self._write(CONVERSATIONS)
        self._write(USER_PROFILES)
        logger.info("Conversation memory synced to store")

    # ---------- exchanges ----------

    def add_message(self, user_id: str, user_message: str, agent_response: str) -> Exchange:
        exchange = Exchange(user=user_message, agent=agent_response)
        log = self.conversations.setdefault(user_id, [])
        log.append(exchange)
        if len(log) > self.max_stored_exchanges:
            del log[: len(log) - self.max_stored_exchanges]
        self._write_debounced(CONVERSATIONS)
        return exchange

    def get_conversation_context(self, user_id: str) -> ConversationContext:
        log = self.conversations.get(user_id, [])
        return ConversationContext(
            recent_messages=[exchange.model_copy() for exchange in log[-self.max_context_messages :]],
            user_profile=self.get_user_profile(user_id),
            total_interactions=len(log),
            first_interaction=log[0].timestamp if log else None,
            last_interaction=log[-1].timestamp if log else None,
        )

    # ---------- profiles ----------

    def get_user_profile(self, user_id: str) -> UserProfile:
        profile = self.user_profiles.get(user_id)
        return profile.model_copy(deep=True) if profile is not None else UserProfile()

    def update_user_profile(self, user_id: str, profile_data: Mapping[str, Any] | UserProfile) -> UserProfile:
        fields = dict(profile_data)
        existing = self.user_profiles.get(user_id)
        merged: Dict[str, Any] = dict(existing) if existing is not None else {}
        merged.update(fields)
        merged["last_updated"] = datetime.now().isoformat()

        updated = UserProfile.model_validate(merged).model_copy(deep=True)
        self.user_profiles[user_id] = updated
        self._cancel(USER_PROFILES)
        self._write(USER_PROFILES)
        return updated.model_copy(deep=True)

    def register_income(
        self,
        user_id: str,
        amount: float,
        source: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Transaction:
        transaction = Transaction(
            amount=amount,
            source=source or UNSPECIFIED,
            currency=currency or DEFAULT_CURRENCY,
        )
        profile = self.get_user_profile(user_id)
        profile.financial_data.income.append(transaction)
        self.update_user_profile(user_id, {"financial_data": profile.financial_data})
        logger.info("Income registered: S/%s (%s) for %s", amount, transaction.source, user_id)
        return transaction

    def register_expense(
        self,
        user_id: str,
        amount: float,
        category: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Transaction:
        transaction = Transaction(
            amount=amount,
            category=category or UNSPECIFIED,
            currency=currency or DEFAULT_CURRENCY,
        )
        profile = self.get_user_profile(user_id)
        profile.financial_data.expenses.append(transaction)
        self.update_user_profile(user_id, {"financial_data": profile.financial_data})
        logger.info("Expense registered: S/%s (%s) for %s", amount, transaction.category, user_id)
        return transaction

    def discard_user(self, user_id: str) -> None:
        had_log = self.conversations.pop(user_id, None) is not None
        had_profile = self.user_profiles.pop(user_id, None) is not None
        if had_log:
            self._write_debounced(CONVERSATIONS)
        if had_profile:
            self._write(USER_PROFILES)

    # ---------- housekeeping ----------

    def clean_old_conversations(self, days_old: int = 30) -> int:
        cutoff = datetime.now() - timedelta(days=days_old)
        removed = 0
        for user_id, log in list(self.conversations.items()):
            kept = [exchange for exchange in log if _parse_timestamp(exchange.timestamp) > cutoff]
            if len(kept) != len(log):
                removed += len(log) - len(kept)
                self.conversations[user_id] = kept
        self._cancel(CONVERSATIONS)
        self._write(CONVERSATIONS)
        return removed

    def get_stats(self) -> Dict[str, int]:
        today = datetime.now().date()
        active_today = sum(
            1 for log in self.conversations.values() if log and _parse_timestamp(log[-1].timestamp).date() == today
        )
        return {
            "total_users": len(self.conversations),
            "total_conversations": sum(len(log) for log in self.conversations.values()),
            "active_users_today": active_today,
        }


def _parse_timestamp(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
    except (AttributeError, ValueError):
        return datetime.min
