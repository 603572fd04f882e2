import asyncio
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from src.advisor.memory import ConversationMemory
from src.advisor.schemas import Exchange
from src.advisor.storage import CONVERSATIONS, USER_PROFILES, InMemoryStore, JsonFileStore


def test_stored_log_is_a_sliding_window(store):
    memory = ConversationMemory(store, max_context_messages=3)
    for i in range(5):
        memory.add_message("u1", f"msg {i}", f"reply {i}")

    context = memory.get_conversation_context("u1")
    assert [e.user for e in context.recent_messages] == ["msg 2", "msg 3", "msg 4"]
    assert context.total_interactions == 3
    assert context.first_interaction == context.recent_messages[0].timestamp


def test_retention_factor_keeps_more_than_context(store):
    memory = ConversationMemory(store, max_context_messages=2, retention_factor=2)
    for i in range(6):
        memory.add_message("u1", f"msg {i}", "ok")

    assert len(memory.conversations["u1"]) == 4
    assert len(memory.get_conversation_context("u1").recent_messages) == 2


def test_context_is_side_effect_free(memory):
    memory.add_message("u1", "hola", "hola!")
    context = memory.get_conversation_context("u1")
    context.recent_messages[0].user = "changed"
    context.user_profile.name = "Nope"

    assert memory.conversations["u1"][0].user == "hola"
    assert memory.get_user_profile("u1").name is None


def test_unknown_user_context_is_empty(memory):
    context = memory.get_conversation_context("nobody")
    assert context.recent_messages == []
    assert context.total_interactions == 0
    assert context.first_interaction is None


@pytest.mark.asyncio
async def test_exchange_writes_are_debounced(memory, store):
    memory.add_message("u1", "a", "b")
    memory.add_message("u1", "c", "d")
    memory.add_message("u1", "e", "f")

    assert store.writes.get(CONVERSATIONS, 0) == 0
    assert memory.has_pending_writes()

    await asyncio.sleep(0.15)

    assert store.writes[CONVERSATIONS] == 1
    assert len(store.records[CONVERSATIONS]["u1"]) == 3
    assert not memory.has_pending_writes()


def test_exchange_write_without_loop_is_immediate(memory, store):
    memory.add_message("u1", "a", "b")
    assert store.writes[CONVERSATIONS] == 1


@pytest.mark.asyncio
async def test_force_sync_cancels_pending_timer(memory, store):
    memory.add_message("u1", "a", "b")
    memory.force_sync()

    assert store.writes[CONVERSATIONS] == 1
    assert not memory.has_pending_writes()

    await asyncio.sleep(0.15)
    assert store.writes[CONVERSATIONS] == 1


def test_force_sync_is_idempotent(memory, store):
    memory.force_sync()
    memory.force_sync()
    assert store.writes[CONVERSATIONS] == 2
    assert store.records[USER_PROFILES] == {}


@pytest.mark.asyncio
async def test_profile_writes_are_immediate(memory, store):
    memory.register_income("u1", 2500, source="sueldo")
    assert store.writes[USER_PROFILES] == 1
    assert store.records[USER_PROFILES]["u1"]["financial_data"]["income"][0]["amount"] == 2500


def test_update_user_profile_shallow_merge(memory):
    memory.update_user_profile("u1", {"name": "Ana", "city": "Lima"})
    profile = memory.update_user_profile("u1", {"city": "Cusco"})

    assert profile.name == "Ana"
    assert profile.city == "Cusco"
    assert profile.last_updated is not None


def test_update_user_profile_replaces_nested_fields(memory):
    memory.register_expense("u1", 100, category="ropa")
    profile = memory.update_user_profile("u1", {"financial_data": {"income": [], "expenses": []}})
    assert profile.financial_data.expenses == []


def test_register_defaults(memory):
    income = memory.register_income("u1", 1800)
    expense = memory.register_expense("u1", 60.5)

    assert income.source == "unspecified"
    assert income.currency == "soles"
    assert expense.category == "unspecified"
    profile = memory.get_user_profile("u1")
    assert len(profile.financial_data.income) == 1
    assert len(profile.financial_data.expenses) == 1


@pytest.mark.parametrize("amount", [0, -10])
def test_register_rejects_non_positive_amount(memory, amount):
    with pytest.raises(ValidationError):
        memory.register_income("u1", amount)
    assert memory.get_user_profile("u1").financial_data.income == []


def test_discard_user(memory):
    memory.add_message("u1", "a", "b")
    memory.register_income("u1", 10)
    memory.discard_user("u1")

    assert "u1" not in memory.conversations
    assert "u1" not in memory.user_profiles


def test_clean_old_conversations(memory):
    old = (datetime.now() - timedelta(days=40)).isoformat()
    memory.conversations["u1"] = [Exchange(user="old", agent="x", timestamp=old)]
    memory.add_message("u1", "new", "y")

    removed = memory.clean_old_conversations(days_old=30)

    assert removed == 1
    assert [e.user for e in memory.conversations["u1"]] == ["new"]


def test_get_stats(memory):
    memory.add_message("u1", "a", "b")
    memory.add_message("u1", "c", "d")
    memory.add_message("u2", "e", "f")

    assert memory.get_stats() == {"total_users": 2, "total_conversations": 3, "active_users_today": 2}


def test_load_skips_invalid_entries():
    store = InMemoryStore(
        {
            CONVERSATIONS: {"good": [{"user": "a", "agent": "b"}], "bad": [{"nope": 1}]},
            USER_PROFILES: {"good": {"name": "Ana"}},
        }
    )
    memory = ConversationMemory(store)
    memory.load()

    assert list(memory.conversations) == ["good"]
    assert memory.get_user_profile("good").name == "Ana"


def test_corrupt_json_file_loads_as_empty(tmp_path):
    (tmp_path / "conversations.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "user_profiles.json").write_text('{"u1": {"name": "Luis"}}', encoding="utf-8")

    memory = ConversationMemory(JsonFileStore(tmp_path))
    memory.load()

    assert memory.conversations == {}
    assert memory.get_user_profile("u1").name == "Luis"


def test_json_store_persists_across_instances(tmp_path):
    first = ConversationMemory(JsonFileStore(tmp_path / "data"))
    first.load()
    first.add_message("u1", "Gané 3500", "¡Genial!")
    first.register_income("u1", 3500, source="comisiones")
    first.close()

    second = ConversationMemory(JsonFileStore(tmp_path / "data"))
    second.load()

    assert second.get_conversation_context("u1").recent_messages[0].user == "Gané 3500"
    assert second.get_user_profile("u1").financial_data.income[0].source == "comisiones"
