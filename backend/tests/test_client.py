import random

import pytest

from conftest import BrokenGenerator, FailingGenerator, ScriptedGenerator
from src.simulator.client import ClientSimulator, fallback_messages
from src.simulator.events import EventChannel
from src.simulator.persona import PersonaGenerator
from src.simulator.schemas import TEST_PLAN, ChatEvent, Persona


def _persona() -> Persona:
    return Persona(
        name="Carmen",
        age=31,
        profession="contador",
        personality="muy organizada",
        financial_situation="quiere empezar a ahorrar",
    )


def test_persona_generator_is_seeded():
    first = PersonaGenerator(random.Random(5)).generate()
    second = PersonaGenerator(random.Random(5)).generate()
    assert first == second
    assert 25 <= first.age <= 54


def test_persona_rejects_out_of_range_age():
    with pytest.raises(ValueError):
        Persona(name="X", age=60, profession="p", personality="q", financial_situation="r")


@pytest.mark.parametrize("intent", TEST_PLAN)
def test_every_intent_has_fallback_lines(intent):
    lines = fallback_messages(intent, _persona(), random.Random(1))
    assert lines
    assert all(line.strip() for line in lines)


def test_unknown_intent_has_generic_fallback():
    assert fallback_messages("smalltalk", _persona(), random.Random(1)) == ["Continúo con la conversación"]


@pytest.mark.asyncio
async def test_offline_client_uses_fallback():
    client = ClientSimulator(_persona(), rng=random.Random(2))
    assert client.offline_mode

    message = await client.generate_message("greeting")
    assert "Carmen" in message


@pytest.mark.asyncio
async def test_remote_failure_uses_fallback():
    generator = FailingGenerator()
    client = ClientSimulator(_persona(), generator, rng=random.Random(2))

    message = await client.generate_message("farewell")

    assert generator.calls == 1
    assert message in fallback_messages("farewell", _persona(), random.Random(0))


@pytest.mark.asyncio
async def test_prompt_carries_persona_and_recent_history():
    generator = ScriptedGenerator(["Hola!"])
    client = ClientSimulator(_persona(), generator, history_exchanges=2)
    for i in range(3):
        client.add_to_history(f"mensaje {i}", f"respuesta {i}")

    await client.generate_message("follow_up")

    system_prompt, user_prompt = generator.calls[0]
    assert "Carmen" in system_prompt
    assert "muy organizada" in system_prompt
    assert "mensaje 0" not in user_prompt
    assert 'Tú: "mensaje 2"' in user_prompt
    assert 'SofIA: "respuesta 1"' in user_prompt


def test_reset_clears_history():
    client = ClientSimulator(_persona())
    client.add_to_history("a", "b")
    client.reset(_persona().model_copy(update={"name": "Luis"}))
    assert client.history == []
    assert client.persona.name == "Luis"


def test_event_channel_fifo_and_unsubscribe():
    channel = EventChannel()
    seen = []
    unsubscribe = channel.subscribe(seen.append)

    channel.publish(ChatEvent(content="uno", sender="client"))
    unsubscribe()
    channel.publish(ChatEvent(content="dos", sender="agent"))

    assert [e.content for e in seen] == ["uno"]
    assert [e.content for e in channel.drain()] == ["uno", "dos"]
    assert len(channel) == 0


@pytest.mark.asyncio
async def test_unexpected_generator_error_uses_fallback():
    generator = BrokenGenerator()
    client = ClientSimulator(_persona(), generator, rng=random.Random(2))

    message = await client.generate_message("greeting")

    assert generator.calls == 1
    assert "Carmen" in message
