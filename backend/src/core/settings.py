from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import os


def _env(name: str, default: str = "") -> str:
    return (os.environ.get(name, default) or "").strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class SimulatorSettings:
    api_key: str = ""
    base_url: str = "https://api.perplexity.ai"
    model: str = "sonar"
    agent_max_tokens: int = 1500
    client_max_tokens: int = 150
    max_context_messages: int = 10
    save_delay: float = 2.0
    turn_delay: float = 1.0
    exchange_delay: float = 1.5
    data_dir: str = "./data"
    seed: Optional[int] = None

    @property
    def offline(self) -> bool:
        return not self.api_key


def load_settings() -> SimulatorSettings:
    seed = _env("SIMULATOR_SEED")
    return SimulatorSettings(
        api_key=_env("PERPLEXITY_API_KEY"),
        base_url=_env("PERPLEXITY_BASE_URL", "https://api.perplexity.ai"),
        model=_env("SIMULATOR_MODEL", "sonar"),
        agent_max_tokens=_env_int("SOFIA_MAX_TOKENS", 1500),
        client_max_tokens=_env_int("SIMULATOR_MAX_TOKENS", 150),
        max_context_messages=_env_int("SIMULATOR_MAX_CONTEXT", 10),
        save_delay=_env_float("SIMULATOR_SAVE_DELAY", 2.0),
        turn_delay=_env_float("SIMULATOR_TURN_DELAY", 1.0),
        exchange_delay=_env_float("SIMULATOR_EXCHANGE_DELAY", 1.5),
        data_dir=_env("SIMULATOR_DATA_DIR", "./data"),
        seed=int(seed) if seed.lstrip("-").isdigit() else None,
    )
