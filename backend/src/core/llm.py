from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from .errors import MalformedPayloadError, RemoteCallError

logger = logging.getLogger(__name__)


def _build_llm(
    *,
    api_key: str,
    base_url: str,
    model: str,
    max_tokens: int,
    temperature: float,
    search_context_size: Optional[str],
    search_domain_filter: Optional[List[str]],
) -> ChatOpenAI:
    extra_body: Dict[str, Any] = {}
    if search_context_size:
        extra_body["web_search_options"] = {"search_context_size": search_context_size}
    if search_domain_filter:
        extra_body["search_domain_filter"] = list(search_domain_filter)
    return ChatOpenAI(
        model=model,
        api_key=api_key,
        base_url=base_url,
        temperature=temperature,
        max_tokens=max_tokens,
        max_retries=0,
        default_headers={"User-Agent": "SofIA-WebApp/1.0"},
        extra_body=extra_body or None,
    )


class RemoteTextGenerator:
    """
    Thin wrapper over an OpenAI-compatible chat completion endpoint.

    Every failure (missing credential, transport, HTTP status, odd payload) is
    raised as RemoteCallError so callers can switch to canned text uniformly.
    """

    def __init__(
        self,
        *,
        api_key: str = "",
        base_url: str = "https://api.perplexity.ai",
        model: str = "sonar",
        max_tokens: int = 150,
        temperature: float = 0.7,
        search_context_size: Optional[str] = None,
        search_domain_filter: Optional[List[str]] = None,
        llm: Any = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.llm = llm
        if self.llm is None and (api_key or "").strip():
            self.llm = _build_llm(
                api_key=api_key.strip(),
                base_url=base_url,
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                search_context_size=search_context_size,
                search_domain_filter=search_domain_filter,
            )
        self.prompt = ChatPromptTemplate.from_messages(
            [
                ("system", "{system_prompt}"),
                ("human", "{user_prompt}"),
            ]
        )

    @property
    def available(self) -> bool:
        return self.llm is not None

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        if self.llm is None:
            raise RemoteCallError("No credential configured for the text generator")

        overrides: Dict[str, Any] = {}
        if max_tokens is not None and max_tokens != self.max_tokens:
            overrides["max_tokens"] = max_tokens
        if temperature is not None and temperature != self.temperature:
            overrides["temperature"] = temperature
        llm = self.llm.bind(**overrides) if overrides else self.llm

        logger.info("Calling %s: %s...", self.model, user_prompt[:100])
        try:
            response = await (self.prompt | llm).ainvoke(
                {"system_prompt": system_prompt, "user_prompt": user_prompt}
            )
        except Exception as exc:
            raise RemoteCallError(f"{type(exc).__name__}: {exc}") from exc

        content = getattr(response, "content", None)
        if not isinstance(content, str) or not content.strip():
            raise MalformedPayloadError("Text generator returned no message content")
        text = content.strip()
        logger.info("Response from %s: %s...", self.model, text[:100])
        return text
