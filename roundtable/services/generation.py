"""Generation service used by the workflow controller.

The controller only depends on the GenerationClient protocol:

    generate_text(prompt)                     -> final string
    generate_text_stream(prompt, ...)         -> async iterator of StreamChunk
    generate_structured(prompt, schema)       -> parsed schema instance

LangChainGenerationClient is the production implementation (OpenAI or
Anthropic chat models through LangChain, Exa MCP for web search grounding).
Tests substitute a scripted fake.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional, Protocol, TypeVar

from langchain_anthropic import ChatAnthropic
from langchain_core.exceptions import OutputParserException
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ValidationError

from roundtable.config import settings
from roundtable.errors import MalformedResponseError
from roundtable.schemas import StreamChunk
from roundtable.services.search import format_sources, search_web

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class GenerationClient(Protocol):
    async def generate_text(self, prompt: str, *, model: Optional[str] = None) -> str: ...

    def generate_text_stream(
        self,
        prompt: str,
        *,
        system_instruction: Optional[str] = None,
        search_query: Optional[str] = None,
        model: Optional[str] = None,
    ) -> AsyncIterator[StreamChunk]: ...

    async def generate_structured(
        self, prompt: str, schema: type[SchemaT], *, model: Optional[str] = None
    ) -> SchemaT: ...


def _get_llm(model: str, temperature: Optional[float] = None):
    """Return a chat model; names containing "claude" go to Anthropic, the rest to OpenAI."""
    kwargs: dict[str, Any] = {"model": model, "max_tokens": settings.max_output_tokens}
    if temperature is not None:
        kwargs["temperature"] = temperature
    if "claude" in model.lower():
        return ChatAnthropic(**kwargs)
    return ChatOpenAI(**kwargs)


def _content_text(content: Any) -> str:
    """Chunk content is a string (OpenAI) or a list of content blocks (Anthropic)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text", "")))
            elif isinstance(part, str):
                parts.append(part)
        return "".join(parts)
    return ""


class LangChainGenerationClient:
    async def generate_text(self, prompt: str, *, model: Optional[str] = None) -> str:
        llm = _get_llm(model or settings.topic_model, temperature=1.0)
        response = await llm.ainvoke(prompt)
        return _content_text(response.content).strip()

    async def generate_text_stream(
        self,
        prompt: str,
        *,
        system_instruction: Optional[str] = None,
        search_query: Optional[str] = None,
        model: Optional[str] = None,
    ) -> AsyncIterator[StreamChunk]:
        """
        Stream a generation as StreamChunk fragments.

        With ``search_query`` the request is grounded: Exa search runs first, its
        sources are emitted as a citation-only chunk, and the raw results are
        appended to the prompt as context.
        """
        llm = _get_llm(model or settings.research_model)

        if search_query:
            citations, raw = await search_web(search_query)
            if citations:
                yield StreamChunk(citations=citations)
            prompt = f"{prompt}\n\n{format_sources(citations, raw)}"

        messages = []
        if system_instruction:
            messages.append(SystemMessage(content=system_instruction))
        messages.append(HumanMessage(content=prompt))

        async for part in llm.astream(messages):
            text = _content_text(part.content)
            if text:
                yield StreamChunk(text=text)

    async def generate_structured(
        self, prompt: str, schema: type[SchemaT], *, model: Optional[str] = None
    ) -> SchemaT:
        llm = _get_llm(model or settings.panel_model).with_structured_output(schema)
        try:
            result = await llm.ainvoke(prompt)
        except (ValidationError, OutputParserException) as exc:
            logger.error("Structured output did not match %s: %s", schema.__name__, exc)
            raise MalformedResponseError() from exc
        if isinstance(result, dict):
            try:
                result = schema.model_validate(result)
            except ValidationError as exc:
                raise MalformedResponseError() from exc
        if not isinstance(result, schema):
            raise MalformedResponseError()
        return result
