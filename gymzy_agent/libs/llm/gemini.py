"""Gemini generator over the google-genai SDK (async streaming).

Vertex AI auth is used when GCP_PROJECT_ID is set, otherwise GOOGLE_API_KEY.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from google import genai
from google.genai import types

from gymzy_agent import config

from .generator import BaseGenerator, GenerationChunk, GeneratorError, ToolCall

logger = logging.getLogger(__name__)

_SCHEMA_TYPES = {
    "string": types.Type.STRING,
    "integer": types.Type.INTEGER,
    "boolean": types.Type.BOOLEAN,
    "array": types.Type.ARRAY,
}

# Singleton GenAI client (reused across generators)
_client: Optional[genai.Client] = None


def _get_genai_client() -> genai.Client:
    global _client
    if _client is None:
        if config.GCP_PROJECT_ID:
            _client = genai.Client(
                vertexai=True,
                project=config.GCP_PROJECT_ID,
                location=config.GCP_REGION,
            )
        else:
            _client = genai.Client(api_key=config.GOOGLE_API_KEY or None)
    return _client


def to_function_declaration(tool: Any) -> types.FunctionDeclaration:
    """Translate a shell ToolDeclaration into a Gemini FunctionDeclaration."""
    properties: Dict[str, types.Schema] = {}
    for p in tool.parameters:
        properties[p.name] = types.Schema(
            type=_SCHEMA_TYPES.get(p.type, types.Type.STRING),
            description=p.description or None,
            enum=list(p.enum) if p.enum else None,
            items=types.Schema(type=_SCHEMA_TYPES.get(p.items_type or "string")) if p.type == "array" else None,
        )
    parameters = None
    if properties:
        parameters = types.Schema(
            type=types.Type.OBJECT,
            properties=properties,
            required=sorted(tool.required) or None,
        )
    return types.FunctionDeclaration(name=tool.name, description=tool.description, parameters=parameters)


def to_contents(history: Optional[Sequence[Dict[str, str]]], prompt: str) -> List[types.Content]:
    contents: List[types.Content] = []
    for message in history or []:
        text = message.get("content") or message.get("text") or ""
        if not text:
            continue
        role = "model" if message.get("role") in ("assistant", "model") else "user"
        contents.append(types.Content(role=role, parts=[types.Part.from_text(text=text)]))
    contents.append(types.Content(role="user", parts=[types.Part.from_text(text=prompt)]))
    return contents


def _is_rate_limit(error: Exception) -> bool:
    error_str = str(error)
    return "429" in error_str or "RESOURCE_EXHAUSTED" in error_str


class GeminiGenerator(BaseGenerator):
    """Streams responses from a Gemini model."""

    def __init__(
        self,
        model_name: str = config.MODEL_NAME,
        client: Optional[genai.Client] = None,
        max_retries: int = config.GENERATOR_MAX_RETRIES,
        base_delay: float = config.GENERATOR_RETRY_BASE_DELAY,
    ):
        self.model_name = model_name
        self._client = client
        self.max_retries = max_retries
        self.base_delay = base_delay

    @property
    def client(self) -> genai.Client:
        return self._client or _get_genai_client()

    async def _open_stream(self, contents: List[types.Content], gen_config: types.GenerateContentConfig):
        """Start the stream, retrying rate limits with exponential backoff."""
        for attempt in range(self.max_retries + 1):
            try:
                return await self.client.aio.models.generate_content_stream(
                    model=self.model_name,
                    contents=contents,
                    config=gen_config,
                )
            except Exception as e:
                if _is_rate_limit(e) and attempt < self.max_retries:
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        "Rate limited (attempt %d/%d), retrying in %.0fs: %s",
                        attempt + 1, self.max_retries, delay, e,
                    )
                    await asyncio.sleep(delay)
                    continue
                logger.error("LLM stream failed to start, model=%s: %s", self.model_name, e)
                raise GeneratorError(str(e)) from e
        raise GeneratorError("LLM stream failed to start")

    async def stream(
        self,
        prompt: str,
        history: Optional[Sequence[Dict[str, str]]] = None,
        *,
        system_instruction: Optional[str] = None,
        tools: Optional[Sequence[Any]] = None,
        json_mode: bool = False,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[GenerationChunk]:
        gen_config = types.GenerateContentConfig(
            temperature=temperature if temperature is not None else config.CHAT_TEMPERATURE,
            system_instruction=system_instruction,
            tools=[types.Tool(function_declarations=[to_function_declaration(t) for t in tools])] if tools else None,
            response_mime_type="application/json" if json_mode else None,
        )
        response_stream = await self._open_stream(to_contents(history, prompt), gen_config)

        try:
            async for response in response_stream:
                text_parts: List[str] = []
                calls: List[ToolCall] = []
                for candidate in response.candidates or []:
                    content = getattr(candidate, "content", None)
                    for part in getattr(content, "parts", None) or []:
                        if getattr(part, "thought", False):
                            continue
                        if part.function_call is not None:
                            calls.append(ToolCall(
                                name=part.function_call.name or "",
                                args=dict(part.function_call.args or {}),
                            ))
                        elif part.text:
                            text_parts.append(part.text)
                if text_parts or calls:
                    yield GenerationChunk(text="".join(text_parts), tool_calls=calls)
        except GeneratorError:
            raise
        except Exception as e:
            logger.error("LLM stream failed, model=%s: %s", self.model_name, e)
            raise GeneratorError(str(e)) from e


__all__ = ["GeminiGenerator", "to_contents", "to_function_declaration"]
