"""Reasoning engine adapters for OpenAI-compatible and Gemini APIs."""
from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

import openai
from google.genai import errors as genai_errors
from google.genai import types

from codescope.core.conversation import EngineReply, GenerationConfig, Turn
from codescope.core.errors import EngineError
from codescope.core.models import ToolDeclaration, ToolInvocation
from codescope.services.llm_pool import LLMPool

logger = logging.getLogger(__name__)


def to_messages(conversation: Sequence[Turn]) -> List[Dict[str, Any]]:
    """Translate transcript turns into chat completion messages."""
    messages: List[Dict[str, Any]] = []
    for turn in conversation:
        if turn.role == "tool":
            messages.append(
                {"role": "tool", "tool_call_id": turn.tool_call_id, "content": turn.content or ""}
            )
            continue
        message: Dict[str, Any] = {"role": turn.role, "content": turn.content}
        if turn.tool_invocations:
            message["tool_calls"] = [
                {
                    "id": call.call_id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": replay_arguments(call)},
                }
                for call in turn.tool_invocations
            ]
        messages.append(message)
    return messages


def replay_arguments(call: ToolInvocation) -> str:
    """Arguments text to send back to the provider, verbatim when it failed to parse."""
    if call.raw_arguments is not None:
        return call.raw_arguments
    return json.dumps(call.arguments)


def to_tool_schema(declarations: Sequence[ToolDeclaration]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": declaration.name,
                "description": declaration.description,
                "parameters": declaration.parameters,
            },
        }
        for declaration in declarations
    ]


def parse_tool_call(call: Any) -> ToolInvocation:
    """Decode one provider tool call; bad JSON is kept as a parse error."""
    raw = call.function.arguments or "{}"
    try:
        arguments = json.loads(raw)
    except json.JSONDecodeError as exc:
        return ToolInvocation(
            call_id=call.id,
            name=call.function.name,
            parse_error=str(exc),
            raw_arguments=raw,
        )
    if not isinstance(arguments, dict):
        return ToolInvocation(
            call_id=call.id,
            name=call.function.name,
            parse_error="Arguments must be a JSON object",
            raw_arguments=raw,
        )
    return ToolInvocation(call_id=call.id, name=call.function.name, arguments=arguments)


class OpenAIChatEngine:
    """Reasoning engine backed by a model registered in the LLM pool."""

    def __init__(self, pool: LLMPool, model_name: str) -> None:
        self._pool = pool
        self.model_name = model_name

    async def generate(
        self,
        conversation: Sequence[Turn],
        tools: Sequence[ToolDeclaration],
        config: GenerationConfig,
    ) -> EngineReply:
        model = config.model or self.model_name
        request: Dict[str, Any] = {
            "model": model,
            "messages": to_messages(conversation),
            "temperature": config.temperature,
        }
        if config.max_tokens:
            request["max_tokens"] = config.max_tokens
        if tools:
            request["tools"] = to_tool_schema(tools)
            request["tool_choice"] = "auto"

        try:
            async with self._pool.acquire(self.model_name) as client:
                response = await client.chat.completions.create(**request)
        except openai.APIError as exc:
            raise EngineError(f"{model} request failed: {exc}") from exc
        except KeyError as exc:
            raise EngineError(str(exc.args[0]) if exc.args else str(exc)) from exc

        if not response.choices:
            raise EngineError(f"{model} returned no choices")

        message = response.choices[0].message
        invocations = [parse_tool_call(call) for call in (message.tool_calls or [])]
        logger.debug("%s replied with %d tool call(s)", model, len(invocations))
        return EngineReply(text=message.content, tool_invocations=invocations)


def to_gemini_contents(conversation: Sequence[Turn]) -> Tuple[Optional[str], List[types.Content]]:
    """Split a transcript into a system instruction and Gemini contents.

    Consecutive tool turns are folded into one user content so every batch of
    function calls is answered by a single batch of function responses.
    """
    system: Optional[str] = None
    contents: List[types.Content] = []
    for turn in conversation:
        if turn.role == "system":
            system = turn.content
            continue
        if turn.role == "tool":
            result = turn.tool_result
            part = types.Part(
                function_response=types.FunctionResponse(
                    id=turn.tool_call_id,
                    name=result.name if result is not None else None,
                    response=result.to_dict() if result is not None else {"output": turn.content},
                )
            )
            previous = contents[-1] if contents else None
            if previous is not None and previous.role == "user" and previous.parts[0].function_response:
                previous.parts.append(part)
            else:
                contents.append(types.Content(role="user", parts=[part]))
            continue
        parts: List[types.Part] = []
        if turn.content:
            parts.append(types.Part(text=turn.content))
        for call in turn.tool_invocations:
            parts.append(
                types.Part(
                    function_call=types.FunctionCall(id=call.call_id, name=call.name, args=call.arguments)
                )
            )
        role = "model" if turn.role == "assistant" else "user"
        contents.append(types.Content(role=role, parts=parts))
    return system, contents


def to_gemini_tools(declarations: Sequence[ToolDeclaration]) -> List[types.Tool]:
    return [
        types.Tool(
            function_declarations=[
                types.FunctionDeclaration(
                    name=declaration.name,
                    description=declaration.description,
                    parameters_json_schema=declaration.parameters,
                )
                for declaration in declarations
            ]
        )
    ]


def parse_function_call(call: Any) -> ToolInvocation:
    call_id = call.id or f"call_{uuid.uuid4().hex[:12]}"
    arguments = call.args or {}
    if not isinstance(arguments, dict):
        return ToolInvocation(
            call_id=call_id,
            name=call.name,
            parse_error="Arguments must be a JSON object",
        )
    return ToolInvocation(call_id=call_id, name=call.name, arguments=dict(arguments))


class GeminiEngine:
    """Reasoning engine backed by a Gemini model registered in the LLM pool."""

    def __init__(self, pool: LLMPool, model_name: str) -> None:
        self._pool = pool
        self.model_name = model_name

    async def generate(
        self,
        conversation: Sequence[Turn],
        tools: Sequence[ToolDeclaration],
        config: GenerationConfig,
    ) -> EngineReply:
        model = config.model or self.model_name
        system, contents = to_gemini_contents(conversation)
        settings = types.GenerateContentConfig(
            system_instruction=system,
            temperature=config.temperature,
            max_output_tokens=config.max_tokens or None,
            tools=to_gemini_tools(tools) if tools else None,
        )

        try:
            async with self._pool.acquire(self.model_name) as client:
                response = await client.aio.models.generate_content(
                    model=model,
                    contents=contents,
                    config=settings,
                )
        except genai_errors.APIError as exc:
            raise EngineError(f"{model} request failed: {exc}") from exc
        except KeyError as exc:
            raise EngineError(str(exc.args[0]) if exc.args else str(exc)) from exc

        if not response.candidates:
            raise EngineError(f"{model} returned no candidates")

        content = response.candidates[0].content
        texts: List[str] = []
        invocations: List[ToolInvocation] = []
        parts = content.parts if content is not None and content.parts else []
        for part in parts:
            if part.function_call is not None:
                invocations.append(parse_function_call(part.function_call))
            elif part.text:
                texts.append(part.text)
        logger.debug("%s replied with %d function call(s)", model, len(invocations))
        return EngineReply(text="".join(texts) or None, tool_invocations=invocations)
