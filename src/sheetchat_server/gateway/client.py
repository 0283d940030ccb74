"""Async model gateway over the Ollama API.

This module wraps ``ollama.AsyncClient`` for the two calls the chat engine
needs: a tool-enabled chat completion, and text embeddings for the sheet
priming step. Every failure is reported as a ``GatewayError`` whose kind
lets the caller tell a rejected credential apart from other problems.
"""

import json
import logging
import uuid
from typing import Any

import ollama

from sheetchat_server.conversation.types import InvocationRequest, Turn, TurnRole
from sheetchat_server.errors import GatewayError, GatewayErrorKind
from sheetchat_server.gateway.types import DirectReply, ModelResponse, ProposedInvocations

logger = logging.getLogger(__name__)


def _as_dict(obj: Any) -> dict[str, Any]:
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if isinstance(obj, dict):
        return obj
    return vars(obj)


def _parse_arguments(raw_arguments: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw_arguments or "{}")
    except ValueError:
        logger.debug(f"Sending unparseable tool arguments as empty: {raw_arguments!r}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def to_ollama_messages(system_instruction: str, turns: list[Turn]) -> list[dict[str, Any]]:
    """Project the transcript into Ollama chat messages.

    Args:
        system_instruction: Prepended as the system message
        turns: Conversation turns in append order

    Returns:
        List of message dicts: system, then one message per turn
    """
    messages: list[dict[str, Any]] = [{"role": "system", "content": system_instruction}]

    for turn in turns:
        message: dict[str, Any] = {"role": turn.role.value, "content": turn.content}

        if turn.is_proposal:
            message["tool_calls"] = [
                {
                    "function": {
                        "name": invocation.name,
                        "arguments": _parse_arguments(invocation.raw_arguments),
                    }
                }
                for invocation in turn.invocations
            ]
        elif turn.role is TurnRole.TOOL_RESULT:
            message["tool_name"] = turn.tool_name

        messages.append(message)

    return messages


def classify_error(error: Exception) -> GatewayError:
    """Translate an Ollama client failure into a GatewayError."""
    if isinstance(error, GatewayError):
        return error
    if isinstance(error, ollama.ResponseError):
        if error.status_code in (401, 403):
            kind = GatewayErrorKind.UNAUTHORIZED
        elif error.status_code == 429:
            kind = GatewayErrorKind.RATE_LIMITED
        else:
            kind = GatewayErrorKind.UNKNOWN
        return GatewayError(kind, error.error or str(error))
    return GatewayError(GatewayErrorKind.UNKNOWN, str(error) or type(error).__name__)


def parse_response(response: Any) -> ModelResponse:
    """Turn an Ollama chat response into a tagged model response.

    Tool calls from Ollama carry no ids, so each proposed call gets a fresh
    ``call_<hex>`` id here, and its arguments are serialized to JSON text.

    Raises:
        GatewayError: MALFORMED if the response has no usable message
    """
    data = _as_dict(response) if response is not None else {}
    message = data.get("message")
    if message is None:
        raise GatewayError(GatewayErrorKind.MALFORMED, "Response contained no message")
    message = _as_dict(message)

    content = message.get("content") or ""
    tool_calls = message.get("tool_calls") or []

    if not tool_calls:
        return DirectReply(text=content)

    invocations: list[InvocationRequest] = []
    for call in tool_calls:
        function = _as_dict(_as_dict(call).get("function") or {})
        name = function.get("name")
        if not name:
            raise GatewayError(GatewayErrorKind.MALFORMED, "Tool call without a function name")

        arguments = function.get("arguments")
        if isinstance(arguments, str):
            raw_arguments = arguments
        else:
            raw_arguments = json.dumps(dict(arguments or {}))

        invocations.append(
            InvocationRequest(
                id=f"call_{uuid.uuid4().hex[:12]}",
                name=name,
                raw_arguments=raw_arguments,
            )
        )

    return ProposedInvocations(invocations=invocations, content=content)


class ModelGateway:
    """Async client for the language-model service.

    One gateway is bound to one credential. When the credential changes, the
    owner builds a new gateway rather than mutating this one.

    Attributes:
        host: The Ollama server URL (e.g., "http://localhost:11434")
        model: Chat model name
        embedding_model: Embedding model name
        api_key: Bearer credential, if any
        _client: The underlying ollama.AsyncClient instance
    """

    def __init__(
        self,
        host: str,
        model: str,
        embedding_model: str,
        api_key: str | None = None,
    ) -> None:
        self.host = host
        self.model = model
        self.embedding_model = embedding_model
        self.api_key = api_key

        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        self._client = ollama.AsyncClient(host=host, headers=headers)
        logger.info(f"ModelGateway initialized with host: {host}, model: {model}")

    async def check_connection(self) -> bool:
        """Check if the model service is reachable.

        Returns:
            bool: True if connection is successful, False otherwise
        """
        try:
            await self._client.list()
            logger.debug("Model service connection check: successful")
            return True
        except Exception as e:
            logger.warning(f"Model service connection check failed: {e}")
            return False

    async def complete(
        self,
        system_instruction: str,
        turns: list[Turn],
        tools: list[dict[str, Any]],
    ) -> ModelResponse:
        """Submit the conversation and catalog for one round.

        Args:
            system_instruction: System message for this submission
            turns: Transcript so far, including the new user turn
            tools: Capability catalog in wire shape

        Returns:
            DirectReply or ProposedInvocations

        Raises:
            GatewayError: If the call fails or returns nothing usable
        """
        messages = to_ollama_messages(system_instruction, turns)
        logger.debug(f"Submitting {len(messages)} messages and {len(tools)} tools")

        try:
            response = await self._client.chat(
                model=self.model,
                messages=messages,
                tools=tools,
                stream=False,
            )
        except Exception as e:
            error = classify_error(e)
            logger.error(f"Model request failed ({error.kind.value}): {error.detail}")
            raise error from e

        result = parse_response(response)
        if isinstance(result, ProposedInvocations):
            logger.info(f"Model proposed {len(result.invocations)} tool call(s)")
        else:
            logger.info(f"Model replied directly: {len(result.text)} characters")
        return result

    async def embed(self, text: str) -> list[float]:
        """Get an embedding vector for a block of text.

        Raises:
            GatewayError: If the call fails or returns no vector
        """
        try:
            response = await self._client.embed(model=self.embedding_model, input=text)
        except Exception as e:
            raise classify_error(e) from e

        embeddings = _as_dict(response).get("embeddings") or []
        if not embeddings:
            raise GatewayError(GatewayErrorKind.MALFORMED, "Embedding response was empty")
        return list(embeddings[0])

    async def close(self) -> None:
        """Close the client and clean up resources.

        ollama.AsyncClient uses httpx internally which handles cleanup.
        """
        logger.debug("ModelGateway closed")
