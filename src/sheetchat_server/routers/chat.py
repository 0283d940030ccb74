"""Chat API endpoints.

This module provides endpoints for running user turns through the chat
engine, including non-streaming and streaming responses via SSE, and for
reading the transcript.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from sheetchat_server.conversation.types import Turn
from sheetchat_server.dependencies import get_engine
from sheetchat_server.models.chat import (
    ChatRequest,
    ChatResponse,
    DoneEvent,
    ErrorEvent,
    StateEvent,
    ToolResultResponse,
    TranscriptResponse,
    TurnEvent,
    TurnResponse,
)
from sheetchat_server.orchestration import ChatEngine, TurnState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


def _log_turn_failure(task: asyncio.Task) -> None:
    """Retrieve a finished turn task's exception so it is logged, not lost.

    The stream consumer may already be gone when the turn ends.
    """
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Streaming chat turn failed: {error}")


@router.post("", response_model=ChatResponse)
async def chat_non_streaming(
    request_body: ChatRequest,
    engine: ChatEngine = Depends(get_engine),
) -> ChatResponse:
    """Send a message and receive the outcome of the whole turn.

    Failed turns (missing or rejected credential, model service errors) are
    still answered with 200: the failure is part of the conversation and is
    reported as the final assistant turn.

    Args:
        request_body: Chat request containing the message and tagged sheets
        engine: Injected chat engine

    Returns:
        ChatResponse with the turns appended during this request
    """
    logger.info(f"Chat turn requested ({len(request_body.message)} characters)")

    outcome = await engine.handle_utterance(
        request_body.message,
        tagged_sheets=request_body.tagged_sheets,
    )

    logger.info(
        f"Chat turn finished in state {outcome.final_state.value} "
        f"after {outcome.gateway_calls} model call(s)"
    )

    return ChatResponse(
        reply=outcome.reply,
        final_state=outcome.final_state.value,
        turns=[TurnResponse.from_turn(turn) for turn in outcome.turns],
        tool_calls_executed=[ToolResultResponse.from_result(r) for r in outcome.results],
        gateway_calls=outcome.gateway_calls,
    )


@router.post("/stream")
async def chat_streaming(
    request_body: ChatRequest,
    engine: ChatEngine = Depends(get_engine),
) -> EventSourceResponse:
    """Stream a chat turn via Server-Sent Events (SSE).

    Events are emitted as they occur. The turn itself runs to completion even
    if the client disconnects, since tool calls may already have changed the
    workbook.

    SSE Events:
        - turn: Each turn appended to the transcript
        - state: Each state the engine enters
        - error: If the turn fails unexpectedly
        - done: The turn is complete
    """
    queue: asyncio.Queue = asyncio.Queue()

    def on_turn(turn: Turn) -> None:
        event = TurnEvent(turn=TurnResponse.from_turn(turn))
        queue.put_nowait({"event": "turn", "data": event.model_dump_json()})

    def on_state(state: TurnState) -> None:
        queue.put_nowait({"event": "state", "data": StateEvent(state=state.value).model_dump_json()})

    async def event_generator():
        """Relay engine callbacks as SSE events."""
        task = asyncio.create_task(
            engine.handle_utterance(
                request_body.message,
                tagged_sheets=request_body.tagged_sheets,
                on_turn=on_turn,
                on_state=on_state,
            )
        )
        task.add_done_callback(lambda _: queue.put_nowait(None))
        task.add_done_callback(_log_turn_failure)

        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event

            outcome = await task
            done_event = DoneEvent(
                final_state=outcome.final_state.value,
                reply=outcome.reply,
                gateway_calls=outcome.gateway_calls,
            )
            yield {"event": "done", "data": done_event.model_dump_json()}

        except Exception as e:
            logger.error(f"Error during streaming chat turn: {e}")
            error_event = ErrorEvent(
                code="chat_error",
                message=f"Failed to complete turn: {str(e)}",
                details={},
            )
            yield {"event": "error", "data": error_event.model_dump_json()}

    return EventSourceResponse(event_generator())


@router.get("/transcript", response_model=TranscriptResponse)
async def get_transcript(engine: ChatEngine = Depends(get_engine)) -> TranscriptResponse:
    """Get every turn of the conversation, in append order."""
    return TranscriptResponse(
        turns=[TurnResponse.from_turn(turn) for turn in engine.store.snapshot()],
        state=engine.state.value,
    )
