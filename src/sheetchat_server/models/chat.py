"""Pydantic models for chat API requests and responses.

This module defines the request and response schemas for the chat endpoints,
including both streaming and non-streaming chat interactions.
"""

from pydantic import BaseModel, ConfigDict, Field

from sheetchat_server.conversation.types import InvocationResult, Turn


class ChatRequest(BaseModel):
    """Request body for chat endpoints.

    Used by both POST /api/v1/chat (non-streaming)
    and POST /api/v1/chat/stream (streaming).
    """

    message: str = Field(min_length=1, description="The user message to send.")
    tagged_sheets: list[str] = Field(
        default_factory=list,
        description='Worksheets to embed before the model round, or "workbook" for all of them.',
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"message": "What's in A1?", "tagged_sheets": []},
                {"message": "Summarize the sales data", "tagged_sheets": ["Sales"]},
            ]
        }
    )


class ToolCallResponse(BaseModel):
    """A tool call proposed by the model."""

    id: str = Field(description="Call identifier, shared with its tool result")
    name: str = Field(description="Capability name")
    arguments: str = Field(description="Arguments as serialized JSON text")


class TurnResponse(BaseModel):
    """Response schema for one transcript turn."""

    turn_id: str = Field(description="Unique turn identifier")
    role: str = Field(description="Turn role (user, assistant or tool)")
    content: str = Field(description="Turn content")
    timestamp: str = Field(description="ISO 8601 timestamp")
    correlation_id: str | None = Field(
        default=None, description="For tool results, the id of the call they answer"
    )
    tool_name: str | None = Field(default=None, description="For tool results, the capability name")
    tool_calls: list[ToolCallResponse] | None = Field(
        default=None, description="Tool calls proposed by the assistant (if any)"
    )

    @classmethod
    def from_turn(cls, turn: Turn) -> "TurnResponse":
        tool_calls = None
        if turn.invocations:
            tool_calls = [
                ToolCallResponse(id=call.id, name=call.name, arguments=call.raw_arguments)
                for call in turn.invocations
            ]
        return cls(
            turn_id=turn.turn_id,
            role=turn.role.value,
            content=turn.content,
            timestamp=turn.timestamp,
            correlation_id=turn.correlation_id,
            tool_name=turn.tool_name,
            tool_calls=tool_calls,
        )


class ToolResultResponse(BaseModel):
    """Outcome of one executed tool call."""

    id: str = Field(description="Call identifier")
    name: str = Field(description="Capability name")
    content: str = Field(description="Result text fed back to the model")
    is_error: bool = Field(default=False, description="Whether the call failed")

    @classmethod
    def from_result(cls, result: InvocationResult) -> "ToolResultResponse":
        return cls(
            id=result.id, name=result.name, content=result.content, is_error=result.is_error
        )


class ChatResponse(BaseModel):
    """Response body for the non-streaming chat endpoint."""

    reply: str | None = Field(description="Text of the final assistant turn, if any")
    final_state: str = Field(description="Terminal state the turn reached")
    turns: list[TurnResponse] = Field(description="Turns appended during this request")
    tool_calls_executed: list[ToolResultResponse] = Field(
        default_factory=list,
        description="Tools that were executed during this response",
    )
    gateway_calls: int = Field(default=0, description="Model round trips attempted")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "reply": "Cell A1 contains 42.",
                "final_state": "replied_final",
                "turns": [],
                "tool_calls_executed": [
                    {
                        "id": "call_1a2b3c4d5e6f",
                        "name": "read_cell",
                        "content": 'The value in cell A1 is "42"',
                        "is_error": False,
                    }
                ],
                "gateway_calls": 2,
            }
        }
    )


class TranscriptResponse(BaseModel):
    """Response body for GET /api/v1/chat/transcript."""

    turns: list[TurnResponse] = Field(description="All turns in append order")
    state: str = Field(description="Current engine state")


# --- SSE event models ---


class TurnEvent(BaseModel):
    """SSE event emitted for every appended turn."""

    turn: TurnResponse


class StateEvent(BaseModel):
    """SSE event emitted for every state transition."""

    state: str


class DoneEvent(BaseModel):
    """SSE event emitted when the turn is finished."""

    final_state: str
    reply: str | None = None
    gateway_calls: int = 0


class ErrorEvent(BaseModel):
    """SSE event emitted when the stream fails unexpectedly."""

    code: str
    message: str
    details: dict = Field(default_factory=dict)
