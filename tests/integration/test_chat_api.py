"""Integration tests for the chat API endpoints.

Tests POST /api/v1/chat and GET /api/v1/chat/transcript with a full app
setup, driving the engine through a mocked model gateway.
"""

import json

import pytest
from httpx import AsyncClient

from sheetchat_server.conversation import InvocationRequest
from sheetchat_server.errors import GatewayError, GatewayErrorKind
from sheetchat_server.gateway import DirectReply, ProposedInvocations


def _proposal(name: str, arguments: dict, call_id: str = "call_abc") -> ProposedInvocations:
    return ProposedInvocations(
        invocations=[
            InvocationRequest(id=call_id, name=name, raw_arguments=json.dumps(arguments))
        ]
    )


class TestChatNonStreaming:
    """Tests for POST /api/v1/chat endpoint."""

    @pytest.mark.asyncio
    async def test_direct_reply(self, async_client: AsyncClient, mock_model_gateway):
        """Test a turn the model answers without tools."""
        mock_model_gateway.complete.return_value = DirectReply(text="Hello!")

        response = await async_client.post("/api/v1/chat", json={"message": "Hi"})

        assert response.status_code == 200
        data = response.json()
        assert data["reply"] == "Hello!"
        assert data["final_state"] == "replied_direct"
        assert data["gateway_calls"] == 1
        assert data["tool_calls_executed"] == []
        assert [t["role"] for t in data["turns"]] == ["user", "assistant"]
        assert data["turns"][0]["content"] == "[Active Worksheet: Sheet1] Hi"

    @pytest.mark.asyncio
    async def test_tool_round_trip(self, async_client: AsyncClient, mock_model_gateway):
        """Test a turn that writes through a tool and then confirms."""
        mock_model_gateway.complete.side_effect = [
            _proposal("write_range", {"startCell": "B2", "values": [["Total", 10]]}),
            DirectReply(text="I wrote the total to B2."),
        ]

        response = await async_client.post(
            "/api/v1/chat", json={"message": "Write the total to B2"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["final_state"] == "replied_final"
        assert data["reply"] == "I wrote the total to B2."
        assert data["gateway_calls"] == 2
        assert data["tool_calls_executed"] == [
            {
                "id": "call_abc",
                "name": "write_range",
                "content": "Values written to range starting at B2",
                "is_error": False,
            }
        ]

        proposal_turn = data["turns"][1]
        assert proposal_turn["role"] == "assistant"
        assert proposal_turn["tool_calls"][0]["name"] == "write_range"
        tool_turn = data["turns"][2]
        assert tool_turn["role"] == "tool"
        assert tool_turn["correlation_id"] == "call_abc"

        # The write reached the workbook; read it back through another turn
        mock_model_gateway.complete.side_effect = [
            _proposal("read_cell", {"cellAddress": "B2"}, call_id="call_def"),
            DirectReply(text="B2 says Total."),
        ]
        response = await async_client.post("/api/v1/chat", json={"message": "What's in B2?"})
        assert response.json()["tool_calls_executed"][0]["content"] == (
            'The value in cell B2 is "Total"'
        )

    @pytest.mark.asyncio
    async def test_gateway_failure_is_a_failed_turn(
        self, async_client: AsyncClient, mock_model_gateway
    ):
        """Test that a rejected credential is reported in the conversation."""
        mock_model_gateway.complete.side_effect = GatewayError(
            GatewayErrorKind.UNAUTHORIZED, "unauthorized"
        )

        response = await async_client.post("/api/v1/chat", json={"message": "Hi"})

        assert response.status_code == 200
        data = response.json()
        assert data["final_state"] == "failed"
        assert data["reply"] == "Invalid API key. Please check your settings."

    @pytest.mark.asyncio
    async def test_empty_message_is_rejected(self, async_client: AsyncClient):
        """Test request validation."""
        response = await async_client.post("/api/v1/chat", json={"message": ""})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_tagged_sheets_add_notices(
        self, async_client: AsyncClient, mock_model_gateway
    ):
        """Test that tagging the workbook embeds it before round 1."""
        mock_model_gateway.complete.return_value = DirectReply(text="Summary.")

        response = await async_client.post(
            "/api/v1/chat",
            json={"message": "Summarize everything", "tagged_sheets": ["workbook"]},
        )

        contents = [t["content"] for t in response.json()["turns"]]
        assert contents[1] == "Embeddings for all worksheets created successfully."
        assert mock_model_gateway.embed.await_count == 2


class TestTranscript:
    """Tests for GET /api/v1/chat/transcript."""

    @pytest.mark.asyncio
    async def test_empty_transcript(self, async_client: AsyncClient):
        """Test the transcript before any turn."""
        response = await async_client.get("/api/v1/chat/transcript")

        assert response.status_code == 200
        assert response.json() == {"turns": [], "state": "idle"}

    @pytest.mark.asyncio
    async def test_transcript_accumulates_turns(
        self, async_client: AsyncClient, mock_model_gateway
    ):
        """Test that turns from several requests are kept in order."""
        mock_model_gateway.complete.side_effect = [
            DirectReply(text="one"),
            DirectReply(text="two"),
        ]

        await async_client.post("/api/v1/chat", json={"message": "first"})
        await async_client.post("/api/v1/chat", json={"message": "second"})
        response = await async_client.get("/api/v1/chat/transcript")

        turns = response.json()["turns"]
        assert [t["content"] for t in turns] == [
            "[Active Worksheet: Sheet1] first",
            "one",
            "[Active Worksheet: Sheet1] second",
            "two",
        ]
