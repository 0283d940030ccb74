"""Model gateway and integration layer.

This package provides the async client for the language-model service and
the tagged response types a model round trip produces.
"""

from sheetchat_server.gateway.client import ModelGateway
from sheetchat_server.gateway.types import DirectReply, ModelResponse, ProposedInvocations

__all__ = ["DirectReply", "ModelGateway", "ModelResponse", "ProposedInvocations"]
