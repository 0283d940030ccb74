"""Capability adapter: executes one invocation against the spreadsheet host.

``execute`` never raises. Whatever happens (unknown capability, malformed
arguments, host failure) the caller gets exactly one ``InvocationResult``
carrying the request's id, so a batch can be fanned out without any single
call taking its siblings down.
"""

import logging

from pydantic import BaseModel, ValidationError

from sheetchat_server.capabilities.registry import CapabilityDescriptor, CapabilityRegistry
from sheetchat_server.conversation.types import InvocationRequest, InvocationResult
from sheetchat_server.errors import AdapterError, UnsupportedInvocation
from sheetchat_server.workbook.host import SpreadsheetHost

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = "I'm not sure how to perform that action."


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


def _error_detail(error: BaseException) -> str:
    return str(error) or "An unknown error occurred."


class CapabilityAdapter:
    """Dispatches invocation requests to registered handlers.

    Attributes:
        registry: The capability catalog handlers are looked up in
        host: The spreadsheet the handlers operate on
    """

    def __init__(self, registry: CapabilityRegistry, host: SpreadsheetHost) -> None:
        self.registry = registry
        self.host = host

    def _lookup(self, request: InvocationRequest) -> CapabilityDescriptor:
        descriptor = self.registry.get(request.name)
        if descriptor is None:
            raise UnsupportedInvocation(f"Unknown capability: {request.name}")
        return descriptor

    @staticmethod
    def _parse(descriptor: CapabilityDescriptor, raw_arguments: str) -> BaseModel:
        try:
            return descriptor.arguments.model_validate_json(raw_arguments.strip() or "{}")
        except ValidationError as e:
            raise AdapterError(
                f"Invalid arguments for {descriptor.name}: {_describe_validation_error(e)}"
            ) from e

    async def execute(self, request: InvocationRequest) -> InvocationResult:
        """Run one invocation and report its outcome as text.

        Args:
            request: The proposed tool call

        Returns:
            InvocationResult with the same id as the request
        """
        try:
            descriptor = self._lookup(request)
        except UnsupportedInvocation:
            logger.warning(f"Unsupported invocation {request.id}: {request.name}")
            return InvocationResult(
                id=request.id, name=request.name, content=UNSUPPORTED_MESSAGE, is_error=True
            )

        try:
            arguments = self._parse(descriptor, request.raw_arguments)
        except AdapterError as e:
            logger.warning(f"Rejected arguments for {request.name} ({request.id}): {e}")
            return InvocationResult(
                id=request.id, name=request.name, content=f"Error: {e}", is_error=True
            )

        try:
            content = await descriptor.handler(self.host, arguments)
        except Exception as e:
            logger.warning(f"Capability {request.name} ({request.id}) failed: {e}")
            if descriptor.failure_prefix:
                content = f"{descriptor.failure_prefix} {_error_detail(e)}"
            else:
                content = f"Error: {_error_detail(e)}"
            return InvocationResult(
                id=request.id, name=request.name, content=content, is_error=True
            )

        logger.info(f"Executed {request.name} ({request.id})")
        return InvocationResult(id=request.id, name=request.name, content=content)
