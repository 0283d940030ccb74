"""Capability registry: the fixed catalog of operations the model may invoke.

Each capability pairs a unique name with a description, a pydantic argument
model and an async handler that carries the operation out against a
spreadsheet host. The registry is filled once at startup and is read-only
afterwards; registering a name twice is a configuration error.
"""

import builtins
import copy
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from sheetchat_server.errors import DuplicateCapabilityError
from sheetchat_server.workbook.host import SelectionInfo, SpreadsheetHost

logger = logging.getLogger(__name__)

CapabilityHandler = Callable[[SpreadsheetHost, Any], Awaitable[str]]
DescriptionTemplate = Callable[[SelectionInfo], str]


def _inline_refs(node: Any, defs: dict[str, Any]) -> Any:
    """Resolve ``$ref`` pointers into ``$defs`` and drop generated titles."""
    if isinstance(node, dict):
        if "$ref" in node:
            name = node["$ref"].rsplit("/", 1)[-1]
            return _inline_refs(copy.deepcopy(defs[name]), defs)
        return {
            key: _inline_refs(value, defs)
            for key, value in node.items()
            if key not in ("title", "$defs")
        }
    if isinstance(node, list):
        return [_inline_refs(item, defs) for item in node]
    return node


def schema_for(arguments: type[BaseModel]) -> dict[str, Any]:
    """Build the JSON-schema ``parameters`` object for an argument model.

    The result is self-contained (no ``$defs``) and always has
    ``properties`` and ``required`` keys, even for argument-less tools.
    """
    raw = arguments.model_json_schema()
    schema = _inline_refs(raw, raw.get("$defs", {}))
    schema.setdefault("properties", {})
    schema.setdefault("required", [])
    schema["type"] = "object"
    return schema


@dataclass(frozen=True)
class CapabilityDescriptor:
    """A named operation with its argument schema and handler.

    Attributes:
        name: Unique wire name the model uses to call the capability
        description: Text shown to the model
        arguments: Pydantic model validating the raw argument text
        handler: Coroutine function ``(host, parsed_args) -> result text``
        describe: Optional template rendering the description from the live
                  selection; used instead of ``description`` when present
        failure_prefix: For read-style capabilities that report their own
                        failures inline, the text placed before the detail
    """

    name: str
    description: str
    arguments: type[BaseModel]
    handler: CapabilityHandler
    describe: DescriptionTemplate | None = None
    failure_prefix: str | None = None

    @property
    def parameters(self) -> dict[str, Any]:
        return schema_for(self.arguments)

    def render_description(self, selection: SelectionInfo | None = None) -> str:
        if self.describe is not None and selection is not None:
            return self.describe(selection)
        return self.description

    def to_tool(self, selection: SelectionInfo | None = None) -> dict[str, Any]:
        """Render the tool descriptor in the model service's wire shape."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.render_description(selection),
                "parameters": self.parameters,
            },
        }


class CapabilityRegistry:
    """Closed mapping from capability name to descriptor."""

    def __init__(self, descriptors: list[CapabilityDescriptor] | None = None) -> None:
        self._capabilities: dict[str, CapabilityDescriptor] = {}
        for descriptor in descriptors or []:
            self.register(descriptor)

    def register(self, descriptor: CapabilityDescriptor) -> None:
        """Add a capability.

        Raises:
            DuplicateCapabilityError: If the name is already registered
        """
        if descriptor.name in self._capabilities:
            raise DuplicateCapabilityError(
                f"Capability '{descriptor.name}' is already registered"
            )
        self._capabilities[descriptor.name] = descriptor
        logger.debug(f"Registered capability: {descriptor.name}")

    def get(self, name: str) -> CapabilityDescriptor | None:
        return self._capabilities.get(name)

    def list(self) -> builtins.list[CapabilityDescriptor]:
        """All descriptors, in registration order."""
        return builtins.list(self._capabilities.values())

    def names(self) -> builtins.list[str]:
        return builtins.list(self._capabilities)

    def to_tools(
        self, selection: SelectionInfo | None = None
    ) -> builtins.list[dict[str, Any]]:
        """Render the full catalog for one model request."""
        return [descriptor.to_tool(selection) for descriptor in self._capabilities.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._capabilities

    def __len__(self) -> int:
        return len(self._capabilities)
