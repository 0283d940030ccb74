"""Capability catalog, schema derivation, and execution layer.

This package provides the registry of spreadsheet operations the model may
call, the argument schemas sent to the model, and the adapter that executes
a proposed call against the spreadsheet host.
"""

from sheetchat_server.capabilities.adapter import CapabilityAdapter
from sheetchat_server.capabilities.catalog import build_default_registry
from sheetchat_server.capabilities.registry import (
    CapabilityDescriptor,
    CapabilityRegistry,
)

__all__ = [
    "CapabilityAdapter",
    "CapabilityDescriptor",
    "CapabilityRegistry",
    "build_default_registry",
]
