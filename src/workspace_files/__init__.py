"""Workspace file tools forwarding to an external helper executable."""

from .instructions import NO_FILES_SENTINEL, render_instructions
from .manifest import ToolDefinition, load_manifest

__all__ = [
    "NO_FILES_SENTINEL",
    "ToolDefinition",
    "load_manifest",
    "render_instructions",
]
