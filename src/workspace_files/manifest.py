"""Loading of the GPTScript tool manifest shipped with this package.

The manifest is a sequence of tool blocks separated by `---` lines. Each block
has `Key: value` header lines followed by an optional `#!` command line.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from importlib.resources import files
from pathlib import Path

MANIFEST_NAME = "tool.gpt"


@dataclass
class ToolDefinition:
    name: str
    description: str = ""
    type: str = ""
    params: dict[str, str] = field(default_factory=dict)
    share_context: list[str] = field(default_factory=list)
    share_tools: list[str] = field(default_factory=list)
    command: list[str] = field(default_factory=list)

    @property
    def subcommand(self) -> str | None:
        """The sub-command this tool forwards to, if it runs one."""
        return self.command[-1] if self.command else None


def load_manifest(path: Path | None = None) -> list[ToolDefinition]:
    if path is None:
        text = files("workspace_files").joinpath(MANIFEST_NAME).read_text()
    else:
        text = path.read_text()
    return parse_manifest(text)


def parse_manifest(text: str) -> list[ToolDefinition]:
    tools = []
    for block in _split_blocks(text):
        tool = _parse_block(block)
        if tool is not None:
            tools.append(tool)
    return tools


def _split_blocks(text: str) -> list[list[str]]:
    blocks: list[list[str]] = [[]]
    for line in text.splitlines():
        if line.strip() == "---":
            blocks.append([])
        else:
            blocks[-1].append(line)
    return blocks


def _parse_block(lines: list[str]) -> ToolDefinition | None:
    headers: dict[str, list[str]] = {}
    command: list[str] = []
    for line in lines:
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith("#!"):
            command = shlex.split(stripped[2:])
            break
        key, sep, value = stripped.partition(":")
        if not sep:
            raise ValueError(f"invalid manifest line: {line!r}")
        headers.setdefault(key.strip().lower(), []).append(value.strip())

    if "name" not in headers:
        return None

    params = {}
    for param in headers.get("param", []):
        name, _, description = param.partition(":")
        params[name.strip()] = description.strip()

    return ToolDefinition(
        name=headers["name"][0],
        description=" ".join(headers.get("description", [])),
        type=headers.get("type", [""])[0],
        params=params,
        share_context=_split_list(headers.get("share context", [])),
        share_tools=_split_list(headers.get("share tools", [])),
        command=command,
    )


def _split_list(values: list[str]) -> list[str]:
    return [item.strip() for value in values for item in value.split(",") if item.strip()]
