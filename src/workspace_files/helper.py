"""Invocation of the external workspace-files helper executable."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from pathlib import Path

HELPER_ENV = "WORKSPACE_FILES_HELPER"
TOOL_DIR_ENV = "GPTSCRIPT_TOOL_DIR"
DEFAULT_HELPER_PATH = Path("bin") / "gptscript-go-tool"


class HelperNotFoundError(Exception):
    """Error when the helper executable cannot be located."""


def resolve_helper(env: Mapping[str, str] | None = None) -> Path:
    """Locate the helper executable.

    `$WORKSPACE_FILES_HELPER` wins; otherwise the helper is expected at
    `$GPTSCRIPT_TOOL_DIR/bin/gptscript-go-tool`.
    """
    env = os.environ if env is None else env
    if explicit := env.get(HELPER_ENV):
        path = Path(explicit)
    elif tool_dir := env.get(TOOL_DIR_ENV):
        path = Path(tool_dir) / DEFAULT_HELPER_PATH
    else:
        raise HelperNotFoundError(
            f"Set {HELPER_ENV} or {TOOL_DIR_ENV} to locate the workspace helper"
        )

    if not path.is_file():
        raise HelperNotFoundError(f"Workspace helper not found at {path}")
    return path


class WorkspaceHelper:
    def __init__(self, executable: Path | None = None):
        self.executable = executable or resolve_helper()

    def run(
        self, subcommand: str, *args: str, capture_output: bool = False
    ) -> subprocess.CompletedProcess[str]:
        """Run `<helper> <subcommand> [args...]` once.

        The environment is inherited, so tool parameters GPTScript passes as
        environment variables reach the helper unchanged.
        """
        return subprocess.run(
            [str(self.executable), subcommand, *args],
            check=False,
            capture_output=capture_output,
            text=True,
        )
