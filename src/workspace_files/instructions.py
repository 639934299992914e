from __future__ import annotations

from typing import Final

NO_FILES_SENTINEL: Final[str] = "No files found in workspace"

INSTRUCTIONS_TEMPLATE: Final[str] = """\
START INSTRUCTIONS: WORKSPACE FILES

You have access to a workspace where files can be listed, read, written and
copied with the "List Workspace Files", "Read Workspace File", "Write Workspace
File" and "Copy Workspace File" tools. Always refer to files by their path
relative to the workspace root. Do not ask the user to upload a file that is
already in the workspace; read it instead. When you create a file for the user,
write it to the workspace and tell the user its path.

The following files are currently in the workspace:
{files}

END INSTRUCTIONS: WORKSPACE FILES
"""


def render_instructions(listing: str) -> str:
    """Render the workspace instructions with the given file listing.

    The listing is embedded verbatim; an empty (or whitespace-only) listing is
    replaced with the "No files found in workspace" sentinel.
    """
    files = listing if listing.strip() else NO_FILES_SENTINEL
    return INSTRUCTIONS_TEMPLATE.format(files=files)
