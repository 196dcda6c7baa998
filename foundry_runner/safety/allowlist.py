"""
Command Allowlist

Static table of the (tool, subcommand) pairs that may ever run.
The table is fixed at import time and exposed read-only.
"""

from types import MappingProxyType
from typing import Mapping

from foundry_runner.core.types import ToolName

ALLOWED_COMMANDS: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        ToolName.FORGE.value: frozenset({"build", "test", "script"}),
        # start/stop are driven by dedicated launch endpoints
        ToolName.ANVIL.value: frozenset({"start", "stop"}),
        ToolName.CAST.value: frozenset({"call", "send", "balance", "block-number"}),
    }
)


def tool_key(tool: "ToolName | str") -> str:
    """Plain string identifier for a tool."""
    return tool.value if isinstance(tool, ToolName) else tool


def validate_command(
    tool: "ToolName | str",
    subcommand: str,
    allowlist: Mapping[str, frozenset[str]] = ALLOWED_COMMANDS,
) -> bool:
    """Return True if ``subcommand`` is allowlisted for ``tool`` (exact match)."""
    allowed = allowlist.get(tool_key(tool))
    if not allowed or not isinstance(subcommand, str):
        return False
    return subcommand in allowed
