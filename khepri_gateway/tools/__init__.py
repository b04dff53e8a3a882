"""Tool definitions and dispatch for the coaching agent."""

import logging

from khepri_gateway.errors import ErrorCode, ToolResult, failure
from khepri_gateway.tools._base import ToolContext, ToolDefinition, ToolEntry
from khepri_gateway.tools.activities import ACTIVITY_TOOLS
from khepri_gateway.tools.events import EVENT_TOOLS
from khepri_gateway.tools.knowledge import KNOWLEDGE_TOOLS
from khepri_gateway.tools.plan import PLAN_TOOLS
from khepri_gateway.tools.wellness import WELLNESS_TOOLS

logger = logging.getLogger(__name__)

ALL_TOOLS = (
    ACTIVITY_TOOLS
    + WELLNESS_TOOLS
    + EVENT_TOOLS
    + KNOWLEDGE_TOOLS
    + PLAN_TOOLS
)


class ToolRegistry:
    """Name -> ToolEntry mapping, filled once at startup and read-only afterwards."""

    def __init__(self):
        self._tools: dict[str, ToolEntry] = {}

    def register(self, entry: ToolEntry) -> None:
        if entry.name in self._tools:
            raise ValueError(f"Tool already registered: {entry.name}")
        self._tools[entry.name] = entry

    def definitions(self) -> list[ToolDefinition]:
        return [entry.definition for entry in self._tools.values()]

    def get(self, name: str) -> ToolEntry | None:
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def execute(self, name: str, tool_input: dict, athlete_id: str, ctx: ToolContext) -> ToolResult:
        """Run one tool. Input validation is left to the tool itself."""
        entry = self.get(name)
        if entry is None:
            return failure(f"Unknown tool: {name}", ErrorCode.TOOL_NOT_FOUND)

        logger.info(f"Executing tool {name} for athlete {athlete_id}")
        result = await entry.handler(tool_input, athlete_id, ctx)
        if not result.success:
            logger.info(f"Tool {name} returned {result.code}")
        return result


def build_registry(entries: list[ToolEntry] = ALL_TOOLS) -> ToolRegistry:
    registry = ToolRegistry()
    for entry in entries:
        registry.register(entry)
    return registry


registry = build_registry()
