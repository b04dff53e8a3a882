"""Coaching agent: Claude with the gateway's tools, run in-process."""

import json
import logging
from datetime import date

import anthropic

from khepri_gateway.config import settings
from khepri_gateway.errors import ErrorCode, failure
from khepri_gateway.tools import ToolRegistry
from khepri_gateway.tools._base import ToolContext

logger = logging.getLogger(__name__)

BASE_PROMPT = """You are Khepri, an AI endurance coaching assistant. You help athletes optimize their training through personalized advice based on their fitness data, goals, and daily readiness.

## Your Capabilities
You have tools that read and write the athlete's Intervals.icu account:
- get_activities: recent workouts (rides, runs, swims, etc.)
- get_wellness_data: wellness metrics (CTL/ATL/TSB, HRV, sleep, readiness)
- get_events: scheduled events, planned workouts, and races
- create_event / update_event: put workouts, races, rest days and notes on the calendar
- search_knowledge: exercise science knowledge base
- generate_plan: build a periodized multi-week training plan

## Guidelines
1. Use data to inform advice: fetch relevant data before discussing training load or recovery.
2. Respect constraints: never recommend training that violates the athlete's injuries or time limits.
3. Be specific: "30-minute easy spin at <65% FTP", not "light exercise".
4. Explain your reasoning.
5. Prioritize safety: if unsure about injury implications, recommend consulting a professional.
6. If a tool reports INVALID_CREDENTIALS or NO_CREDENTIALS, ask the athlete to reconnect Intervals.icu. If it reports RATE_LIMITED, suggest trying again shortly.

## Response Style
- Be conversational but concise
- Use bullet points for multi-part recommendations
- Include relevant metrics when discussing training load"""


def build_system_prompt(athlete: dict | None = None, today: date | None = None) -> str:
    """Base prompt plus whatever athlete context is available."""
    parts = [BASE_PROMPT]
    if today is not None:
        parts.append(f"\nToday is {today.isoformat()}.")
    if athlete and athlete.get("display_name"):
        parts.append(f"\n## Athlete Context\n- Name: {athlete['display_name']}")
    return "\n".join(parts)


def _serialize_content(content) -> list | str:
    """Convert anthropic SDK content blocks to JSON-serializable format."""
    if isinstance(content, str):
        return content

    serialized = []
    for block in content:
        if hasattr(block, "model_dump"):
            serialized.append(block.model_dump(exclude_none=True))
        elif isinstance(block, dict):
            serialized.append(block)
        else:
            serialized.append({"type": "text", "text": str(block)})
    return serialized


class CoachAgent:
    """Runs one chat turn: call Claude, execute requested tools, repeat."""

    def __init__(
        self,
        registry: ToolRegistry,
        client: anthropic.AsyncAnthropic | None = None,
        max_iterations: int | None = None,
    ):
        self.registry = registry
        self.client = client or anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
        self.max_iterations = max_iterations or settings.agent_max_iterations
        self.tools = [d.to_dict() for d in registry.definitions()]

    async def chat(
        self,
        athlete_id: str,
        message: str,
        ctx: ToolContext,
        history: list[dict] | None = None,
        athlete: dict | None = None,
    ) -> dict:
        """Process a user message and return the agent response."""
        messages = list(history or [])
        messages.append({"role": "user", "content": message})
        system_prompt = build_system_prompt(athlete, ctx.today())

        total_input_tokens = 0
        total_output_tokens = 0
        collected_tool_calls: list[dict] = []
        response = None

        for _ in range(self.max_iterations):
            try:
                response = await self.client.messages.create(
                    model=settings.anthropic_model,
                    max_tokens=2048,
                    system=system_prompt,
                    tools=self.tools,
                    messages=messages,
                )
            except anthropic.APIError as e:
                logger.error(f"Anthropic API error: {e}")
                return {"success": False, "error": str(e)}

            total_input_tokens += response.usage.input_tokens
            total_output_tokens += response.usage.output_tokens
            messages.append({"role": "assistant", "content": _serialize_content(response.content)})

            if response.stop_reason != "tool_use":
                break

            tool_results = []
            for block in response.content:
                if block.type != "tool_use":
                    continue
                tool_input = block.input if isinstance(block.input, dict) else {}
                try:
                    outcome = await self.registry.execute(block.name, tool_input, athlete_id, ctx)
                except Exception as e:
                    logger.error(f"Tool error ({block.name}): {e}", exc_info=True)
                    outcome = failure("Tool execution failed", ErrorCode.INTERNAL_ERROR)
                result = outcome.model_dump(mode="json")
                collected_tool_calls.append({"name": block.name, "input": tool_input, "result": result})
                tool_results.append({
                    "type": "tool_result",
                    "tool_use_id": block.id,
                    "content": json.dumps(result),
                    "is_error": not result["success"],
                })

            messages.append({"role": "user", "content": tool_results})
        else:
            logger.warning(f"Agent stopped after {self.max_iterations} iterations for athlete {athlete_id}")

        text_parts = [block.text for block in response.content if getattr(block, "type", None) == "text"]

        return {
            "success": True,
            "message": "\n".join(text_parts),
            "tool_calls": collected_tool_calls,
            "usage": {
                "input_tokens": total_input_tokens,
                "output_tokens": total_output_tokens,
            },
        }
