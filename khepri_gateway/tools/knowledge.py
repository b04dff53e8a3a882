"""Exercise science knowledge search tools (RAG)."""

import logging
import math

from khepri_gateway.errors import ErrorCode, ToolFailure, ToolResult, ToolSuccess, failure
from khepri_gateway.supabase import SupabaseError
from khepri_gateway.tools._base import ToolContext, ToolDefinition, ToolEntry
from khepri_gateway.validators import is_number

logger = logging.getLogger(__name__)

SEARCH_FUNCTION = "semantic-search"
DEFAULT_MATCH_COUNT = 3
MAX_MATCH_COUNT = 10
MATCH_THRESHOLD = 0.7

SEARCH_KNOWLEDGE = ToolDefinition(
    name="search_knowledge",
    description=(
        "Search the exercise science knowledge base for training principles, recovery protocols, "
        "injury prevention, and periodization guidelines. Use this when the athlete asks about "
        "training methodology, when you need to support a recommendation with evidence, or when "
        "discussing recovery and injury management."
    ),
    properties={
        "query": {
            "type": "string",
            "description": "Natural language search query about exercise science or training",
        },
        "match_count": {
            "type": "number",
            "description": "Number of results to return (default: 3, max: 10)",
        },
    },
    required=("query",),
)


def _match_count(value) -> int:
    if not is_number(value) or not math.isfinite(value):
        return DEFAULT_MATCH_COUNT
    return min(max(math.floor(value + 0.5), 1), MAX_MATCH_COUNT)


def _result(raw: dict) -> dict:
    metadata = raw.get("metadata") or {}
    return {
        "title": raw.get("title"),
        "content": raw.get("content"),
        "similarity": raw.get("similarity"),
        "category": metadata.get("category"),
        "tags": metadata.get("tags"),
    }


async def handle_search_knowledge(tool_input: dict, athlete_id: str, ctx: ToolContext) -> ToolResult:
    query = tool_input.get("query")
    if not isinstance(query, str) or not query.strip():
        return failure("Query is required and must be a non-empty string")

    body = {
        "query": query.strip(),
        "match_count": _match_count(tool_input.get("match_count")),
        "match_threshold": MATCH_THRESHOLD,
        "content_type": "knowledge",
    }

    try:
        data = await ctx.store.invoke_function(SEARCH_FUNCTION, body)
    except SupabaseError as e:
        logger.warning(f"Knowledge search failed: {e.message}")
        return failure(f"Knowledge search failed: {e.message}", ErrorCode.SEARCH_ERROR)
    except Exception as e:
        logger.error(f"Knowledge search error: {e}", exc_info=True)
        return ToolFailure.from_exception(e, ErrorCode.SEARCH_ERROR)

    results = data.get("results") if isinstance(data, dict) else None
    if not isinstance(results, list):
        results = []
    results = [_result(r) for r in results if isinstance(r, dict)]

    return ToolSuccess(data={"results": results, "result_count": len(results)})


KNOWLEDGE_TOOLS = [ToolEntry(SEARCH_KNOWLEDGE, handle_search_knowledge)]
