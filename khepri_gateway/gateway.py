"""Gateway entrypoint: authenticate the caller, parse the envelope, dispatch."""

import json
import logging
from collections.abc import Callable
from typing import Any, Literal, Optional

from pydantic import BaseModel, ValidationError

from khepri_gateway.errors import ErrorCode, GatewayError
from khepri_gateway.supabase import SupabaseError, find_athlete
from khepri_gateway.tools import ToolRegistry
from khepri_gateway.tools._base import ToolContext

logger = logging.getLogger(__name__)

INVALID_ENVELOPE = 'Invalid request: action must be "list_tools" or "execute_tool"'
INVALID_TOOL_NAME = "tool_name must be a string"


class GatewayRequest(BaseModel):
    action: Literal["list_tools", "execute_tool"]
    tool_name: Any = None
    tool_input: Optional[dict[str, Any]] = None


def parse_envelope(body: bytes | str) -> GatewayRequest:
    try:
        payload = json.loads(body or b"")
    except ValueError as e:
        raise GatewayError(400, "Invalid JSON in request body") from e
    if not isinstance(payload, dict):
        raise GatewayError(400, INVALID_ENVELOPE)
    try:
        request = GatewayRequest.model_validate(payload)
    except ValidationError as e:
        raise GatewayError(400, INVALID_ENVELOPE) from e

    if request.action == "execute_tool":
        if request.tool_name is None or request.tool_name == "":
            raise GatewayError(400, INVALID_ENVELOPE)
        if not isinstance(request.tool_name, str):
            raise GatewayError(400, INVALID_TOOL_NAME)
    return request


class Gateway:
    """One request at a time; holds no per-request state between calls."""

    def __init__(
        self,
        registry: ToolRegistry,
        context_factory: Callable[[str], ToolContext] = ToolContext.for_request,
    ):
        self.registry = registry
        self.context_factory = context_factory

    async def authenticate(self, authorization: str | None) -> tuple[ToolContext, str]:
        """Build the request context and resolve the caller's athlete id."""
        if not authorization:
            raise GatewayError(401, "Missing authorization header")

        ctx = self.context_factory(authorization)
        if not ctx.store.configured:
            logger.error("Supabase URL or anon key is not configured")
            raise GatewayError(500, "Server configuration error")

        try:
            user = await ctx.store.get_user()
        except SupabaseError as e:
            raise GatewayError(401, "Unauthorized") from e

        try:
            athlete = await find_athlete(ctx.store, user["id"])
        except SupabaseError as e:
            logger.warning(f"Athlete lookup failed for user {user['id']}: {e.message}")
            athlete = None
        if not athlete:
            raise GatewayError(404, "Athlete profile not found")
        return ctx, athlete["id"]

    async def dispatch(self, request: GatewayRequest, athlete_id: str, ctx: ToolContext) -> dict:
        if request.action == "list_tools":
            return {"tools": [d.to_dict() for d in self.registry.definitions()]}

        result = await self.registry.execute(request.tool_name, request.tool_input or {}, athlete_id, ctx)
        return result.model_dump(mode="json")

    async def handle(self, method: str, authorization: str | None, body: bytes | str) -> tuple[int, dict]:
        """Return ``(status_code, payload)`` for one gateway call."""
        if method == "OPTIONS":
            return 200, {"ok": True}
        if method != "POST":
            return 405, GatewayError(405, "Method not allowed").to_payload()

        try:
            ctx, athlete_id = await self.authenticate(authorization)
            request = parse_envelope(body)
            return 200, await self.dispatch(request, athlete_id, ctx)
        except GatewayError as e:
            return e.status_code, e.to_payload()
        except Exception:
            logger.exception("Gateway error")
            return 500, GatewayError(500, "Internal server error", ErrorCode.INTERNAL_ERROR.value).to_payload()
