"""FastAPI server for the Khepri coaching gateway."""

import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ValidationError

from khepri_gateway.agent import CoachAgent
from khepri_gateway.config import settings
from khepri_gateway.credentials import CredentialService, CredentialsRequest
from khepri_gateway.errors import GatewayError
from khepri_gateway.gateway import Gateway
from khepri_gateway.supabase import SupabaseError
from khepri_gateway.tools import registry

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
}

app = FastAPI(title="Khepri Coaching Gateway", version="0.1.0")


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    return JSONResponse(exc.to_payload(), status_code=exc.status_code, headers=CORS_HEADERS)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse({"error": "Internal server error"}, status_code=500, headers=CORS_HEADERS)


# --- Dependencies ---

@lru_cache
def get_gateway() -> Gateway:
    return Gateway(registry)


@lru_cache
def get_agent() -> CoachAgent:
    return CoachAgent(registry)


# --- Models ---

class ChatRequest(BaseModel):
    message: str
    history: list[dict] | None = None


class ChatResponse(BaseModel):
    success: bool
    message: str | None = None
    error: str | None = None
    tool_calls: list[dict] | None = None
    usage: dict | None = None


async def read_json_object(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise GatewayError(400, "Invalid JSON in request body")
    if not isinstance(body, dict):
        raise GatewayError(400, "Invalid request body")
    return body


# --- Endpoints ---

@app.api_route("/mcp-gateway", methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
async def mcp_gateway(request: Request, gateway: Gateway = Depends(get_gateway)):
    """List or execute tools on behalf of the authenticated athlete."""
    if request.method == "OPTIONS":
        return PlainTextResponse("ok", headers=CORS_HEADERS)
    body = await request.body()
    status_code, payload = await gateway.handle(request.method, request.headers.get("Authorization"), body)
    return JSONResponse(payload, status_code=status_code, headers=CORS_HEADERS)


@app.options("/credentials")
async def credentials_preflight():
    return PlainTextResponse("ok", headers=CORS_HEADERS)


@app.get("/credentials")
async def credentials_status(request: Request, gateway: Gateway = Depends(get_gateway)):
    """Connection status; never returns the API key."""
    ctx, athlete_id = await gateway.authenticate(request.headers.get("Authorization"))
    service = CredentialService(ctx.vault, ctx.intervals)
    return JSONResponse(await service.status(athlete_id), headers=CORS_HEADERS)


@app.post("/credentials")
async def credentials_save(request: Request, gateway: Gateway = Depends(get_gateway)):
    """Verify the key against Intervals.icu, then store it encrypted."""
    ctx, athlete_id = await gateway.authenticate(request.headers.get("Authorization"))
    body = await read_json_object(request)

    service = CredentialService(ctx.vault, ctx.intervals)
    result = await service.save(athlete_id, CredentialsRequest.model_validate(body))
    return JSONResponse(result, headers=CORS_HEADERS)


@app.delete("/credentials")
async def credentials_remove(request: Request, gateway: Gateway = Depends(get_gateway)):
    ctx, athlete_id = await gateway.authenticate(request.headers.get("Authorization"))
    service = CredentialService(ctx.vault, ctx.intervals)
    return JSONResponse(await service.remove(athlete_id), headers=CORS_HEADERS)


@app.post("/chat", response_model=ChatResponse)
async def chat(
    request: Request,
    gateway: Gateway = Depends(get_gateway),
    agent: CoachAgent = Depends(get_agent),
):
    """Main chat endpoint: process the athlete's message through the coaching agent."""
    ctx, athlete_id = await gateway.authenticate(request.headers.get("Authorization"))
    try:
        req = ChatRequest.model_validate(await read_json_object(request))
    except ValidationError as e:
        raise GatewayError(400, "Invalid request body") from e

    try:
        athlete = await ctx.store.select_one("athletes", "id,display_name", {"id": athlete_id})
    except SupabaseError as e:
        logger.warning(f"Failed to fetch athlete context: {e.message}")
        athlete = None

    result = await agent.chat(athlete_id, req.message, ctx, history=req.history, athlete=athlete)
    return ChatResponse(**result)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "khepri-gateway"}
