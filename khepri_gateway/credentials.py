"""Intervals.icu connection management: status, validated save, removal."""

import logging
from typing import Any

from pydantic import BaseModel

from khepri_gateway.errors import ErrorCode, GatewayError, IntervalsApiError
from khepri_gateway.intervals import Credentials, IntervalsClient
from khepri_gateway.supabase import SupabaseError
from khepri_gateway.vault import CredentialVault

logger = logging.getLogger(__name__)


class CredentialsRequest(BaseModel):
    intervals_athlete_id: Any = None
    api_key: Any = None


def _required(value, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise GatewayError(400, f"{field_name} is required")
    return value.strip()


def verification_error(exc: Exception) -> GatewayError:
    """Map a failed credential check onto the response the app shows."""
    if isinstance(exc, IntervalsApiError):
        if exc.code == ErrorCode.INVALID_CREDENTIALS:
            return GatewayError(401, "Invalid Intervals.icu credentials. Please check your Athlete ID and API Key.")
        if exc.code == ErrorCode.RATE_LIMITED:
            return GatewayError(429, "Intervals.icu rate limit reached. Please wait a moment and try again.")
        if 400 <= exc.status_code < 500:
            return GatewayError(
                400, f"Intervals.icu rejected the request ({exc.status_code}). Please check your Athlete ID."
            )
        if exc.status_code >= 500:
            return GatewayError(502, "Intervals.icu is experiencing issues. Please try again later.")
        if exc.status_code == 0:
            return GatewayError(502, "Could not reach Intervals.icu to verify credentials. Please try again.")
    return GatewayError(502, "Unexpected error while verifying Intervals.icu credentials. Please try again.")


class CredentialService:
    def __init__(self, vault: CredentialVault, intervals: IntervalsClient):
        self.vault = vault
        self.intervals = intervals

    async def status(self, athlete_id: str) -> dict:
        try:
            return await self.vault.status(athlete_id)
        except SupabaseError as e:
            logger.error(f"Fetch credentials error for athlete {athlete_id}: {e.message}")
            raise GatewayError(500, "Failed to fetch credentials") from e

    async def save(self, athlete_id: str, request: CredentialsRequest) -> dict:
        credentials = Credentials(
            external_athlete_id=_required(request.intervals_athlete_id, "intervals_athlete_id"),
            api_key=_required(request.api_key, "api_key"),
        )

        try:
            await self.intervals.validate_credentials(credentials)
        except Exception as e:
            logger.warning(f"Credential check failed for athlete {athlete_id}: {type(e).__name__}")
            raise verification_error(e) from e

        try:
            await self.vault.save(athlete_id, credentials)
        except SupabaseError as e:
            logger.error(f"Upsert error for athlete {athlete_id}: {e.message}")
            raise GatewayError(500, "Failed to save credentials") from e
        return {"success": True, "message": "Credentials saved"}

    async def remove(self, athlete_id: str) -> dict:
        try:
            await self.vault.remove(athlete_id)
        except SupabaseError as e:
            logger.error(f"Delete error for athlete {athlete_id}: {e.message}")
            raise GatewayError(500, "Failed to delete credentials") from e
        return {"success": True, "message": "Credentials removed"}
