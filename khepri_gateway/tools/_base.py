"""Shared tool types and the per-request collaborators handed to every tool."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Any, Mapping

from khepri_gateway.config import settings
from khepri_gateway.errors import ToolResult
from khepri_gateway.intervals import IntervalsClient
from khepri_gateway.plan_service import PlanService
from khepri_gateway.sources import DataSource, pick_source, utc_today
from khepri_gateway.supabase import SupabaseClient
from khepri_gateway.vault import CredentialVault


@dataclass(frozen=True)
class ToolDefinition:
    """Name, description and input schema shown to the calling agent."""

    name: str
    description: str
    properties: Mapping[str, dict] = field(default_factory=dict)
    required: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))
        object.__setattr__(self, "required", tuple(self.required))

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": {
                "type": "object",
                "properties": {key: dict(value) for key, value in self.properties.items()},
                "required": list(self.required),
            },
        }


@dataclass
class ToolContext:
    """External collaborators for one gateway request."""

    store: SupabaseClient
    vault: CredentialVault
    intervals: IntervalsClient
    plans: PlanService
    today: Callable[[], date] = utc_today

    @classmethod
    def for_request(cls, authorization: str) -> "ToolContext":
        store = SupabaseClient(authorization)
        return cls(
            store=store,
            vault=CredentialVault(store, settings.encryption_key),
            intervals=IntervalsClient(),
            plans=PlanService(store),
        )

    async def data_source(self, athlete_id: str) -> DataSource:
        credentials = await self.vault.resolve(athlete_id)
        return pick_source(self.intervals, credentials, self.today())


ToolHandler = Callable[[dict[str, Any], str, ToolContext], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ToolEntry:
    definition: ToolDefinition
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.definition.name


# Schema fragments reused by the date-range tools
DATE_RANGE_PROPERTIES = {
    "oldest": {"type": "string", "description": "Oldest date to include (ISO 8601, e.g. 2026-01-01)"},
    "newest": {"type": "string", "description": "Newest date to include (ISO 8601, e.g. 2026-02-13)"},
}
