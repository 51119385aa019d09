"""Tool protocol, name-keyed registry and the built-in tools."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .db import update_user_profile
from .models import ToolDef

logger = logging.getLogger(__name__)

# Sync or async callable: args -> JSON-serializable result.
ToolRunner = Callable[[dict[str, Any]], Any]


class BaseTool(ABC):
    """Base class for orchestrator tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for parameters."""
        ...

    @abstractmethod
    async def execute(self, params: dict[str, Any]) -> Any:
        """Run the tool; the return value must be JSON-serializable."""
        ...

    async def __call__(self, params: dict[str, Any]) -> Any:
        return await self.execute(params)

    def to_def(self) -> ToolDef:
        return ToolDef(name=self.name, description=self.description, parameters=self.parameters)


class ToolRegistry:
    """Maps tool names to runners. Built once per request, never mutated while streaming."""

    def __init__(self, tools: Iterable[BaseTool] = ()) -> None:
        self._defs: dict[str, ToolDef] = {}
        self._runners: dict[str, ToolRunner] = {}
        for tool in tools:
            self.register(tool.to_def(), tool)

    def register(self, definition: ToolDef, runner: ToolRunner) -> None:
        if definition.name in self._runners:
            raise ValueError(f"Tool already registered: {definition.name}")
        self._defs[definition.name] = definition
        self._runners[definition.name] = runner

    def lookup(self, name: str) -> ToolRunner | None:
        return self._runners.get(name)

    def definitions(self) -> list[ToolDef]:
        return list(self._defs.values())

    def tool_schemas(self) -> list[dict[str, Any]]:
        return [d.to_tool_schema() for d in self.definitions()]

    def __len__(self) -> int:
        return len(self._runners)

    def __contains__(self, name: object) -> bool:
        return name in self._runners


# ---------------------------------------------------------------------------
# Built-in tool: current time for a location
# ---------------------------------------------------------------------------

TIMEZONE_MAP: dict[str, str] = {
    "erbil": "Asia/Baghdad",
    "baghdad": "Asia/Baghdad",
    "dubai": "Asia/Dubai",
    "riyadh": "Asia/Riyadh",
    "doha": "Asia/Qatar",
    "istanbul": "Europe/Istanbul",
    "tehran": "Asia/Tehran",
    "london": "Europe/London",
    "paris": "Europe/Paris",
    "berlin": "Europe/Berlin",
    "rome": "Europe/Rome",
    "madrid": "Europe/Madrid",
    "amsterdam": "Europe/Amsterdam",
    "moscow": "Europe/Moscow",
    "cairo": "Africa/Cairo",
    "lagos": "Africa/Lagos",
    "nairobi": "Africa/Nairobi",
    "new york": "America/New_York",
    "chicago": "America/Chicago",
    "denver": "America/Denver",
    "los angeles": "America/Los_Angeles",
    "toronto": "America/Toronto",
    "mexico city": "America/Mexico_City",
    "sao paulo": "America/Sao_Paulo",
    "buenos aires": "America/Argentina/Buenos_Aires",
    "delhi": "Asia/Kolkata",
    "mumbai": "Asia/Kolkata",
    "beijing": "Asia/Shanghai",
    "shanghai": "Asia/Shanghai",
    "hong kong": "Asia/Hong_Kong",
    "singapore": "Asia/Singapore",
    "tokyo": "Asia/Tokyo",
    "seoul": "Asia/Seoul",
    "sydney": "Australia/Sydney",
    "auckland": "Pacific/Auckland",
}


def resolve_timezone(location: str) -> ZoneInfo | None:
    """City name (case-insensitive) or IANA zone name to a ZoneInfo."""
    key = " ".join(location.lower().replace(",", " ").split())
    zone_name = TIMEZONE_MAP.get(key)
    if zone_name is None:
        # Accept "Paris, France" style input by trying the leading words.
        for city, zone in TIMEZONE_MAP.items():
            if key.startswith(city):
                zone_name = zone
                break
    try:
        return ZoneInfo(zone_name or location.strip())
    except (ZoneInfoNotFoundError, ValueError):
        return None


def _format_offset(now: datetime) -> str:
    offset = now.utcoffset()
    total_minutes = int(offset.total_seconds() // 60) if offset else 0
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


class GetCurrentTimeTool(BaseTool):
    """Current date and time for a city or IANA zone."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def name(self) -> str:
        return "get_current_time"

    @property
    def description(self) -> str:
        return (
            "Get the current time and date for any location worldwide. "
            "Supports major cities and locations across all continents."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "location": {
                    "type": "string",
                    "description": (
                        'The location for which to get the current time (e.g., "Erbil", '
                        '"Paris", "New York", "Tokyo"). If not provided, returns server time.'
                    ),
                }
            },
            "required": ["location"],
        }

    async def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        location = str(params.get("location") or "").strip()
        zone = resolve_timezone(location) if location else None
        now = self._clock().astimezone(zone or timezone.utc)
        result: dict[str, Any] = {
            "currentDate": now.strftime("%A, %B %d, %Y"),
            "currentTime": now.strftime("%H:%M:%S"),
            "timeZone": str(zone) if zone else "UTC",
            "location": location or "server",
            "timeZoneOffset": _format_offset(now),
            "isDaytime": 6 <= now.hour < 18,
        }
        if location and zone is None:
            result["note"] = f"Unknown location {location!r}; showing UTC time instead."
        return result


# ---------------------------------------------------------------------------
# Built-in tool: user profile updates
# ---------------------------------------------------------------------------


class UpdateUserProfileTool(BaseTool):
    """Merge details the user shares about themselves into their stored profile."""

    def __init__(self, user_id: str | None, users_db_path=None) -> None:
        self._user_id = user_id
        self._users_db_path = users_db_path

    @property
    def name(self) -> str:
        return "update_user_profile"

    @property
    def description(self) -> str:
        return (
            "Updates the user's profile with new information they share about themselves. "
            "Use this to save meaningful details about their life, experiences, preferences, "
            "goals, and personal information."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "profileData": {
                    "type": "object",
                    "description": (
                        "A JSON object containing the user profile data to save, e.g. name, "
                        "profession, hobbies, interests, goals or preferences."
                    ),
                }
            },
            "required": ["profileData"],
        }

    async def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        if not self._user_id:
            logger.warning("update_user_profile called without a user identity")
            return {"success": False, "error": "No user identity; profile not saved."}
        profile_data = params.get("profileData")
        if not isinstance(profile_data, dict) or not profile_data:
            return {"success": False, "error": "profileData must be a non-empty object"}
        kwargs = {"path": self._users_db_path} if self._users_db_path else {}
        await asyncio.to_thread(update_user_profile, self._user_id, profile_data, **kwargs)
        return {"success": True, "message": "Profile updated successfully"}


def get_tools_for_user(user_id: str | None, users_db_path=None) -> ToolRegistry:
    """Return the default tool registry for a user (profile tool bound to user_id)."""
    return ToolRegistry(
        [
            GetCurrentTimeTool(),
            UpdateUserProfileTool(user_id, users_db_path=users_db_path),
        ]
    )
