"""
Registration API service: status, finalize, program catalog and registration creation.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from app.api.workflow_base.exceptions import RegistrationServiceException

from .api_client import BackendApiClient
from .models import PlayerDetails, Program, RegistrationStatus

logger = logging.getLogger(__name__)

# Organization recorded for players created through public registration
PUBLIC_REGISTRATION_ORGANIZATION = "Public Registration"


class RegistrationApiClient(BackendApiClient):
    """Client for the backend registration endpoints."""

    exception_class = RegistrationServiceException

    async def get_status(self, registration_id: str) -> RegistrationStatus:
        """Fetch durable registration state for an identifier."""
        body = await self._request(
            "GET", f"/api/registration-flow/{registration_id}/status", "Load registration status"
        )
        try:
            return RegistrationStatus.model_validate(body)
        except ValidationError as e:
            logger.error(f"Malformed registration status for {registration_id}: {e}")
            raise RegistrationServiceException(
                "Load registration status", "Received an invalid registration status."
            ) from e

    async def finalize(self, registration_id: str) -> dict[str, Any]:
        """Lock in the fee calculation before payment."""
        return await self._request(
            "POST", f"/api/registration-flow/{registration_id}/finalize", "Finalize registration"
        )

    async def list_programs(self) -> list[Program]:
        body = await self._request("GET", "/api/programs", "Load programs")
        raw = body.get("programs", []) if isinstance(body, dict) else body
        programs = []
        for item in raw or []:
            try:
                programs.append(Program.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed program record: {e}")
        return programs

    async def create_player(self, player: PlayerDetails) -> str:
        """Create (or find) the player profile and return its id."""
        body = await self._request(
            "POST",
            "/api/players",
            "Create player",
            {**player.model_dump(), "organization": PUBLIC_REGISTRATION_ORGANIZATION},
        )
        player_id = (body.get("player") or {}).get("id") if isinstance(body, dict) else None
        if not player_id:
            raise RegistrationServiceException(
                "Create player", "Failed to create player profile"
            )
        return str(player_id)

    async def create_registration(
        self, player_id: str, program_id: str, notes: str | None = None
    ) -> str:
        """Create the program registration and return its durable id."""
        body = await self._request(
            "POST",
            "/api/registrations",
            "Create registration",
            {"player_id": player_id, "program_id": program_id, "notes": notes or None},
        )
        record = body.get("registration", body) if isinstance(body, dict) else {}
        registration_id = record.get("id") if isinstance(record, dict) else None
        if not registration_id:
            raise RegistrationServiceException(
                "Create registration", "Failed to create registration"
            )
        logger.info(f"Created registration {registration_id} for player {player_id}")
        return str(registration_id)


def filter_open_programs(
    programs: list[Program],
    now: datetime | None = None,
    search: str | None = None,
    season: str | None = None,
) -> list[Program]:
    """
    Keep active programs whose registration window contains now.

    Args:
        programs: Programs from the catalog
        now: Reference time (defaults to current UTC time)
        search: Case-insensitive match on name or description
        season: Exact season filter

    Returns:
        Programs open for registration, in catalog order
    """
    now = now or datetime.now(UTC)
    term = search.lower() if search else None

    result = []
    for program in programs:
        if not program.is_active:
            continue
        opens = _parse_date(program.registration_open_date)
        closes = _parse_date(program.registration_close_date)
        if opens is None or closes is None or not (opens <= now <= closes):
            continue
        if term and term not in program.name.lower() and term not in (
            program.description or ""
        ).lower():
            continue
        if season and program.season != season:
            continue
        result.append(program)
    return result


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable program date: {value}")
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
