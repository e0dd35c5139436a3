"""Profile lookups (household membership)."""

from ..error_handling import AuthorizationError
from ..logging_config import get_logger
from .gateway import RemoteDataGateway

logger = get_logger(__name__)


class ProfileService:
    """Reads the ``profiles`` table."""

    def __init__(self, gateway: RemoteDataGateway):
        self.gateway = gateway
        self._household_cache: dict[str, str | None] = {}

    async def get_household_id(self, user_id: str) -> str | None:
        """
        Get the household a user belongs to.

        Returns:
            The household id, or None when the profile has none or cannot be read
        """
        if user_id in self._household_cache:
            return self._household_cache[user_id]

        result = await self.gateway.select("profiles", {"id": user_id}, limit=1)
        if not result.ok:
            logger.warning("profile_fetch_failed", user_id=user_id, error=result.error.message if result.error else None)
            return None

        rows = result.data or []
        household_id = rows[0].get("household_id") if rows else None
        household_id = str(household_id) if household_id else None
        self._household_cache[user_id] = household_id
        logger.debug("household_resolved", user_id=user_id, household_id=household_id)
        return household_id

    async def require_household_id(self, user_id: str) -> str:
        """
        Get the household a user belongs to.

        Raises:
            AuthorizationError: If the user is not linked to a partner
        """
        household_id = await self.get_household_id(user_id)
        if not household_id:
            raise AuthorizationError(
                "User has no household",
                code="no_household",
                user_message="Your profile is not linked to a partner yet.",
                details={"user_id": user_id},
            )
        return household_id
