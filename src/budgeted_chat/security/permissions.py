"""Feature permissions for the acting user."""

import logging
from typing import Callable

from ..tracking.store import UsageStore
from ..types import FeatureFlags
from .identity import get_os_username

logger = logging.getLogger(__name__)


class PermissionResolver:
    """Looks up the acting user's feature flags, failing closed.

    Args:
        store: Usage store holding the permission flags
        identity: Callable returning the acting user's name
    """

    def __init__(self, store: UsageStore, identity: Callable[[], str] = get_os_username) -> None:
        self._store = store
        self._identity = identity

    async def for_current_user(self) -> FeatureFlags:
        """Ensure the acting user has a record and return their flags.

        Never raises: an unknown identity or a store failure yields
        deny-all flags.
        """
        user_name = self._identity()
        if not user_name:
            logger.warning("No user identity; denying all features")
            return FeatureFlags.deny_all()

        try:
            await self._store.ensure_user(user_name)
            return await self._store.get_permissions(user_name)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Permission lookup failed; denying all features",
                extra={"user_name": user_name, "error": str(exc)},
            )
            return FeatureFlags.deny_all()
