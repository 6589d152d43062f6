"""Driver profiles, the badge catalog and the xp leaderboard."""

from __future__ import annotations

from typing import Any, Optional

from smartcharge.domain.errors import NotFoundError
from smartcharge.repository.data_repository import DataRepository
from smartcharge.utils.config import Settings, get_settings


DEFAULT_LEADERBOARD_LIMIT = 10
MAX_LEADERBOARD_LIMIT = 100


class ProfileService:
    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def get_profile(self, user_id: int) -> dict[str, Any]:
        user = self._repository.get_user(user_id)
        if user is None:
            raise NotFoundError("User")
        badges = self._repository.list_user_badges(user_id)
        reservations = self._repository.list_reservations_for_user(
            user_id,
            limit=self._settings.recent_reservations_limit,
        )
        return {
            "id": user.user_id,
            "name": user.name,
            "email": user.email,
            "role": user.role,
            "coins": user.coins,
            "co2_saved": user.co2_saved,
            "xp": user.xp,
            "badges": [badge.to_dict() for badge in badges],
            "recent_reservations": [reservation.to_dict() for reservation in reservations],
        }

    def list_badges(self) -> list[dict[str, Any]]:
        return [badge.to_dict() for badge in self._repository.list_badges()]

    def leaderboard(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Top drivers by xp; a missing or out-of-range limit falls back to the default."""
        if limit is None or limit <= 0 or limit > MAX_LEADERBOARD_LIMIT:
            limit = DEFAULT_LEADERBOARD_LIMIT
        return [
            {
                "rank": rank,
                "id": user.user_id,
                "name": user.name,
                "xp": user.xp,
                "coins": user.coins,
                "co2_saved": user.co2_saved,
            }
            for rank, user in enumerate(self._repository.list_leaderboard(limit), start=1)
        ]
