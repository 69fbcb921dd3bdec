from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..tools_common.http import HttpClient


@dataclass
class AppServicesClient:
    """
    Gymzy domain services (workouts, stats, profile, settings, social).

    Every call is a POST to a named function endpoint with the acting user in
    both the X-User-Id header and the body.
    """
    base_url: str
    api_key: Optional[str] = None
    bearer_token: Optional[str] = None
    timeout_seconds: int = 10

    def __post_init__(self) -> None:
        self._http = HttpClient(
            base_url=self.base_url,
            api_key=self.api_key,
            bearer_token=self.bearer_token,
            timeout_seconds=self.timeout_seconds,
        )

    def _call(self, function: str, user_id: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"userId": user_id}
        payload.update({k: v for k, v in (body or {}).items() if v is not None})
        return self._http.post(function, payload, user_id=user_id)

    # Workouts
    def list_workouts(self, user_id: str, limit: int = 10, sort_by: str = "recent") -> Dict[str, Any]:
        return self._call("getUserWorkouts", user_id, {"limit": limit, "sortBy": sort_by})

    def get_workout(self, user_id: str, workout_id: str) -> Dict[str, Any]:
        return self._call("getWorkout", user_id, {"workoutId": workout_id})

    def delete_workout(self, user_id: str, workout_id: str) -> Dict[str, Any]:
        return self._call("deleteWorkout", user_id, {"workoutId": workout_id})

    # Progress
    def get_stats(self, user_id: str, timeframe: str = "month", metric: str = "overview") -> Dict[str, Any]:
        return self._call("getUserStats", user_id, {"timeframe": timeframe, "metric": metric})

    def get_personal_bests(self, user_id: str, exercise_name: Optional[str] = None) -> Dict[str, Any]:
        return self._call("getPersonalBests", user_id, {"exerciseName": exercise_name})

    # Profile and settings
    def get_profile(self, user_id: str, target_user_id: Optional[str] = None) -> Dict[str, Any]:
        return self._call("getUserProfile", user_id, {"targetUserId": target_user_id or user_id})

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("updateUserProfile", user_id, {"fields": fields})

    def get_settings(self, user_id: str, category: str = "all") -> Dict[str, Any]:
        return self._call("getUserSettings", user_id, {"category": category})

    def update_settings(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("updateUserSettings", user_id, {"fields": fields})

    def update_privacy(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("updatePrivacySettings", user_id, {"fields": fields})

    # Social
    def get_feed(self, user_id: str, feed_type: str = "personalized", limit: int = 10) -> Dict[str, Any]:
        return self._call("getFeed", user_id, {"feedType": feed_type, "limit": limit})

    def get_notifications(self, user_id: str, unread_only: bool = False) -> Dict[str, Any]:
        return self._call("getNotifications", user_id, {"unreadOnly": unread_only})

    def search_users(self, user_id: str, query: str, limit: int = 10) -> Dict[str, Any]:
        return self._call("searchUsers", user_id, {"query": query, "limit": limit})

    def get_recommendations(self, user_id: str, rec_type: str = "workouts") -> Dict[str, Any]:
        return self._call("getRecommendations", user_id, {"type": rec_type})


def default_client() -> AppServicesClient:
    from gymzy_agent import config

    return AppServicesClient(
        base_url=config.GYMZY_SERVICES_BASE_URL,
        api_key=config.GYMZY_SERVICES_API_KEY or None,
        timeout_seconds=config.GYMZY_SERVICES_TIMEOUT,
    )


__all__: List[str] = ["AppServicesClient", "default_client"]
