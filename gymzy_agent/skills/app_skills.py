"""
App Skills - Domain operations behind the app-control tools.

One skill per declared tool. Skills receive already-validated arguments
(see shell/tools.py) and never run destructive operations on their own
initiative: delete_workout is only reachable through the confirmation gate.

Navigation is pure. Everything else calls the domain-services client, which
is anything with the AppServicesClient method set (the HTTP client in
production, an in-memory fake in tests).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from gymzy_agent.libs.tools_common.response_helpers import count_items, parse_api_response

logger = logging.getLogger(__name__)

PAGE_ROUTES: Dict[str, str] = {
    "home": "/",
    "chat": "/chat",
    "workout": "/workout",
    "log-workout": "/log-workout/new",
    "stats": "/stats",
    "feed": "/feed",
    "profile": "/profile",
    "settings": "/settings",
    "notifications": "/notifications",
    "discover": "/discover",
    "recommendations": "/recommendations",
    "templates": "/templates",
}


@dataclass
class SkillResult:
    """Result from a skill execution."""

    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[str] = None
    navigation_target: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
        }
        if self.data is not None:
            result["data"] = self.data
        if self.error:
            result["error"] = self.error
        if self.navigation_target:
            result["navigation_target"] = self.navigation_target
        return result


def _from_response(
    resp: Dict[str, Any],
    ok_message: Callable[[Any], str],
    fail_message: str,
    navigation_target: Optional[str] = None,
) -> SkillResult:
    success, data, error = parse_api_response(resp)
    if not success:
        return SkillResult(success=False, message=fail_message, error=error)
    return SkillResult(
        success=True,
        message=ok_message(data),
        data=data,
        navigation_target=navigation_target,
    )


def navigate_to(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    page = args["page"]
    target = PAGE_ROUTES.get(page)
    if target is None:
        return SkillResult(success=False, message=f"Unknown page: {page}", error="unknown_page")
    if page == "log-workout" and args.get("workoutId"):
        target = f"/log-workout/{args['workoutId']}"
    return SkillResult(success=True, message=f"Navigating to {page}", navigation_target=target)


def view_workout_history(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    resp = services.list_workouts(user_id, limit=args.get("limit", 10), sort_by=args.get("sortBy", "recent"))
    return _from_response(
        resp,
        lambda d: f"Found {count_items(d, 'workouts', 'items')} workouts",
        "Failed to retrieve workout history",
        navigation_target="/stats",
    )


def view_workout_details(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    workout_id = args["workoutId"]
    resp = services.get_workout(user_id, workout_id)
    return _from_response(
        resp,
        lambda d: f"Retrieved details for workout {workout_id}",
        "Failed to retrieve workout details",
        navigation_target=f"/workout/{workout_id}",
    )


def delete_workout(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    workout_id = args["workoutId"]
    resp = services.delete_workout(user_id, workout_id)
    return _from_response(resp, lambda d: "Workout deleted successfully", "Failed to delete workout")


def log_workout(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    workout_type = args.get("workoutType", "strength")
    return SkillResult(
        success=True,
        message=f"Ready to log a new {workout_type} workout",
        data={"workoutType": workout_type},
        navigation_target="/log-workout/new",
    )


def view_stats(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    timeframe = args.get("timeframe", "month")
    resp = services.get_stats(user_id, timeframe=timeframe, metric=args.get("metric", "overview"))
    return _from_response(
        resp,
        lambda d: f"Here are your stats for the {timeframe.replace('-', ' ')}",
        "Failed to retrieve stats",
        navigation_target="/stats",
    )


def get_personal_bests(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    exercise = args.get("exerciseName")
    resp = services.get_personal_bests(user_id, exercise_name=exercise)
    return _from_response(
        resp,
        lambda d: (f"Personal bests for {exercise}" if exercise
                   else f"Found {count_items(d, 'personalBests', 'records')} personal bests"),
        "Failed to retrieve personal bests",
    )


def view_profile(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    target_user = args.get("userId")
    resp = services.get_profile(user_id, target_user_id=target_user)
    return _from_response(
        resp,
        lambda d: "Retrieved profile",
        "Failed to retrieve profile",
        navigation_target=f"/profile/{target_user}" if target_user else "/profile",
    )


def _require_fields(args: Dict[str, Any]) -> Optional[SkillResult]:
    if not args:
        return SkillResult(success=False, message="Nothing to update", error="no_fields")
    return None


def update_profile(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    empty = _require_fields(args)
    if empty:
        return empty
    resp = services.update_profile(user_id, dict(args))
    return _from_response(
        resp,
        lambda d: f"Updated profile: {', '.join(sorted(args))}",
        "Failed to update profile",
    )


def view_settings(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    resp = services.get_settings(user_id, category=args.get("category", "all"))
    return _from_response(resp, lambda d: "Retrieved settings", "Failed to retrieve settings",
                          navigation_target="/settings")


def update_settings(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    empty = _require_fields(args)
    if empty:
        return empty
    resp = services.update_settings(user_id, dict(args))
    return _from_response(
        resp,
        lambda d: f"Updated settings: {', '.join(f'{k}={v}' for k, v in sorted(args.items()))}",
        "Failed to update settings",
    )


def update_privacy(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    empty = _require_fields(args)
    if empty:
        return empty
    resp = services.update_privacy(user_id, dict(args))
    return _from_response(resp, lambda d: "Privacy settings updated", "Failed to update privacy settings")


def view_feed(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    resp = services.get_feed(user_id, feed_type=args.get("feedType", "personalized"), limit=args.get("limit", 10))
    return _from_response(
        resp,
        lambda d: f"Found {count_items(d, 'posts', 'items')} posts in your feed",
        "Failed to retrieve feed",
        navigation_target="/feed",
    )


def view_notifications(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    resp = services.get_notifications(user_id, unread_only=args.get("unreadOnly", False))
    return _from_response(
        resp,
        lambda d: f"You have {count_items(d, 'notifications', 'items')} notifications",
        "Failed to retrieve notifications",
        navigation_target="/notifications",
    )


def search_users(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    query = args["query"]
    resp = services.search_users(user_id, query, limit=args.get("limit", 10))
    return _from_response(
        resp,
        lambda d: f"Found {count_items(d, 'users', 'results')} users matching '{query}'",
        "Failed to search users",
    )


def get_recommendations(services: Any, user_id: str, args: Dict[str, Any]) -> SkillResult:
    rec_type = args.get("type", "workouts")
    resp = services.get_recommendations(user_id, rec_type=rec_type)
    return _from_response(
        resp,
        lambda d: f"Here are some {rec_type} recommendations",
        "Failed to get recommendations",
        navigation_target="/recommendations",
    )


APP_SKILLS: Dict[str, Callable[[Any, str, Dict[str, Any]], SkillResult]] = {
    "navigateTo": navigate_to,
    "viewWorkoutHistory": view_workout_history,
    "viewWorkoutDetails": view_workout_details,
    "deleteWorkout": delete_workout,
    "logWorkout": log_workout,
    "viewStats": view_stats,
    "getPersonalBests": get_personal_bests,
    "viewProfile": view_profile,
    "updateProfile": update_profile,
    "viewSettings": view_settings,
    "updateSettings": update_settings,
    "updatePrivacy": update_privacy,
    "viewFeed": view_feed,
    "viewNotifications": view_notifications,
    "searchUsers": search_users,
    "getRecommendations": get_recommendations,
}


__all__ = ["APP_SKILLS", "PAGE_ROUTES", "SkillResult"]
