"""
Shell Tools - Static catalog of app-control tools the model may call.

Each ToolDeclaration carries its parameter schema (types, enums, required
fields), a destructive flag (destructive tools only run after an explicit
confirmation round-trip, see safety_gate.py) and the keywords the router uses
to recognise app-control requests.

The catalog is defined once at import time and never mutated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

logger = logging.getLogger(__name__)

PAGES: Tuple[str, ...] = (
    "home", "chat", "workout", "log-workout", "stats", "feed", "profile",
    "settings", "notifications", "discover", "recommendations", "templates",
)


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: str  # string | integer | boolean | array
    description: str = ""
    enum: Optional[Tuple[str, ...]] = None
    items_type: Optional[str] = None

    def to_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.type == "array":
            schema["items"] = {"type": self.items_type or "string"}
        return schema


@dataclass(frozen=True)
class ToolDeclaration:
    name: str
    description: str
    parameters: Tuple[ToolParameter, ...] = ()
    required: FrozenSet[str] = frozenset()
    destructive: bool = False
    keywords: Tuple[str, ...] = ()

    def parameter(self, name: str) -> Optional[ToolParameter]:
        for p in self.parameters:
            if p.name == name:
                return p
        return None

    def to_schema(self) -> Dict[str, Any]:
        """JSON-schema style declaration for function-calling models."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": {p.name: p.to_schema() for p in self.parameters},
                "required": sorted(self.required),
            },
        }


@dataclass
class ArgsValidation:
    valid: bool
    args: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)


def _p(name: str, type_: str, description: str, enum: Optional[Tuple[str, ...]] = None,
       items_type: Optional[str] = None) -> ToolParameter:
    return ToolParameter(name, type_, description, enum, items_type)


# ============================================================================
# TOOL CATALOG
# ============================================================================

TOOL_DECLARATIONS: Tuple[ToolDeclaration, ...] = (
    ToolDeclaration(
        name="navigateTo",
        description="Navigate to a specific page in the app",
        parameters=(
            _p("page", "string", "The page to navigate to", PAGES),
            _p("workoutId", "string", "Workout to open when navigating to log-workout"),
        ),
        required=frozenset({"page"}),
        keywords=("navigate", "go to", "take me", "open", "page", "screen"),
    ),
    ToolDeclaration(
        name="viewWorkoutHistory",
        description="View the user's workout history",
        parameters=(
            _p("limit", "integer", "Number of workouts to show (default 10)"),
            _p("sortBy", "string", "Sort order", ("recent", "oldest")),
        ),
        keywords=("history", "past workouts", "previous workouts", "my workouts", "last workout", "workout"),
    ),
    ToolDeclaration(
        name="viewWorkoutDetails",
        description="View details of a specific workout",
        parameters=(_p("workoutId", "string", "ID of the workout to view"),),
        required=frozenset({"workoutId"}),
        keywords=("workout details", "details", "workout"),
    ),
    ToolDeclaration(
        name="deleteWorkout",
        description="Delete a workout (requires confirmation)",
        parameters=(_p("workoutId", "string", "ID of the workout to delete"),),
        required=frozenset({"workoutId"}),
        destructive=True,
        keywords=("delete", "remove", "erase", "workout"),
    ),
    ToolDeclaration(
        name="logWorkout",
        description="Start logging a new workout",
        parameters=(
            _p("workoutType", "string", "Type of workout", ("strength", "cardio", "flexibility", "sports")),
        ),
        keywords=("log", "record", "track", "workout"),
    ),
    ToolDeclaration(
        name="viewStats",
        description="View workout statistics and progress",
        parameters=(
            _p("timeframe", "string", "Time period for stats", ("week", "month", "year", "all-time")),
            _p("metric", "string", "Which metric to show", ("volume", "frequency", "strength", "overview")),
        ),
        keywords=("stats", "statistics", "progress", "analytics", "how am i doing"),
    ),
    ToolDeclaration(
        name="getPersonalBests",
        description="Get the user's personal records",
        parameters=(_p("exerciseName", "string", "Specific exercise (optional)"),),
        keywords=("personal best", "personal bests", "personal record", "pr", "prs", "record"),
    ),
    ToolDeclaration(
        name="viewProfile",
        description="View a user profile",
        parameters=(_p("userId", "string", "User ID (defaults to the current user)"),),
        keywords=("profile",),
    ),
    ToolDeclaration(
        name="updateProfile",
        description="Update the user's profile information",
        parameters=(
            _p("displayName", "string", "New display name"),
            _p("bio", "string", "New bio"),
            _p("fitnessGoals", "array", "Fitness goals", items_type="string"),
        ),
        keywords=("update my profile", "edit profile", "bio", "display name", "fitness goals"),
    ),
    ToolDeclaration(
        name="viewSettings",
        description="View app settings",
        parameters=(
            _p("category", "string", "Settings category", ("all", "preferences", "privacy", "notifications")),
        ),
        keywords=("settings", "preferences"),
    ),
    ToolDeclaration(
        name="updateSettings",
        description="Update app settings",
        parameters=(
            _p("theme", "string", "App theme", ("light", "dark", "system")),
            _p("units", "string", "Measurement units", ("metric", "imperial")),
            _p("notificationsEnabled", "boolean", "Enable or disable notifications"),
        ),
        keywords=("theme", "dark mode", "light mode", "units", "metric", "imperial", "turn off", "turn on"),
    ),
    ToolDeclaration(
        name="updatePrivacy",
        description="Update privacy settings",
        parameters=(
            _p("profileVisibility", "string", "Who can see the profile", ("public", "friends", "private")),
            _p("showWorkouts", "boolean", "Show workouts to others"),
        ),
        keywords=("privacy", "private", "visibility", "public"),
    ),
    ToolDeclaration(
        name="viewFeed",
        description="View the social feed",
        parameters=(
            _p("feedType", "string", "Type of feed", ("personalized", "following", "trending")),
            _p("limit", "integer", "Number of posts"),
        ),
        keywords=("feed", "timeline", "trending", "following"),
    ),
    ToolDeclaration(
        name="viewNotifications",
        description="View notifications",
        parameters=(_p("unreadOnly", "boolean", "Only show unread notifications"),),
        keywords=("notifications", "notification", "alerts"),
    ),
    ToolDeclaration(
        name="searchUsers",
        description="Search for other users",
        parameters=(
            _p("query", "string", "Search query"),
            _p("limit", "integer", "Max results"),
        ),
        required=frozenset({"query"}),
        keywords=("find user", "find users", "search users", "search for", "find friends", "people"),
    ),
    ToolDeclaration(
        name="getRecommendations",
        description="Get personalized recommendations",
        parameters=(
            _p("type", "string", "What to recommend", ("workouts", "users", "exercises")),
        ),
        keywords=("recommend", "recommendations", "recommendation"),
    ),
)

_TOOLS_BY_NAME: Dict[str, ToolDeclaration] = {t.name: t for t in TOOL_DECLARATIONS}


def get_tool(name: str) -> Optional[ToolDeclaration]:
    return _TOOLS_BY_NAME.get(name)


def app_control_keywords() -> FrozenSet[str]:
    """Union of every declared tool's keywords."""
    return frozenset(k for t in TOOL_DECLARATIONS for k in t.keywords)


def _coerce(param: ToolParameter, value: Any) -> Tuple[bool, Any]:
    """Coerce a model-supplied value to the declared type. Returns (ok, value)."""
    if param.type == "string":
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str):
            return False, value
        if param.enum:
            for option in param.enum:
                if option.lower() == value.strip().lower():
                    return True, option
            return False, value
        return True, value
    if param.type == "integer":
        if isinstance(value, bool):
            return False, value
        if isinstance(value, int):
            return True, value
        if isinstance(value, float) and value.is_integer():
            return True, int(value)
        if isinstance(value, str) and value.strip().isdigit():
            return True, int(value.strip())
        return False, value
    if param.type == "boolean":
        if isinstance(value, bool):
            return True, value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return True, value.strip().lower() == "true"
        return False, value
    if param.type == "array":
        if isinstance(value, str):
            value = [v.strip() for v in value.split(",") if v.strip()]
        if not isinstance(value, list):
            return False, value
        if (param.items_type or "string") == "string" and not all(isinstance(v, str) for v in value):
            return False, value
        return True, value
    return True, value


def validate_tool_args(tool: ToolDeclaration, args: Any) -> ArgsValidation:
    """
    Check model-proposed arguments against a tool's schema.

    Required fields must be present and non-empty, enum values must be in
    the declared set and primitive types must match (numeric strings and
    "true"/"false" are coerced). Undeclared arguments are dropped.
    """
    if args is None:
        args = {}
    if not isinstance(args, dict):
        return ArgsValidation(valid=False, errors=["Arguments must be an object"])

    cleaned: Dict[str, Any] = {}
    errors: List[str] = []

    for key, value in args.items():
        param = tool.parameter(key)
        if param is None:
            logger.debug("Dropping undeclared argument %s for %s", key, tool.name)
            continue
        if value is None:
            continue
        ok, coerced = _coerce(param, value)
        if not ok:
            if param.enum:
                errors.append(f"{key} must be one of: {', '.join(param.enum)}")
            else:
                errors.append(f"{key} must be of type {param.type}")
            continue
        cleaned[key] = coerced

    for name in sorted(tool.required):
        value = cleaned.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            if not any(name in e for e in errors):
                errors.append(f"Missing required parameter: {name}")

    return ArgsValidation(valid=not errors, args=cleaned, errors=errors)


__all__ = [
    "ArgsValidation",
    "PAGES",
    "TOOL_DECLARATIONS",
    "ToolDeclaration",
    "ToolParameter",
    "app_control_keywords",
    "get_tool",
    "validate_tool_args",
]
