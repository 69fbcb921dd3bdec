"""
Response helpers for Gymzy domain-service responses.

Services answer {"success": bool, "data": ..., "error": ...}. These helpers
turn that envelope into a (success, data, error) triple and a short message
the model can relay to the user.
"""

from typing import Any, Optional, Tuple


def parse_api_response(resp: Any) -> Tuple[bool, Optional[Any], Optional[str]]:
    """
    Parse a service response.

    Returns:
        Tuple of (success, data, error_message)
    """
    if not isinstance(resp, dict):
        return False, None, f"Invalid response format: {str(resp)[:200]}"

    if not resp.get("success", True):
        error = resp.get("error") or "Unknown error"
        if isinstance(error, dict):
            error = error.get("message") or "Unknown error"
        return False, None, str(error)

    data = resp.get("data")
    if data is None:
        data = {k: v for k, v in resp.items() if k != "success"}
    return True, data, None


def count_items(data: Any, *keys: str) -> int:
    """Length of the first list found at one of `keys` (or of `data` itself)."""
    if isinstance(data, list):
        return len(data)
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return len(value)
    return 0
