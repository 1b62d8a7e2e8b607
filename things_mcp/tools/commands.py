"""Write access to Things via the URL scheme.

Each function builds a things:/// URL from tool arguments, hands it to
`open`, and returns a result dict. Things applies URL commands
asynchronously, so success means the URL was delivered, not applied.
"""
import json
import logging
from typing import Optional

from .config import resolve_auth_token
from .osascript import ThingsScriptError, open_things_url
from .things_url import (
    build_add_project_url,
    build_add_todo_url,
    build_json_url,
    build_search_url,
    build_show_url,
    build_update_project_url,
    build_update_todo_url,
    redact_url,
)

logger = logging.getLogger("things-mcp.commands")

AUTH_TOKEN_REQUIRED = (
    "Auth token is required. Pass authToken or set THINGS_AUTH_TOKEN "
    "(find it in Things Settings > General > Things URLs)."
)


def dispatch_url(url: str, action: str) -> dict:
    """Open a Things URL and convert the outcome to a result dict."""
    try:
        message = open_things_url(url)
        return {"success": True, "message": message, "url": redact_url(url)}
    except ThingsScriptError as e:
        return {
            "success": False,
            "error": f"Error {action}: {e}",
            "attemptedUrl": redact_url(url),
        }


def add_todo(args: dict) -> dict:
    return dispatch_url(build_add_todo_url(args), "creating to-do")


def add_project(args: dict) -> dict:
    return dispatch_url(build_add_project_url(args), "creating project")


def update_todo(args: dict, fallback_token: Optional[str] = None) -> dict:
    auth_token = resolve_auth_token(args.get("authToken"), fallback_token)
    if not auth_token:
        return {"success": False, "error": AUTH_TOKEN_REQUIRED}
    if not args.get("id"):
        return {"success": False, "error": "To-do id is required"}
    return dispatch_url(build_update_todo_url(auth_token, args["id"], args), "updating to-do")


def update_project(args: dict, fallback_token: Optional[str] = None) -> dict:
    auth_token = resolve_auth_token(args.get("authToken"), fallback_token)
    if not auth_token:
        return {"success": False, "error": AUTH_TOKEN_REQUIRED}
    if not args.get("id"):
        return {"success": False, "error": "Project id is required"}
    return dispatch_url(build_update_project_url(auth_token, args["id"], args), "updating project")


def show(item_id: Optional[str] = None, query: Optional[str] = None, filter_tags: Optional[str] = None) -> dict:
    return dispatch_url(build_show_url(item_id, query, filter_tags), "showing in Things")


def search(query: Optional[str] = None) -> dict:
    return dispatch_url(build_search_url(query), "searching in Things")


def _has_update_operation(entries: list) -> bool:
    """True if any entry, including nested project items, is an update."""
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        if entry.get("operation") == "update":
            return True
        items = entry.get("attributes", {}).get("items") if isinstance(entry.get("attributes"), dict) else None
        if isinstance(items, list) and _has_update_operation(items):
            return True
    return False


def add_json(
    data: str,
    auth_token: Optional[str] = None,
    reveal: Optional[bool] = None,
    fallback_token: Optional[str] = None,
) -> dict:
    """Run the Things JSON command.

    Args:
        data: JSON string holding an array of Things objects
        auth_token: Explicit token; required (with fallback) for updates
        reveal: Navigate to the first created item
        fallback_token: Process-wide token used when auth_token is absent
    """
    try:
        entries = json.loads(data)
    except (TypeError, json.JSONDecodeError):
        return {"success": False, "error": "Invalid JSON string. The data must be a valid JSON array."}
    if not isinstance(entries, list):
        return {"success": False, "error": "data must be a JSON array of Things objects"}

    resolved = resolve_auth_token(auth_token, fallback_token)
    if _has_update_operation(entries) and not resolved:
        return {"success": False, "error": AUTH_TOKEN_REQUIRED}

    return dispatch_url(build_json_url(entries, resolved, reveal), "executing JSON command")
