"""Things URL scheme builder.

Constructs ``things:///`` URLs per
https://culturedcode.com/things/support/articles/2803573/

Builders take tool arguments (camelCase keys) and map them onto the
URL scheme's kebab-case parameter names.
"""
import json
import re
from typing import Optional
from urllib.parse import quote

THINGS_SCHEME = "things:///"

# encodeURIComponent leaves these unescaped on top of quote()'s defaults
_URI_COMPONENT_SAFE = "!*'()"

_AUTH_TOKEN_PATTERN = re.compile(r'(auth-token=)[^&]*')

# Tool argument -> URL parameter, in URL order
ADD_TODO_FIELDS = {
    "notes": "notes",
    "when": "when",
    "deadline": "deadline",
    "tags": "tags",
    "checklistItems": "checklist-items",
    "listId": "list-id",
    "list": "list",
    "headingId": "heading-id",
    "heading": "heading",
    "completed": "completed",
    "canceled": "canceled",
    "showQuickEntry": "show-quick-entry",
    "reveal": "reveal",
    "creationDate": "creation-date",
    "completionDate": "completion-date",
}

ADD_PROJECT_FIELDS = {
    "title": "title",
    "notes": "notes",
    "when": "when",
    "deadline": "deadline",
    "tags": "tags",
    "areaId": "area-id",
    "area": "area",
    "todos": "to-dos",
    "completed": "completed",
    "canceled": "canceled",
    "reveal": "reveal",
    "creationDate": "creation-date",
    "completionDate": "completion-date",
}

UPDATE_TODO_FIELDS = {
    "title": "title",
    "notes": "notes",
    "prependNotes": "prepend-notes",
    "appendNotes": "append-notes",
    "when": "when",
    "deadline": "deadline",
    "tags": "tags",
    "addTags": "add-tags",
    "checklistItems": "checklist-items",
    "prependChecklistItems": "prepend-checklist-items",
    "appendChecklistItems": "append-checklist-items",
    "listId": "list-id",
    "list": "list",
    "headingId": "heading-id",
    "heading": "heading",
    "completed": "completed",
    "canceled": "canceled",
    "reveal": "reveal",
    "duplicate": "duplicate",
    "creationDate": "creation-date",
    "completionDate": "completion-date",
}

UPDATE_PROJECT_FIELDS = {
    "title": "title",
    "notes": "notes",
    "prependNotes": "prepend-notes",
    "appendNotes": "append-notes",
    "when": "when",
    "deadline": "deadline",
    "tags": "tags",
    "addTags": "add-tags",
    "areaId": "area-id",
    "area": "area",
    "completed": "completed",
    "canceled": "canceled",
    "reveal": "reveal",
    "duplicate": "duplicate",
    "creationDate": "creation-date",
    "completionDate": "completion-date",
}

# An empty string on these clears the field in Things
CLEARABLE_UPDATE_PARAMS = frozenset({"notes", "when", "deadline", "tags"})


def encode_param(value: str) -> str:
    """Percent-encode like JavaScript's encodeURIComponent."""
    return quote(value, safe=_URI_COMPONENT_SAFE)


def build_url(command: str, params: dict, keep_empty: frozenset = frozenset()) -> str:
    """Build a Things URL from a command and parameters.

    None values are dropped. Empty strings are dropped unless the
    parameter name is in keep_empty. Booleans render as true/false.
    """
    parts = []
    for key, value in params.items():
        if value is None:
            continue
        if value == "" and key not in keep_empty:
            continue
        if isinstance(value, bool):
            parts.append(f"{key}={'true' if value else 'false'}")
        else:
            parts.append(f"{key}={encode_param(str(value))}")

    if not parts:
        return f"{THINGS_SCHEME}{command}"
    return f"{THINGS_SCHEME}{command}?{'&'.join(parts)}"


def _map_fields(args: dict, field_map: dict) -> dict:
    return {dst: args.get(src) for src, dst in field_map.items()}


def build_add_todo_url(args: dict) -> str:
    """Build an ``add`` URL. ``titles`` (newline-separated) wins over ``title``."""
    params = {}
    if args.get("titles"):
        params["titles"] = args["titles"]
    elif args.get("title"):
        params["title"] = args["title"]
    params.update(_map_fields(args, ADD_TODO_FIELDS))
    return build_url("add", params)


def build_add_project_url(args: dict) -> str:
    return build_url("add-project", _map_fields(args, ADD_PROJECT_FIELDS))


def build_update_todo_url(auth_token: str, todo_id: str, args: dict) -> str:
    params = {"auth-token": auth_token, "id": todo_id}
    params.update(_map_fields(args, UPDATE_TODO_FIELDS))
    return build_url("update", params, keep_empty=CLEARABLE_UPDATE_PARAMS)


def build_update_project_url(auth_token: str, project_id: str, args: dict) -> str:
    params = {"auth-token": auth_token, "id": project_id}
    params.update(_map_fields(args, UPDATE_PROJECT_FIELDS))
    return build_url("update-project", params, keep_empty=CLEARABLE_UPDATE_PARAMS)


def build_show_url(
    item_id: Optional[str] = None,
    query: Optional[str] = None,
    filter_tags: Optional[str] = None,
) -> str:
    """Build a ``show`` URL. Things ignores query when id is set."""
    return build_url("show", {"id": item_id, "query": query, "filter": filter_tags})


def build_search_url(query: Optional[str] = None) -> str:
    return build_url("search", {"query": query})


def build_version_url() -> str:
    return build_url("version", {})


def build_json_url(data: list, auth_token: Optional[str] = None, reveal: Optional[bool] = None) -> str:
    """Build a ``json`` URL carrying a list of to-do/project objects."""
    params = {
        "data": json.dumps(data, separators=(",", ":"), ensure_ascii=False),
        "auth-token": auth_token,
        "reveal": reveal,
    }
    return build_url("json", params)


def redact_url(url: str) -> str:
    """Mask the auth-token value so URLs can be logged and echoed."""
    return _AUTH_TOKEN_PATTERN.sub(r'\1***', url)
