"""Read access to Things via JXA.

``fetch_*`` functions return parsed records and raise on failure; the
tool-facing functions wrap them into {"success": ...} result dicts.
Every string argument is embedded in the script as a JSON literal.
"""
import json
import logging
from typing import Optional

from .osascript import ThingsScriptError, run_jxa

logger = logging.getLogger("things-mcp.queries")

VALID_LISTS = ["Inbox", "Today", "Anytime", "Upcoming", "Someday", "Logbook", "Trash"]

DEFAULT_RECENT_DAYS = 7

_OPTIONAL_ISO = "{obj}.{prop}() ? {obj}.{prop}().toISOString() : null"
_OPTIONAL_NAME = "(() => {{ try {{ return {obj}.{rel}().name(); }} catch (e) {{ return null; }} }})()"


def _item_fields(obj: str) -> str:
    """JS object-literal fields shared by to-dos and projects."""
    return ",\n".join([
        f"id: {obj}.id()",
        f"name: {obj}.name()",
        f"status: {obj}.status()",
        f'notes: {obj}.notes() || ""',
        f'tags: {obj}.tagNames() || ""',
        "dueDate: " + _OPTIONAL_ISO.format(obj=obj, prop="dueDate"),
        "activationDate: " + _OPTIONAL_ISO.format(obj=obj, prop="activationDate"),
        f"creationDate: {obj}.creationDate().toISOString()",
        "modificationDate: " + _OPTIONAL_ISO.format(obj=obj, prop="modificationDate"),
        "completionDate: " + _OPTIONAL_ISO.format(obj=obj, prop="completionDate"),
    ])


TODO_MAPPER = (
    "todo => ({\n"
    + _item_fields("todo") + ",\n"
    + "projectName: " + _OPTIONAL_NAME.format(obj="todo", rel="project") + ",\n"
    + "areaName: " + _OPTIONAL_NAME.format(obj="todo", rel="area") + "\n"
    + "})"
)

PROJECT_MAPPER = (
    "proj => ({\n"
    + _item_fields("proj") + ",\n"
    + "areaName: " + _OPTIONAL_NAME.format(obj="proj", rel="area") + ",\n"
    + "todoCount: proj.toDos().length\n"
    + "})"
)

AREA_MAPPER = 'area => ({ id: area.id(), name: area.name(), tags: area.tagNames() || "" })'

TAG_MAPPER = "tag => ({ name: tag.name() })"


def _collection_script(source: str, mapper: str, predicate: str = "", preamble: str = "") -> str:
    filter_clause = f".filter({predicate})" if predicate else ""
    return (
        'const things = Application("Things3");\n'
        f"{preamble}"
        f"const items = {source}{filter_clause};\n"
        f"JSON.stringify(items.map({mapper}));"
    )


def _single_script(source: str, mapper: str) -> str:
    return (
        'const things = Application("Things3");\n'
        f"const item = {source};\n"
        f"JSON.stringify(({mapper})(item));"
    )


def normalize_list_name(list_name: str) -> str:
    """Capitalize a built-in list name and validate it.

    Raises:
        ValueError: If the name is not a built-in list.
    """
    normalized = list_name[:1].upper() + list_name[1:].lower()
    if normalized not in VALID_LISTS:
        raise ValueError(
            f"Invalid list name: {list_name}. Valid lists are: {', '.join(VALID_LISTS)}"
        )
    return normalized


# ---------------------------------------------------------------------------
# Fetchers (raise ThingsScriptError / ValueError)
# ---------------------------------------------------------------------------


def fetch_todos_from_list(list_name: str) -> list[dict]:
    name = normalize_list_name(list_name)
    return run_jxa(_collection_script(f"things.lists.byName({json.dumps(name)}).toDos()", TODO_MAPPER))


def fetch_todos_from_project(project_name: str) -> list[dict]:
    return run_jxa(
        _collection_script(f"things.projects.byName({json.dumps(project_name)}).toDos()", TODO_MAPPER)
    )


def fetch_todos_from_area(area_name: str) -> list[dict]:
    return run_jxa(
        _collection_script(f"things.areas.byName({json.dumps(area_name)}).toDos()", TODO_MAPPER)
    )


def fetch_todos_by_tag(tag_name: str) -> list[dict]:
    predicate = f'todo => (todo.tagNames() || "").split(", ").some(t => t === {json.dumps(tag_name)})'
    return run_jxa(_collection_script("things.toDos()", TODO_MAPPER, predicate=predicate))


def fetch_todo_by_id(todo_id: str) -> dict:
    return run_jxa(_single_script(f"things.toDos.byId({json.dumps(todo_id)})", TODO_MAPPER))


def fetch_projects() -> list[dict]:
    return run_jxa(_collection_script("things.projects()", PROJECT_MAPPER))


def fetch_project_by_id(project_id: str) -> dict:
    return run_jxa(_single_script(f"things.projects.byId({json.dumps(project_id)})", PROJECT_MAPPER))


def fetch_areas() -> list[dict]:
    return run_jxa(_collection_script("things.areas()", AREA_MAPPER))


def fetch_tags() -> list[dict]:
    return run_jxa(_collection_script("things.tags()", TAG_MAPPER))


def fetch_recent_todos(days: int = DEFAULT_RECENT_DAYS) -> list[dict]:
    """To-dos modified within the last ``days`` days."""
    preamble = f"const cutoff = new Date();\ncutoff.setDate(cutoff.getDate() - {int(days)});\n"
    predicate = "todo => { const modDate = todo.modificationDate(); return modDate && modDate >= cutoff; }"
    return run_jxa(_collection_script("things.toDos()", TODO_MAPPER, predicate=predicate, preamble=preamble))


def search_todos_by_text(query: str) -> list[dict]:
    """Case-insensitive substring match on title and notes."""
    preamble = f"const queryLower = {json.dumps(query)}.toLowerCase();\n"
    predicate = (
        'todo => (todo.name() || "").toLowerCase().includes(queryLower)'
        ' || (todo.notes() || "").toLowerCase().includes(queryLower)'
    )
    return run_jxa(_collection_script("things.toDos()", TODO_MAPPER, predicate=predicate, preamble=preamble))


# ---------------------------------------------------------------------------
# Tool functions
# ---------------------------------------------------------------------------


def _error(action: str, e: Exception) -> dict:
    logger.warning(f"Error {action}: {e}")
    return {"success": False, "error": f"Error {action}: {e}"}


def get_todos(
    list_name: Optional[str] = None,
    project: Optional[str] = None,
    area: Optional[str] = None,
    tag: Optional[str] = None,
) -> dict:
    """Get to-dos from one source; defaults to the Today list."""
    try:
        if list_name:
            source = {"list": normalize_list_name(list_name)}
            todos = fetch_todos_from_list(list_name)
        elif project:
            source = {"project": project}
            todos = fetch_todos_from_project(project)
        elif area:
            source = {"area": area}
            todos = fetch_todos_from_area(area)
        elif tag:
            source = {"tag": tag}
            todos = fetch_todos_by_tag(tag)
        else:
            source = {"list": "Today"}
            todos = fetch_todos_from_list("Today")
        return {"success": True, "source": source, "todos": todos, "count": len(todos)}
    except (ThingsScriptError, ValueError) as e:
        return _error("getting to-dos", e)


def get_todo_by_id(todo_id: str) -> dict:
    try:
        return {"success": True, "todo": fetch_todo_by_id(todo_id)}
    except ThingsScriptError as e:
        return _error("getting to-do", e)


def get_projects() -> dict:
    try:
        projects = fetch_projects()
        return {"success": True, "projects": projects, "count": len(projects)}
    except ThingsScriptError as e:
        return _error("getting projects", e)


def get_project_by_id(project_id: str) -> dict:
    try:
        return {"success": True, "project": fetch_project_by_id(project_id)}
    except ThingsScriptError as e:
        return _error("getting project", e)


def get_areas() -> dict:
    try:
        areas = fetch_areas()
        return {"success": True, "areas": areas, "count": len(areas)}
    except ThingsScriptError as e:
        return _error("getting areas", e)


def get_tags() -> dict:
    try:
        tags = fetch_tags()
        return {"success": True, "tags": tags, "count": len(tags)}
    except ThingsScriptError as e:
        return _error("getting tags", e)


def search_todos(query: str) -> dict:
    if not query or not query.strip():
        return {"success": False, "error": "Search query cannot be empty"}
    try:
        todos = search_todos_by_text(query)
        return {"success": True, "query": query, "todos": todos, "count": len(todos)}
    except ThingsScriptError as e:
        return _error("searching to-dos", e)


def get_recent_todos(days=DEFAULT_RECENT_DAYS) -> dict:
    if isinstance(days, bool) or not isinstance(days, (int, float)) or days < 1 or not float(days).is_integer():
        return {
            "success": False,
            "validation_errors": {"days": f"Invalid days '{days}'. Must be a whole number >= 1"},
        }
    try:
        todos = fetch_recent_todos(int(days))
        return {"success": True, "days": int(days), "todos": todos, "count": len(todos)}
    except ThingsScriptError as e:
        return _error("getting recent to-dos", e)
