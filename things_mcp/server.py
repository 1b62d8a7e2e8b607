#!/usr/bin/env python3
"""
Things MCP Server

Local stdio MCP server for Things 3 (macOS). Writes go through the Things
URL scheme (`open things:///...`), reads through JXA (`osascript`).

Tools - URL Scheme (write):
- add-todo, add-project
- update-todo, update-project (auth token)
- show, search
- add-json

Tools - JXA (read):
- get-todos, get-todo-by-id
- get-projects, get-project-by-id
- get-areas, get-tags
- search-todos, get-recent-todos

Tools - Workflows:
- reschedule-distant-todos: move far-deadline to-dos out of Today
"""
import asyncio
import json
import logging
import sys
from datetime import date
from typing import Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool, ToolAnnotations

from things_mcp.tools import commands, queries
from things_mcp.tools.commands import AUTH_TOKEN_REQUIRED
from things_mcp.tools.config import get_fallback_auth_token, get_reschedule_config, resolve_auth_token
from things_mcp.tools.osascript import ThingsScriptError, open_things_url
from things_mcp.tools.reschedule import (
    RescheduleConfig,
    RescheduleValidator,
    TodoRecord,
    build_reschedule_batch,
    evaluate,
)
from things_mcp.tools.things_url import build_json_url, redact_url

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("things-mcp")

server = Server("things-mcp")

RESCHEDULE_HINT = (
    "Things applies URL commands asynchronously. Run get-todos with list 'Today' "
    "to confirm the to-dos moved."
)

_WHEN_DESCRIPTION = (
    "When to schedule: today, tomorrow, evening, anytime, someday, YYYY-MM-DD, "
    "or YYYY-MM-DD@HH:MM for a reminder."
)
_AUTH_TOKEN_DESCRIPTION = (
    "Things URL scheme authorization token (Things Settings > General > Things URLs). "
    "Falls back to THINGS_AUTH_TOKEN or the config file."
)


def _string(description: str) -> dict:
    return {"type": "string", "description": description}


def _boolean(description: str) -> dict:
    return {"type": "boolean", "description": description}


TOOLS = [
    # --- URL scheme (write) ---
    Tool(
        name="add-todo",
        description=(
            "Create a new to-do in Things. Supports title, notes, when/deadline dates, "
            "tags, checklist items, and project/area assignment."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "title": _string("Title of the to-do."),
                "titles": _string("Multiple titles separated by newlines (takes priority over title)."),
                "notes": _string("Notes (max 10,000 chars)."),
                "when": _string(_WHEN_DESCRIPTION),
                "deadline": _string("Deadline: YYYY-MM-DD or natural language like 'next friday'."),
                "tags": _string("Comma-separated tag names (must already exist in Things)."),
                "checklistItems": _string("Checklist items separated by newlines (max 100)."),
                "listId": _string("ID of a project or area to add to (takes precedence over list)."),
                "list": _string("Title of a project or area to add to."),
                "headingId": _string("ID of a heading within a project."),
                "heading": _string("Title of a heading within a project."),
                "completed": _boolean("Mark as completed."),
                "canceled": _boolean("Mark as canceled (takes priority over completed)."),
                "showQuickEntry": _boolean("Show the quick entry dialog instead of adding directly."),
                "reveal": _boolean("Navigate to the new to-do."),
                "creationDate": _string("Creation date (ISO8601)."),
                "completionDate": _string("Completion date (ISO8601)."),
            },
        },
        annotations=ToolAnnotations(title="Add To-Do", openWorldHint=True),
    ),
    Tool(
        name="add-project",
        description="Create a new project in Things with optional area, dates, tags, and initial to-dos.",
        inputSchema={
            "type": "object",
            "properties": {
                "title": _string("Title of the project."),
                "notes": _string("Notes (max 10,000 chars)."),
                "when": _string(_WHEN_DESCRIPTION),
                "deadline": _string("Deadline: YYYY-MM-DD or natural language."),
                "tags": _string("Comma-separated tag names."),
                "areaId": _string("ID of an area to add to (takes precedence over area)."),
                "area": _string("Title of an area to add to."),
                "todos": _string("To-do titles separated by newlines to create inside the project."),
                "completed": _boolean("Mark as completed."),
                "canceled": _boolean("Mark as canceled."),
                "reveal": _boolean("Navigate into the new project."),
                "creationDate": _string("Creation date (ISO8601)."),
                "completionDate": _string("Completion date (ISO8601)."),
            },
        },
        annotations=ToolAnnotations(title="Add Project", openWorldHint=True),
    ),
    Tool(
        name="update-todo",
        description=(
            "Update an existing to-do. Requires the to-do ID and an auth token. "
            "Empty notes/when/deadline/tags clear the field."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "authToken": _string(_AUTH_TOKEN_DESCRIPTION),
                "id": _string("ID of the to-do to update."),
                "title": _string("New title."),
                "notes": _string("Replace notes (empty string clears)."),
                "prependNotes": _string("Text to prepend to existing notes."),
                "appendNotes": _string("Text to append to existing notes."),
                "when": _string(_WHEN_DESCRIPTION),
                "deadline": _string("Deadline date (empty string clears)."),
                "tags": _string("Comma-separated tags replacing all current tags."),
                "addTags": _string("Comma-separated tags to add."),
                "checklistItems": _string("Newline-separated checklist items replacing existing ones."),
                "prependChecklistItems": _string("Newline-separated checklist items to prepend."),
                "appendChecklistItems": _string("Newline-separated checklist items to append."),
                "listId": _string("ID of project or area to move to."),
                "list": _string("Title of project or area to move to."),
                "headingId": _string("ID of heading within project."),
                "heading": _string("Title of heading within project."),
                "completed": _boolean("Set completion status."),
                "canceled": _boolean("Set canceled status."),
                "reveal": _boolean("Navigate to the updated to-do."),
                "duplicate": _boolean("Duplicate the to-do before updating."),
                "creationDate": _string("Creation date (ISO8601)."),
                "completionDate": _string("Completion date (ISO8601)."),
            },
            "required": ["id"],
        },
        annotations=ToolAnnotations(title="Update To-Do", openWorldHint=True),
    ),
    Tool(
        name="update-project",
        description="Update an existing project. Requires the project ID and an auth token.",
        inputSchema={
            "type": "object",
            "properties": {
                "authToken": _string(_AUTH_TOKEN_DESCRIPTION),
                "id": _string("ID of the project to update."),
                "title": _string("New title."),
                "notes": _string("Replace notes (empty string clears)."),
                "prependNotes": _string("Text to prepend to existing notes."),
                "appendNotes": _string("Text to append to existing notes."),
                "when": _string(_WHEN_DESCRIPTION),
                "deadline": _string("Deadline date (empty string clears)."),
                "tags": _string("Replace all tags."),
                "addTags": _string("Add tags."),
                "areaId": _string("ID of area to move to."),
                "area": _string("Title of area to move to."),
                "completed": _boolean("Set completion status."),
                "canceled": _boolean("Set canceled status."),
                "reveal": _boolean("Navigate to the project."),
                "duplicate": _boolean("Duplicate before updating."),
                "creationDate": _string("Creation date (ISO8601)."),
                "completionDate": _string("Completion date (ISO8601)."),
            },
            "required": ["id"],
        },
        annotations=ToolAnnotations(title="Update Project", openWorldHint=True),
    ),
    Tool(
        name="show",
        description=(
            "Navigate to a list, project, area, tag, or to-do in Things. Built-in list IDs: "
            "inbox, today, anytime, upcoming, someday, logbook, tomorrow, deadlines, "
            "repeating, all-projects, logged-projects."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "id": _string("ID of an item or a built-in list ID."),
                "query": _string("Name of an area, project, tag, or built-in list (ignored if id is set)."),
                "filter": _string("Comma-separated tag names to filter the list by."),
            },
        },
        annotations=ToolAnnotations(title="Show in Things", readOnlyHint=True, openWorldHint=True),
    ),
    Tool(
        name="search",
        description="Open the Things search screen with an optional query.",
        inputSchema={
            "type": "object",
            "properties": {"query": _string("Search query text.")},
        },
        annotations=ToolAnnotations(title="Search in Things", readOnlyHint=True, openWorldHint=True),
    ),
    Tool(
        name="add-json",
        description=(
            "Create or update projects and to-dos with the Things JSON command. data is an array of "
            "objects with 'type' (to-do, project, heading, checklist-item) and 'attributes'. "
            "Updates need 'operation': 'update', an 'id', and an auth token."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "data": _string("JSON string containing an array of Things objects."),
                "authToken": _string(_AUTH_TOKEN_DESCRIPTION),
                "reveal": _boolean("Navigate to the first created item."),
            },
            "required": ["data"],
        },
        annotations=ToolAnnotations(title="Add via JSON", openWorldHint=True),
    ),
    # --- JXA (read) ---
    Tool(
        name="get-todos",
        description=(
            "Get to-dos by list, project, area, or tag (specify one; defaults to Today). "
            "Uses JXA (macOS only)."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "list": _string("Built-in list: Inbox, Today, Anytime, Upcoming, Someday, Logbook, Trash."),
                "project": _string("Project name."),
                "area": _string("Area name."),
                "tag": _string("Tag name."),
            },
        },
        annotations=ToolAnnotations(title="Get To-Dos", readOnlyHint=True),
    ),
    Tool(
        name="get-todo-by-id",
        description="Get a specific to-do by its ID.",
        inputSchema={
            "type": "object",
            "properties": {"id": _string("ID of the to-do.")},
            "required": ["id"],
        },
        annotations=ToolAnnotations(title="Get To-Do by ID", readOnlyHint=True),
    ),
    Tool(
        name="get-projects",
        description="Get all projects.",
        inputSchema={"type": "object", "properties": {}},
        annotations=ToolAnnotations(title="Get Projects", readOnlyHint=True),
    ),
    Tool(
        name="get-project-by-id",
        description="Get a specific project by its ID.",
        inputSchema={
            "type": "object",
            "properties": {"id": _string("ID of the project.")},
            "required": ["id"],
        },
        annotations=ToolAnnotations(title="Get Project by ID", readOnlyHint=True),
    ),
    Tool(
        name="get-areas",
        description="Get all areas.",
        inputSchema={"type": "object", "properties": {}},
        annotations=ToolAnnotations(title="Get Areas", readOnlyHint=True),
    ),
    Tool(
        name="get-tags",
        description="Get all tags.",
        inputSchema={"type": "object", "properties": {}},
        annotations=ToolAnnotations(title="Get Tags", readOnlyHint=True),
    ),
    Tool(
        name="search-todos",
        description="Search to-dos by title or notes content (case-insensitive).",
        inputSchema={
            "type": "object",
            "properties": {"query": _string("Text to match against titles and notes.")},
            "required": ["query"],
        },
        annotations=ToolAnnotations(title="Search To-Dos", readOnlyHint=True),
    ),
    Tool(
        name="get-recent-todos",
        description="Get to-dos modified within the last N days.",
        inputSchema={
            "type": "object",
            "properties": {
                "days": {
                    "type": "integer",
                    "description": "Days to look back (default 7).",
                    "default": 7,
                    "minimum": 1,
                },
            },
        },
        annotations=ToolAnnotations(title="Get Recent To-Dos", readOnlyHint=True),
    ),
    # --- Workflows ---
    Tool(
        name="reschedule-distant-todos",
        description=(
            "Move open to-dos out of Today when their deadline is still far away. Each to-do "
            "with a deadline at least daysThreshold days out is rescheduled to bufferDays before "
            "the deadline. To-dos explicitly scheduled for today are left alone. "
            "Use dryRun to preview."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "authToken": _string(_AUTH_TOKEN_DESCRIPTION),
                "dryRun": _boolean("Report what would move without changing anything (default false)."),
                "daysThreshold": {
                    "type": "integer",
                    "description": "Deadlines closer than this many days stay in Today (default 7).",
                    "minimum": 0,
                },
                "bufferDays": {
                    "type": "integer",
                    "description": "Schedule this many days before the deadline (default 3).",
                    "minimum": 0,
                },
            },
        },
        annotations=ToolAnnotations(
            title="Reschedule Distant To-Dos",
            readOnlyHint=False,
            destructiveHint=True,
            openWorldHint=True,
        ),
    ),
]

# Map tool names to handlers with argument translation
HANDLERS = {
    "add-todo": lambda args: commands.add_todo(args),
    "add-project": lambda args: commands.add_project(args),
    "update-todo": lambda args: commands.update_todo(args, fallback_token=get_fallback_auth_token()),
    "update-project": lambda args: commands.update_project(args, fallback_token=get_fallback_auth_token()),
    "show": lambda args: commands.show(
        item_id=args.get("id"),
        query=args.get("query"),
        filter_tags=args.get("filter"),
    ),
    "search": lambda args: commands.search(query=args.get("query")),
    "add-json": lambda args: commands.add_json(
        args.get("data", ""),
        auth_token=args.get("authToken"),
        reveal=args.get("reveal"),
        fallback_token=get_fallback_auth_token(),
    ),
    "get-todos": lambda args: queries.get_todos(
        list_name=args.get("list"),
        project=args.get("project"),
        area=args.get("area"),
        tag=args.get("tag"),
    ),
    "get-todo-by-id": lambda args: queries.get_todo_by_id(args["id"]),
    "get-projects": lambda args: queries.get_projects(),
    "get-project-by-id": lambda args: queries.get_project_by_id(args["id"]),
    "get-areas": lambda args: queries.get_areas(),
    "get-tags": lambda args: queries.get_tags(),
    "search-todos": lambda args: queries.search_todos(args.get("query", "")),
    "get-recent-todos": lambda args: queries.get_recent_todos(args.get("days", queries.DEFAULT_RECENT_DAYS)),
    "reschedule-distant-todos": lambda args: handle_reschedule(args, fallback_token=get_fallback_auth_token()),
}


def handle_reschedule(args: dict, fallback_token: Optional[str] = None, today: Optional[date] = None) -> dict:
    """Handle reschedule-distant-todos.

    Resolve token, fetch Today, evaluate, then (unless dry-run) dispatch a
    single JSON batch update.

    Args:
        args: Tool arguments (authToken, dryRun, daysThreshold, bufferDays)
        fallback_token: Token used when args carry none
        today: Reference day; captured once here when not given
    """
    auth_token = resolve_auth_token(args.get("authToken"), fallback_token)
    if not auth_token:
        return {"success": False, "error": AUTH_TOKEN_REQUIRED}

    defaults = get_reschedule_config()
    days_threshold = args.get("daysThreshold", defaults["days_threshold"])
    buffer_days = args.get("bufferDays", defaults["buffer_days"])
    errors = RescheduleValidator.validate_all(days_threshold, buffer_days)
    if errors:
        return {"success": False, "validation_errors": errors}

    config = RescheduleConfig(
        days_threshold=int(days_threshold),
        buffer_days=int(buffer_days),
        dry_run=bool(args.get("dryRun", False)),
    )
    today = today or date.today()

    try:
        snapshot = queries.fetch_todos_from_list("Today")
    except ThingsScriptError as e:
        return {"success": False, "error": f"Error fetching Today list: {e}"}

    try:
        todos = [TodoRecord.from_dict(item) for item in snapshot]
        result = evaluate(todos, config, today)
    except (KeyError, TypeError, ValueError) as e:
        logger.error(f"Could not evaluate Today list: {e}")
        return {"success": False, "error": f"Error evaluating Today list: {e}"}

    rescheduled = [decision.to_dict() for decision in result.decisions]
    response = {
        "success": True,
        "dryRun": config.dry_run,
        "totalToday": result.skip_report.total,
        "rescheduledCount": len(result.decisions),
        "skippedSummary": result.skip_report.summary(config.days_threshold),
        "rescheduled": rescheduled,
    }
    if config.dry_run or not result.decisions:
        return response

    url = build_json_url(build_reschedule_batch(result.decisions), auth_token)
    try:
        open_things_url(url)
    except ThingsScriptError as e:
        # Things may have applied part of the batch; nothing here can tell
        return {
            "success": False,
            "error": f"Error executing reschedule batch: {e}",
            "attemptedUrl": redact_url(url),
            "rescheduled": rescheduled,
        }

    logger.info(f"Rescheduled {len(rescheduled)} of {result.skip_report.total} Today to-dos")
    response["url"] = redact_url(url)
    response["hint"] = RESCHEDULE_HINT
    return response


@server.list_tools()
async def list_tools():
    return TOOLS


@server.call_tool()
async def call_tool(name: str, arguments: dict):
    handler = HANDLERS.get(name)
    if not handler:
        result = {"success": False, "error": f"Unknown tool: {name}"}
    else:
        try:
            result = handler(arguments or {})
        except Exception as e:
            logger.error(f"Error in {name}: {e}", exc_info=True)
            result = {"success": False, "error": f"Tool execution error: {str(e)}"}

    return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]


async def main():
    logger.info("Starting Things MCP Server")
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main_sync():
    """Synchronous entry point for uvx/pip scripts."""
    asyncio.run(main())


if __name__ == "__main__":
    main_sync()
