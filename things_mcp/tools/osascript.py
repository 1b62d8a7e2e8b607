"""Process execution for Things: JXA reads via osascript, URL writes via open.

Both are blocking subprocess calls with an upper-bound timeout. Failures
are raised as ThingsScriptError with the process output folded into the
message.
"""
import json
import logging
import subprocess

from .things_url import redact_url

logger = logging.getLogger("things-mcp.osascript")

# Timeouts (seconds)
JXA_TIMEOUT = 120  # Things can be slow to answer large collection queries
OPEN_URL_TIMEOUT = 10

THINGS_BUNDLE_ID = "com.culturedcode.ThingsMac"
THINGS_APP_CANDIDATES = (
    "Things3",
    "Things",
    THINGS_BUNDLE_ID,
    "/Applications/Things3.app",
)

# Scripts open with this line; it is swapped for the candidate resolver
APP_PLACEHOLDER = 'const things = Application("Things3");'

APP_RESOLUTION_MARKERS = (
    "application can't be found",
    "can't get application",
    "unable to connect to things via jxa",
    "(-2700)",
    "(-1728)",
)

PERMISSION_HINT = (
    " Check macOS Automation permissions for your MCP host and ensure "
    "Things 3 is installed at /Applications/Things3.app."
)


class ThingsScriptError(Exception):
    """Raised when osascript or open fails, times out, or returns bad output."""
    pass


def format_exec_error(stderr: str = "", stdout: str = "", message: str = "") -> str:
    """Join the non-empty parts of a failed process' output."""
    detail = "\n".join(
        part for part in (stderr, stdout, message)
        if isinstance(part, str) and part.strip()
    ).strip()
    return detail or "Unknown process execution error"


def with_things_app_fallback(script: str) -> str:
    """Replace the fixed Application("Things3") lookup with a resolver.

    The resolver tries each candidate name and keeps the first one whose
    bundle id is Things'.
    """
    candidates = ", ".join(json.dumps(c) for c in THINGS_APP_CANDIDATES)
    resolver = (
        f"const __thingsCandidates = [{candidates}];\n"
        "let things = null;\n"
        "for (const candidate of __thingsCandidates) {\n"
        "  try {\n"
        "    const app = Application(candidate);\n"
        f"    if (app.id() === {json.dumps(THINGS_BUNDLE_ID)}) {{ things = app; break; }}\n"
        "  } catch (error) {}\n"
        "}\n"
        'if (!things) { throw new Error("Unable to connect to Things via JXA."); }'
    )
    return script.replace(APP_PLACEHOLDER, resolver)


def _is_app_resolution_error(detail: str) -> bool:
    lower = detail.lower()
    return any(marker in lower for marker in APP_RESOLUTION_MARKERS)


def run_jxa(script: str, timeout: int = JXA_TIMEOUT):
    """Run a JXA script and parse its stdout as JSON.

    Raises:
        ThingsScriptError: On non-zero exit, timeout, missing osascript,
            or output that is not JSON.
    """
    try:
        result = subprocess.run(
            ["osascript", "-l", "JavaScript", "-e", with_things_app_fallback(script)],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.error(f"JXA script timed out after {timeout}s")
        raise ThingsScriptError(f"JXA execution failed: timed out after {timeout}s")
    except OSError as e:
        logger.error(f"Could not start osascript: {e}")
        raise ThingsScriptError(f"JXA execution failed: {e}") from e

    if result.returncode != 0:
        detail = format_exec_error(
            result.stderr, result.stdout, f"osascript exited with code {result.returncode}"
        )
        hint = PERMISSION_HINT if _is_app_resolution_error(detail) else ""
        logger.error(f"JXA script failed: {detail}")
        raise ThingsScriptError(f"JXA execution failed: {detail}{hint}")

    try:
        return json.loads(result.stdout.strip())
    except json.JSONDecodeError as e:
        raise ThingsScriptError(f"JXA execution failed: could not parse output as JSON ({e})") from e


def open_things_url(url: str, timeout: int = OPEN_URL_TIMEOUT) -> str:
    """Hand a things:/// URL to macOS `open`.

    Returns:
        Confirmation message with the auth token masked.

    Raises:
        ThingsScriptError: If open fails, times out, or is unavailable.
    """
    safe_url = redact_url(url)
    try:
        result = subprocess.run(
            ["open", url],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.error(f"open timed out after {timeout}s: {safe_url}")
        raise ThingsScriptError(f"Failed to open Things URL: timed out after {timeout}s")
    except OSError as e:
        logger.error(f"Could not start open: {e}")
        raise ThingsScriptError(f"Failed to open Things URL: {e}") from e

    if result.returncode != 0:
        detail = result.stderr.strip() or f"open exited with code {result.returncode}"
        logger.error(f"open failed for {safe_url}: {detail}")
        raise ThingsScriptError(f"Failed to open Things URL: {detail}")

    logger.info(f"Opened Things URL: {safe_url}")
    return f"Successfully opened Things URL: {safe_url}"
