"""Colored progress output for migration runs.

Provides ANSI-colored log output with category-based color coding,
numbered step banners, and styled text helpers.

Categories:
  step     (bold+cyan)      step headers
  ok       (green)          completed work
  info     (white)          general progress
  warn     (yellow)         recoverable problems
  error    (bold+red)       fatal errors
  gen      (blue)           generator invocations
  git      (magenta)        git operations
  move     (cyan)           file relocations
  skip     (dim+white)      protected or skipped paths

Usage:
    from migrator.run_log import log, step_banner
    step_banner(4, "Migrating API Definitions")
    log("move", "api/v1beta1/keystone_types.go")
"""

import os
import sys


# ---------------------------------------------------------------------------
# Color state
# ---------------------------------------------------------------------------

_COLORS = {}

BANNER_RULE = "=" * 56


def _init_colors():
    """Initialize ANSI color codes based on TTY detection."""
    global _COLORS
    if os.environ.get("RESCAFFOLD_FORCE_COLOR", "") or sys.stdout.isatty():
        _COLORS = {
            "reset": "\033[0m",
            "bold": "\033[1m",
            "dim": "\033[2m",
            "red": "\033[31m",
            "green": "\033[32m",
            "yellow": "\033[33m",
            "blue": "\033[34m",
            "magenta": "\033[35m",
            "cyan": "\033[36m",
            "white": "\033[37m",
        }
    else:
        _COLORS = {k: "" for k in [
            "reset", "bold", "dim", "red", "green", "yellow",
            "blue", "magenta", "cyan", "white",
        ]}


# ---------------------------------------------------------------------------
# Category → color mapping
# ---------------------------------------------------------------------------

_CATEGORY_COLORS = {
    "step": "bold+cyan",
    "ok": "green",
    "info": "white",
    "warn": "yellow",
    "error": "bold+red",
    "gen": "blue",
    "git": "magenta",
    "move": "cyan",
    "skip": "dim+white",
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def log(category: str, message: str):
    """Print a colored log message."""
    if not _COLORS:
        _init_colors()
    color_spec = _CATEGORY_COLORS.get(category, "white")
    parts = color_spec.split("+")
    prefix = "".join(_COLORS.get(p, "") for p in parts)
    reset = _COLORS.get("reset", "")
    print(f"{prefix}[{category}]{reset} {message}", flush=True)


def step_banner(number, title: str):
    """Print a numbered step header, e.g. ``Step 4: Migrating API Definitions``."""
    print(flush=True)
    print(bold_cyan(f"Step {number}: {title}"), flush=True)
    print(BANNER_RULE, flush=True)


def headline(text: str):
    """Print a framed headline used at the start and end of a run."""
    rule = "=" * 41
    print(rule, flush=True)
    print(bold_green(text), flush=True)
    print(rule, flush=True)


def _styled(text: str, *styles: str) -> str:
    """Apply ANSI styles to text. E.g. _styled("hi", "bold", "cyan")."""
    if not _COLORS:
        _init_colors()
    prefix = "".join(_COLORS.get(s, "") for s in styles)
    return f"{prefix}{text}{_COLORS.get('reset', '')}"


def bold_cyan(text: str) -> str:
    return _styled(text, "bold", "cyan")


def bold_green(text: str) -> str:
    return _styled(text, "bold", "green")
