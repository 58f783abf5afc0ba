"""
Shared git command helpers for the reconcile run.

Two invocation styles:

- run_git(): Returns (returncode, stdout, stderr) tuple. Never raises.
- run_git_strict(): Returns stdout string. Raises ToolError on failure.

Every helper takes an explicit ``cwd``; nothing here changes the process
working directory.
"""

import subprocess
from pathlib import Path
from typing import List, Tuple

from migrator.errors import ToolError


def run_git(*args: str, cwd: str = None, timeout: int = 30) -> Tuple[int, str, str]:
    """Run a git command and return (returncode, stdout, stderr).

    Args:
        *args: Git subcommand and arguments (e.g. "status", "--short").
        cwd: Working directory for the git command.
        timeout: Command timeout in seconds (default: 30).

    Returns:
        (returncode, stdout, stderr) tuple. Never raises on git failures.
    """
    try:
        result = subprocess.run(
            ["git"] + list(args),
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode, result.stdout.strip(), result.stderr.strip()
    except subprocess.TimeoutExpired:
        return 1, "", "Git command timed out"
    except OSError as e:
        return 1, "", str(e)


def run_git_strict(
    *args: str,
    cwd: str = None,
    timeout: int = 60,
) -> str:
    """Run a git command, raise ToolError on failure.

    Returns:
        Stripped stdout on success.
    """
    result = subprocess.run(
        ["git"] + list(args),
        capture_output=True,
        text=True,
        timeout=timeout,
        cwd=cwd,
    )
    if result.returncode != 0:
        raise ToolError(["git"] + list(args), result.returncode, result.stderr)
    return result.stdout.strip()


# ---------------------------------------------------------------------------
# Working-tree operations used by the reconciler
# ---------------------------------------------------------------------------

def is_git_repo(path) -> bool:
    """True when *path* holds a ``.git`` directory (or worktree file)."""
    return (Path(path) / ".git").exists()


def list_tracked(repo: str, prefix: str = "") -> List[str]:
    """Return tracked paths (POSIX, repo-relative) in lexical order.

    With *prefix*, only paths under that directory are listed.
    """
    args = ["ls-files", "-z"]
    if prefix:
        args += ["--", prefix.rstrip("/") + "/"]
    out = run_git_strict(*args, cwd=repo)
    return sorted(p for p in out.split("\0") if p)


def move_tracked(repo: str, source: str, target: str) -> None:
    """``git mv`` preserving history; parent directories are created first."""
    (Path(repo) / target).parent.mkdir(parents=True, exist_ok=True)
    run_git_strict("mv", source, target, cwd=repo)


def remove_tracked(repo: str, path: str) -> None:
    run_git_strict("rm", "-q", "--", path, cwd=repo)


def stage_all(repo: str) -> None:
    run_git_strict("add", "-A", cwd=repo)


def short_status(repo: str) -> str:
    """``git status --short``; empty string when git fails."""
    rc, out, _ = run_git("status", "--short", cwd=repo)
    return out if rc == 0 else ""
