"""go.mod manifest helpers.

All edits are line-based text operations on the manifest; nothing here
runs the go toolchain (see generator.py for ``go mod tidy``).
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

_MODULE_RE = re.compile(r"^module\s+(\S+)", re.MULTILINE)
_GO_VERSION_RE = re.compile(r"^go\s+(\S+)", re.MULTILINE)


def read_module(go_mod) -> str:
    """Return the module path declared in *go_mod*, or "" if unreadable."""
    path = Path(go_mod)
    if not path.is_file():
        return ""
    match = _MODULE_RE.search(path.read_text(encoding="utf-8"))
    return match.group(1) if match else ""


def read_go_version(go_mod) -> str:
    path = Path(go_mod)
    if not path.is_file():
        return ""
    match = _GO_VERSION_RE.search(path.read_text(encoding="utf-8"))
    return match.group(1) if match else ""


def set_module(text: str, module: str) -> str:
    """Replace the ``module`` line of a manifest."""
    return _MODULE_RE.sub(f"module {module}", text, count=1)


def copy_manifest(source, target, new_module: str, old_module: str = "") -> bool:
    """Copy *source* go.mod to *target* under *new_module*.

    References to *old_module* elsewhere in the file (replace directives)
    are renamed too. Returns True when the module name changed.
    """
    text = Path(source).read_text(encoding="utf-8")
    current = _MODULE_RE.search(text)
    current_module = current.group(1) if current else ""
    renamed = current_module != new_module
    if renamed:
        text = set_module(text, new_module)
    if old_module and old_module != new_module:
        text = rename_module_references(text, old_module, new_module)
    Path(target).parent.mkdir(parents=True, exist_ok=True)
    Path(target).write_text(text, encoding="utf-8")
    return renamed


def rename_module_references(text: str, old_module: str, new_module: str) -> str:
    """Rename *old_module* to *new_module* wherever it appears as a module path.

    The match must end at a path boundary so ``example.com/op`` does not
    rewrite ``example.com/operator``.
    """
    if not old_module or old_module == new_module:
        return text
    pattern = re.compile(re.escape(old_module) + r"(?=[/\s\"]|$)", re.MULTILINE)
    return pattern.sub(new_module, text)


def render_api_manifest(api_module: str, go_version: str, requires: Iterable[str]) -> str:
    """Minimal go.mod for the ``api/`` submodule."""
    lines = [f"module {api_module}", "", f"go {go_version}", "", "require ("]
    lines += [f"\t{req}" for req in requires]
    lines += [")", ""]
    return "\n".join(lines)


def ensure_replace_directive(go_mod, module: str, local_path: str) -> bool:
    """Append ``replace <module> => <local_path>`` unless already present.

    Returns True when the directive was added.
    """
    path = Path(go_mod)
    text = path.read_text(encoding="utf-8")
    if re.search(rf"^replace {re.escape(module)}\b", text, re.MULTILINE):
        return False
    if not text.endswith("\n"):
        text += "\n"
    text += f"\nreplace {module} => {local_path}\n"
    path.write_text(text, encoding="utf-8")
    return True


def prune_stale_requirements(
    go_mod,
    old_module: str,
    subpaths: Iterable[str] = ("controllers", "pkg"),
    replace_only: bool = False,
) -> List[str]:
    """Delete manifest lines that still reference ``old_module/<subpath>``.

    Those packages moved under ``internal/`` and the generator already
    declares the new-root dependency. With *replace_only*, only ``replace``
    directives are deleted. Returns the removed lines.
    """
    path = Path(go_mod)
    if not old_module or not path.is_file():
        return []
    stale = [f"{old_module}/{sub}" for sub in subpaths]
    kept, removed = [], []
    for line in path.read_text(encoding="utf-8").splitlines(keepends=True):
        hit = any(ref in line for ref in stale)
        if hit and replace_only and not line.lstrip().startswith("replace"):
            hit = False
        if hit:
            removed.append(line.rstrip("\n"))
        else:
            kept.append(line)
    if removed:
        path.write_text("".join(kept), encoding="utf-8")
        for line in removed:
            logger.debug("pruned go.mod line: %s", line)
    return removed


def drop_old_module_requires(go_mod, old_module: str, new_module: str) -> List[str]:
    """Remove single-line ``require <old_module>...`` statements.

    Only applies when the module was renamed; ``<old_module>/api`` style
    submodule requirements are kept.
    """
    path = Path(go_mod)
    if not old_module or old_module == new_module or not path.is_file():
        return []
    pattern = re.compile(rf"require.*{re.escape(old_module)}[^/]")
    kept, removed = [], []
    for line in path.read_text(encoding="utf-8").splitlines(keepends=True):
        (removed if pattern.search(line) else kept).append(line)
    if removed:
        path.write_text("".join(kept), encoding="utf-8")
    return [line.rstrip("\n") for line in removed]


def mentions(path, needle: str) -> bool:
    """True when the file at *path* exists and contains *needle*."""
    p = Path(path)
    return bool(needle) and p.is_file() and needle in p.read_text(encoding="utf-8")


def module_or_default(go_mod, default: Optional[str]) -> str:
    return read_module(go_mod) or (default or "")
