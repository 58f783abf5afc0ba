#!/usr/bin/env python3
"""
Reconcile a git working tree with a freshly regenerated directory.

Usage:
    operator-reconcile <target-repo-path> <reference-dir-path>
    python3 -m migrator.tree_sync <target-repo-path> <reference-dir-path>

Pipeline:
1. Structural moves (git mv, history preserved):
   tests/ -> test/, controllers/ -> internal/controller/,
   pkg/<name>/ -> internal/<name>/
2. Remove tracked files that the reference tree no longer has
3. Overlay the reference tree onto the working tree
4. Stage everything (git add -A)

One ordered rule table decides, for every path, whether it is protected
(never removed, never overwritten), excluded from the overlay, or normal.
Both the removal pass and the overlay pass read the same table, so no
path can be deleted by one pass and then skipped by the other.
"""

import argparse
import logging
import os
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from migrator import git_utils
from migrator.config import MigrationSettings, load_config
from migrator.errors import ConfigError, PreconditionError, ToolError
from migrator.path_rewriter import read_source, write_source
from migrator.relocator import rename_package
from migrator.run_log import headline, log, step_banner

logger = logging.getLogger(__name__)

PROTECT = "protect"
EXCLUDE_FROM_OVERLAY = "exclude_from_overlay"
NORMAL = "normal"


@dataclass(frozen=True)
class ReconciliationRule:
    name: str
    predicate: Callable[[str], bool]
    action: str

    def matches(self, path: str) -> bool:
        return self.predicate(path)


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

def _under(directory: str) -> Callable[[str], bool]:
    directory = directory.strip("/")
    return lambda path: path == directory or path.startswith(directory + "/")


def build_rules(settings: MigrationSettings) -> List[ReconciliationRule]:
    """Ordered rules; the first match decides the action."""
    protected_files = frozenset(settings.protected_files)
    lint_config = settings.lint_config
    rules = [
        ReconciliationRule(
            "snapshot file",
            lambda path: path.endswith(settings.snapshot_suffix),
            PROTECT,
        ),
        ReconciliationRule(
            "protected top-level file",
            lambda path: path in protected_files,
            PROTECT,
        ),
    ]
    for directory in settings.protected_dirs:
        rules.append(ReconciliationRule(
            f"{directory.strip('/')} directory file", _under(directory), PROTECT,
        ))
    rules += [
        ReconciliationRule(
            "hidden top-level file",
            lambda path: path.startswith(".") and "/" not in path,
            PROTECT,
        ),
        ReconciliationRule(
            "lint config",
            lambda path: path.rsplit("/", 1)[-1] == lint_config,
            EXCLUDE_FROM_OVERLAY,
        ),
    ]
    return rules


def classify(path: str, rules: List[ReconciliationRule]) -> Tuple[str, Optional[str]]:
    """Return (action, rule name) for a repo-relative POSIX path."""
    for rule in rules:
        if rule.matches(path):
            return rule.action, rule.name
    return NORMAL, None


def operator_name(repo_path, suffix: str = "-operator") -> str:
    """``/src/glance-operator`` -> ``glance``."""
    name = Path(repo_path).resolve().name
    if suffix and name.endswith(suffix):
        return name[: -len(suffix)]
    return name


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------

@dataclass
class SyncResult:
    moved: List[Tuple[str, str]] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    copied: List[str] = field(default_factory=list)
    protected: List[str] = field(default_factory=list)
    status: str = ""


def _prune_empty_dirs(root: Path) -> bool:
    """Remove *root* and its sub-directories when they hold no files.

    Returns True when *root* itself is gone.
    """
    if not root.is_dir():
        return False
    for current, dirs, files in os.walk(root, topdown=False):
        if not os.listdir(current):
            os.rmdir(current)
    return not root.exists()


class TreeReconciler:
    """Syncs one git working tree (``repo``) with a ``reference`` tree."""

    def __init__(self, repo, reference, settings: MigrationSettings,
                 rules: Optional[List[ReconciliationRule]] = None):
        self.repo = Path(repo).resolve()
        self.reference = Path(reference).resolve()
        self.settings = settings
        self.rules = rules if rules is not None else build_rules(settings)
        self.result = SyncResult()

    def check_preconditions(self) -> None:
        if not self.repo.is_dir():
            raise PreconditionError(f"Git repository directory does not exist: {self.repo}")
        if not self.reference.is_dir():
            raise PreconditionError(f"Source directory does not exist: {self.reference}")
        if not git_utils.is_git_repo(self.repo):
            raise PreconditionError(f"Not a git repository: {self.repo}")

    # -- structural moves ---------------------------------------------------

    def _tracked(self, prefix: str = "") -> List[str]:
        return git_utils.list_tracked(str(self.repo), prefix)

    def move_tests_dir(self) -> bool:
        """Rename tests/ to test/ unless test/ already exists."""
        old, new = self.repo / "tests", self.repo / "test"
        if not old.is_dir() or new.exists():
            return False
        if not self._tracked("tests"):
            log("skip", "tests/ has no tracked files; leaving it alone")
            return False
        log("git", "Migrating tests directory to test...")
        git_utils.run_git_strict("mv", "tests", "test", cwd=str(self.repo))
        self.result.moved.append(("tests", "test"))
        return True

    def move_tracked_dir(self, old_dir: str, new_dir: str,
                         package_rename: Optional[Tuple[str, str]] = None) -> List[Tuple[str, str]]:
        """git mv every tracked file under *old_dir* into *new_dir*.

        Relative sub-paths are kept. With *package_rename*, moved Go files
        get their package declaration rewritten.
        """
        if not (self.repo / old_dir).is_dir():
            return []
        log("git", f"Migrating {old_dir} directory to {new_dir}...")
        moves = []
        for path in self._tracked(old_dir):
            target = f"{new_dir}/{path[len(old_dir) + 1:]}"
            log("move", f"Moving: {path} -> {target}")
            git_utils.move_tracked(str(self.repo), path, target)
            moves.append((path, target))
            if package_rename and target.endswith(".go"):
                moved = self.repo / target
                text = read_source(moved)
                renamed = rename_package(text, *package_rename)
                if renamed != text:
                    write_source(moved, renamed)
        if _prune_empty_dirs(self.repo / old_dir):
            log("ok", f"Removed empty {old_dir} directory")
        self.result.moved.extend(moves)
        return moves

    def structural_moves(self) -> None:
        settings = self.settings
        self.move_tests_dir()
        self.move_tracked_dir(
            settings.old_controller_package,
            f"internal/{settings.new_controller_package}",
            package_rename=(settings.old_controller_package, settings.new_controller_package),
        )
        name = operator_name(self.repo, settings.operator_suffix)
        self.move_tracked_dir(f"pkg/{name}", f"internal/{name}")
        if _prune_empty_dirs(self.repo / "pkg"):
            log("ok", "Removed empty pkg directory")

    # -- removal and overlay ------------------------------------------------

    def removal_pass(self) -> List[str]:
        """git rm every normal tracked path the reference tree lacks."""
        removed = []
        for path in self._tracked():
            action, rule = classify(path, self.rules)
            if action != NORMAL:
                log("skip", f"Skipping {rule}: {path}")
                self.result.protected.append(path)
                continue
            counterpart = self.reference / path
            if not (counterpart.is_file() or counterpart.is_symlink()):
                log("git", f"Removing: {path}")
                git_utils.remove_tracked(str(self.repo), path)
                removed.append(path)
        self.result.removed.extend(removed)
        return removed

    def overlay(self) -> List[str]:
        """Copy every normal reference file into the working tree."""
        copied = []
        for current, dirs, files in os.walk(self.reference):
            dirs[:] = sorted(d for d in dirs if d != ".git")
            rel_dir = Path(current).relative_to(self.reference)
            for name in sorted(files):
                rel = (rel_dir / name).as_posix()
                action, _ = classify(rel, self.rules)
                if action != NORMAL:
                    continue
                self._copy(self.reference / rel, self.repo / rel)
                copied.append(rel)
        self.result.copied.extend(copied)
        return copied

    @staticmethod
    def _copy(source: Path, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        if source.is_symlink():
            if target.is_symlink() or target.exists():
                target.unlink()
            os.symlink(os.readlink(source), target)
        else:
            shutil.copy2(source, target)

    def run(self) -> SyncResult:
        self.check_preconditions()
        log("info", f"Syncing git repository: {self.repo}")
        log("info", f"From source directory: {self.reference}")
        log("info", f"Operator name: {operator_name(self.repo, self.settings.operator_suffix)}")

        step_banner(1, "Migrating legacy directories")
        self.structural_moves()

        step_banner(2, "Finding files to remove")
        self.removal_pass()

        step_banner(3, "Copying files from source directory")
        copied = self.overlay()
        log("ok", f"Copied {len(copied)} file(s)")

        step_banner(4, "Adding new/modified files to git")
        git_utils.stage_all(str(self.repo))
        self.result.status = git_utils.short_status(str(self.repo))
        return self.result


def reconcile(repo, reference, settings: Optional[MigrationSettings] = None) -> SyncResult:
    return TreeReconciler(repo, reference, settings or MigrationSettings()).run()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Sync a git repository with a regenerated operator directory",
    )
    parser.add_argument("repo", help="Path to the git repository to sync")
    parser.add_argument("reference", help="Path to the directory to sync from")
    parser.add_argument("--config", default=None, help="YAML settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else os.environ.get("RESCAFFOLD_LOG_LEVEL", "WARNING"),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_config(args.config)
        result = reconcile(args.repo, args.reference, settings)
    except (ConfigError, PreconditionError, ToolError) as e:
        log("error", str(e))
        return 1

    print()
    headline("Sync complete!")
    print()
    print("Summary of changes:")
    print(result.status or "(no changes)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
