"""Fragment relocation between the old and the new project layout.

A PathMapping says where one class of hand-written files lives in the old
tree and where it goes in the freshly scaffolded tree. Relocation is
whole-file replacement: the scaffold is trusted for *where* a file lives,
never for *what* it contains. Whenever a scaffolded file is replaced, a
byte-identical copy is kept next to it under the snapshot suffix so the
two can be diffed by hand (or by ``snapshot_report``).
"""

import difflib
import fnmatch
import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple

from migrator.config import MigrationSettings
from migrator.path_rewriter import read_source, write_source
from migrator.run_log import log

logger = logging.getLogger(__name__)

FileFilter = Callable[[Path], bool]


@dataclass(frozen=True)
class PathMapping:
    """One relocation rule: ``old_prefix/**`` -> ``new_prefix/**``.

    ``flatten`` drops sub-directories and keeps only the basename.
    ``package_rename`` is an ``(old, new)`` pair applied to the file's
    package declaration after the copy.
    ``expect_scaffold`` marks mappings whose targets the generator should
    already have created; a missing target is then reported as a warning.
    """

    name: str
    old_prefix: str
    new_prefix: str
    file_filter: FileFilter
    flatten: bool = False
    package_rename: Optional[Tuple[str, str]] = None
    expect_scaffold: bool = True


@dataclass
class RelocationReport:
    mapping: str
    created: List[Path] = field(default_factory=list)
    overwritten: List[Path] = field(default_factory=list)
    snapshots: List[Path] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.created) + len(self.overwritten)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

def name_filter(include: str, *exclude: str, generated_marker: str = "zz_generated",
                snapshot_suffix: str = ".snapshot") -> FileFilter:
    """Build a basename glob filter that always rejects generated and snapshot files."""
    def accept(path: Path) -> bool:
        name = path.name
        if name.startswith(generated_marker) or name.endswith(snapshot_suffix):
            return False
        if not fnmatch.fnmatch(name, include):
            return False
        return not any(fnmatch.fnmatch(name, pattern) for pattern in exclude)
    return accept


def default_mappings(settings: MigrationSettings) -> List[PathMapping]:
    """Mappings in the order the relocation run applies them."""
    common = dict(
        generated_marker=settings.generated_marker,
        snapshot_suffix=settings.snapshot_suffix,
    )
    controller_dir = f"internal/{settings.new_controller_package}"
    return [
        PathMapping(
            name="api-types",
            old_prefix="api",
            new_prefix="api",
            file_filter=name_filter("*_types.go", "*_webhook.go", **common),
        ),
        PathMapping(
            name="api-support",
            old_prefix="api",
            new_prefix="api",
            file_filter=name_filter("*.go", "*_types.go", "*_webhook.go", **common),
            expect_scaffold=False,
        ),
        PathMapping(
            name="controllers",
            old_prefix=settings.old_controller_package,
            new_prefix=controller_dir,
            file_filter=name_filter("*_controller.go", **common),
            flatten=True,
            package_rename=(settings.old_controller_package, settings.new_controller_package),
        ),
        PathMapping(
            name="webhooks",
            old_prefix="api",
            new_prefix="api",
            file_filter=name_filter("*_webhook.go", **common),
        ),
        PathMapping(
            name="pkg",
            old_prefix="pkg",
            new_prefix="internal",
            file_filter=name_filter("*", **common),
            expect_scaffold=False,
        ),
    ]


def mapping_by_name(mappings: List[PathMapping], name: str) -> PathMapping:
    for mapping in mappings:
        if mapping.name == name:
            return mapping
    raise KeyError(name)


# ---------------------------------------------------------------------------
# Locating and copying
# ---------------------------------------------------------------------------

def locate(mapping: PathMapping, old_root: Path, new_root: Path) -> Iterator[Tuple[Path, Path]]:
    """Yield ``(source, target)`` pairs for every file the mapping selects."""
    base = Path(old_root) / mapping.old_prefix
    if not base.is_dir():
        return
    for source in sorted(p for p in base.rglob("*") if p.is_file()):
        if not mapping.file_filter(source):
            continue
        relative = Path(source.name) if mapping.flatten else source.relative_to(base)
        yield source, Path(new_root) / mapping.new_prefix / relative


def snapshot_path(target: Path, suffix: str) -> Path:
    return target.with_name(target.name + suffix)


def take_snapshot(target: Path, suffix: str) -> Path:
    """Copy *target* to ``<target><suffix>`` byte for byte."""
    snap = snapshot_path(Path(target), suffix)
    shutil.copyfile(target, snap)
    return snap


_PACKAGE_RE = re.compile(r"^package[ \t]+(\w+)[ \t]*(?=\r?$)", re.MULTILINE)


def rename_package(text: str, old: str, new: str) -> str:
    """Rewrite the topmost ``package <old>`` declaration to ``package <new>``."""
    match = _PACKAGE_RE.search(text)
    if not match or match.group(1) != old:
        return text
    return text[:match.start()] + f"package {new}" + text[match.end():]


def relocate_file(source: Path, target: Path, suffix: str,
                  package_rename: Optional[Tuple[str, str]] = None) -> Optional[Path]:
    """Copy one fragment, snapshotting any existing target.

    Returns the snapshot path, or None when the target did not exist.
    """
    snap = None
    if target.is_file():
        snap = take_snapshot(target, suffix)
    else:
        target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, target)
    if package_rename:
        text = read_source(target)
        renamed = rename_package(text, *package_rename)
        if renamed != text:
            write_source(target, renamed)
    return snap


def relocate(mapping: PathMapping, old_root, new_root, snapshot_suffix: str = ".snapshot") -> RelocationReport:
    """Apply one mapping and report what was created or replaced."""
    new_root = Path(new_root)
    report = RelocationReport(mapping=mapping.name)
    for source, target in locate(mapping, Path(old_root), new_root):
        rel = target.relative_to(new_root)
        existed = target.is_file()
        if not existed and mapping.expect_scaffold:
            log("warn", f"Scaffolded file not found: {rel}; copying original directly")
        snap = relocate_file(source, target, snapshot_suffix, mapping.package_rename)
        if existed:
            report.overwritten.append(target)
            report.snapshots.append(snap)
            log("move", f"Migrated {rel} (scaffold kept as {snap.name})")
        else:
            report.created.append(target)
            log("move", f"Copied {rel}")
    logger.debug("mapping %s: %d created, %d overwritten",
                 mapping.name, len(report.created), len(report.overwritten))
    return report


# ---------------------------------------------------------------------------
# Snapshot diff report
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SnapshotDiff:
    path: Path
    added: int
    removed: int


def find_snapshots(root, suffix: str) -> List[Path]:
    return sorted(p for p in Path(root).rglob(f"*{suffix}") if p.is_file())


def snapshot_report(root, suffix: str) -> List[SnapshotDiff]:
    """Line-level diff stats between each snapshot and its final file."""
    root = Path(root)
    report = []
    for snap in find_snapshots(root, suffix):
        final = snap.with_name(snap.name[: -len(suffix)])
        if not final.is_file():
            continue
        before = snap.read_text(encoding="utf-8", errors="replace").splitlines()
        after = final.read_text(encoding="utf-8", errors="replace").splitlines()
        added = removed = 0
        matcher = difflib.SequenceMatcher(None, before, after, autojunk=False)
        for tag, i1, i2, j1, j2 in matcher.get_opcodes():
            if tag in ("replace", "delete"):
                removed += i2 - i1
            if tag in ("replace", "insert"):
                added += j2 - j1
        report.append(SnapshotDiff(final.relative_to(root), added, removed))
    return report
