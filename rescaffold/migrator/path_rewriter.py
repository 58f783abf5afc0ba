"""Import path rewriting after relocation.

Rewrites quoted module references from the old layout to the new one:

    "<old>/pkg/...          ->  "<new>/internal/...
    "<old>/controllers...   ->  "<new>/internal/controller...
    "<old>/api/...          ->  "<new>/api/...
    "<old>"                 ->  "<new>"

Substitution is per line and purely textual. Running it twice is a no-op:
no rewritten reference matches any rule's old form again.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Tuple

from migrator.config import MigrationSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewriteRule:
    old: str
    new: str

    def apply(self, line: str) -> str:
        return line.replace(self.old, self.new) if self.old in line else line


def build_rewrite_rules(
    old_module: str,
    new_module: str,
    renames: Iterable[Tuple[str, str]] = (("pkg/", "internal/"), ("controllers", "internal/controller"), ("api/", "api/")),
) -> List[RewriteRule]:
    """Ordered rules for one module move. Identity rules are dropped."""
    rules = [
        RewriteRule(f'"{old_module}/{old_sub}', f'"{new_module}/{new_sub}')
        for old_sub, new_sub in renames
    ]
    rules.append(RewriteRule(f'"{old_module}"', f'"{new_module}"'))
    return [rule for rule in rules if rule.old != rule.new]


def rules_for(settings: MigrationSettings, old_module: str, new_module: str) -> List[RewriteRule]:
    renames = (
        ("pkg/", "internal/"),
        (settings.old_controller_package, f"internal/{settings.new_controller_package}"),
        ("api/", "api/"),
    )
    return build_rewrite_rules(old_module, new_module, renames)


def read_source(path) -> str:
    """Read *path* as UTF-8 with its line endings left as they are."""
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def write_source(path, text: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


def rewrite_text(text: str, rules: Iterable[RewriteRule]) -> str:
    rules = list(rules)
    lines = text.splitlines(keepends=True)
    out = []
    for line in lines:
        for rule in rules:
            line = rule.apply(line)
        out.append(line)
    return "".join(out)


def candidate_files(root, suffixes: Iterable[str], generated_marker: str = "zz_generated",
                    snapshot_suffix: str = ".snapshot") -> List[Path]:
    suffixes = tuple(suffixes)
    files = []
    for path in sorted(Path(root).rglob("*")):
        if not path.is_file() or not path.name.endswith(suffixes):
            continue
        if path.name.startswith(generated_marker) or path.name.endswith(snapshot_suffix):
            continue
        files.append(path)
    return files


def rewrite_tree(root, rules: Iterable[RewriteRule], suffixes: Iterable[str] = (".go",),
                 generated_marker: str = "zz_generated",
                 snapshot_suffix: str = ".snapshot") -> List[Path]:
    """Rewrite every candidate file under *root*; return the modified ones."""
    rules = list(rules)
    modified = []
    if not rules:
        return modified
    for path in candidate_files(root, suffixes, generated_marker, snapshot_suffix):
        try:
            text = read_source(path)
        except UnicodeDecodeError:
            logger.warning("Skipping non-UTF-8 file: %s", path)
            continue
        new_text = rewrite_text(text, rules)
        if new_text != text:
            write_source(path, new_text)
            modified.append(path)
    return modified
