"""Entry-point splicing: carry hand-written wiring from main.go to cmd/main.go.

Four regions are lifted out of the old entry point and dropped into the
freshly scaffolded one:

- ImportRegion: extra lines of the ``import ( ... )`` block
- InitRegion:   the body of ``func init()``
- ScalarField:  the quoted ``LeaderElectionID`` value
- SetupRegion:  the ``config.GetConfig()`` / ``kubernetes.NewForConfig``
                block, placed after the manager construction

Regions are found by markers and brace/paren depth counting, not by
parsing Go. Each pass is independent: when a region cannot be extracted
the scaffolded code is left as it is.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)

IMPORT_OPEN_RE = re.compile(r"^import \(")
IMPORT_CLOSE_RE = re.compile(r"^\)")
INIT_SAME_LINE_RE = re.compile(r"^func init\(\)\s*\{")
INIT_NEXT_LINE_RE = re.compile(r"^func init\(\)\s*$")
BLOCK_CLOSE_RE = re.compile(r"^\t\}$")

SCALAR_LABEL = "LeaderElectionID"
SETUP_START = "cfg, err := config.GetConfig()"
SETUP_END = "kclient, err := kubernetes.NewForConfig(cfg)"
MANAGER_ANCHOR = "mgr, err := ctrl.NewManager"


def brace_delta(line: str) -> int:
    return line.count("{") - line.count("}")


def paren_delta(line: str) -> int:
    return line.count("(") - line.count(")")


def _is_comment_or_blank(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped.startswith("//")


class EntryPointFragment:
    """Line-oriented view of one entry-point file.

    Holds the text as a list of lines (no terminators) and remembers the
    line terminator and whether the original ended with one, so ``text``
    round-trips.
    """

    def __init__(self, text: str):
        self.newline = "\r\n" if "\r\n" in text else "\n"
        self.trailing_newline = text.endswith("\n")
        self.lines = text.splitlines()

    @property
    def text(self) -> str:
        out = self.newline.join(self.lines)
        return out + self.newline if self.trailing_newline and self.lines else out

    # -- ImportRegion -------------------------------------------------------

    def import_bounds(self) -> Optional[Tuple[int, int]]:
        """(open_index, close_index) of the first ``import (`` block."""
        start = None
        for i, line in enumerate(self.lines):
            if start is None:
                if IMPORT_OPEN_RE.match(line):
                    start = i
            elif IMPORT_CLOSE_RE.match(line):
                return start, i
        return None

    def import_lines(self) -> List[str]:
        """Raw import lines in order, without blanks and comments."""
        bounds = self.import_bounds()
        if bounds is None:
            return []
        start, end = bounds
        return [line for line in self.lines[start + 1:end] if not _is_comment_or_blank(line)]

    def add_imports(self, lines: List[str]) -> bool:
        bounds = self.import_bounds()
        if bounds is None or not lines:
            return False
        _, end = bounds
        self.lines[end:end] = list(lines)
        return True

    # -- InitRegion ---------------------------------------------------------

    def init_bounds(self) -> Optional[Tuple[int, int, List[str]]]:
        """Locate ``func init()`` and return (header, closing, body).

        The depth counter starts at the header's own brace balance (1 for
        ``func init() {``, 0 when the brace is on a later line) and moves
        with every ``{`` and ``}``. Body lines are those seen while the
        depth stays above zero; the line that brings it to zero closes the
        function and is not part of the body. None when there is no init
        function or it never closes.
        """
        for header, line in enumerate(self.lines):
            if INIT_SAME_LINE_RE.match(line):
                depth = brace_delta(line)
                if depth <= 0:
                    # one-liner: func init() { ... }
                    return header, header, []
                opened = True
                break
            if INIT_NEXT_LINE_RE.match(line):
                depth = 0
                opened = False
                break
        else:
            return None

        body = []
        for index in range(header + 1, len(self.lines)):
            line = self.lines[index]
            if not opened:
                if "{" not in line:
                    continue
                depth += brace_delta(line)
                opened = True
                if depth <= 0:
                    return header, index, []
                continue
            depth += brace_delta(line)
            if depth <= 0:
                return header, index, body
            body.append(line)
        return None

    def init_body(self) -> List[str]:
        bounds = self.init_bounds()
        return bounds[2] if bounds else []

    def replace_init_body(self, body: List[str]) -> bool:
        bounds = self.init_bounds()
        if bounds is None:
            return False
        header, closing, _ = bounds
        self.lines[header:closing + 1] = ["func init() {"] + list(body) + ["}"]
        return True

    # -- ScalarField --------------------------------------------------------

    @staticmethod
    def _scalar_re(label: str) -> Pattern:
        return re.compile(rf'({re.escape(label)}:)(\s*)"([^"]*)"')

    def scalar(self, label: str = SCALAR_LABEL) -> Optional[str]:
        pattern = self._scalar_re(label)
        for line in self.lines:
            match = pattern.search(line)
            if match:
                return match.group(3)
        return None

    def set_scalar(self, value: str, label: str = SCALAR_LABEL) -> bool:
        """Substitute the quoted value, keeping the label's existing spacing."""
        pattern = self._scalar_re(label)
        changed = False
        for i, line in enumerate(self.lines):
            new_line = pattern.sub(lambda m: f'{m.group(1)}{m.group(2)}"{value}"', line)
            if new_line != line:
                self.lines[i] = new_line
                changed = True
        return changed

    # -- SetupRegion --------------------------------------------------------

    def setup_region(self, start_marker: str = SETUP_START, end_marker: str = SETUP_END) -> List[str]:
        """Lines from *start_marker* through the error check after *end_marker*.

        After the end marker, the next line must open a block (the
        ``if err != nil {`` check); collection stops once that block's
        brace depth returns to zero. Missing markers yield [].
        """
        start = next((i for i, line in enumerate(self.lines) if start_marker in line), None)
        if start is None:
            return []
        block = []
        seen_end = opened = False
        depth = 0
        for line in self.lines[start:]:
            if not seen_end:
                block.append(line)
                seen_end = end_marker in line
                continue
            if not opened:
                if "{" not in line:
                    break
                opened = True
            block.append(line)
            depth += brace_delta(line)
            if depth <= 0:
                break
        return block if seen_end else []

    def manager_block_end(self, anchor: str = MANAGER_ANCHOR) -> Optional[int]:
        """Index of the line closing the manager construction and its error check.

        Brace and paren depth are tracked separately from the anchor line
        on. The block ends when brace depth goes negative (the enclosing
        block closed) or at a single-tab ``}`` with both depths back at zero.
        """
        start = next((i for i, line in enumerate(self.lines) if anchor in line), None)
        if start is None:
            return None
        braces = parens = 0
        for index in range(start, len(self.lines)):
            line = self.lines[index]
            braces += brace_delta(line)
            parens += paren_delta(line)
            if braces < 0:
                return index
            if BLOCK_CLOSE_RE.match(line) and parens == 0 and braces == 0:
                return index
        return None

    def insert_after_manager(self, block: List[str], anchor: str = MANAGER_ANCHOR) -> bool:
        end = self.manager_block_end(anchor)
        if end is None or not block:
            return False
        self.lines[end + 1:end + 1] = [""] + list(block)
        return True


# ---------------------------------------------------------------------------
# Splicing
# ---------------------------------------------------------------------------

@dataclass
class SpliceReport:
    imports_added: List[str] = field(default_factory=list)
    init_replaced: bool = False
    scalar_value: Optional[str] = None
    setup_lines: int = 0


def controller_import_filter(package: str, old_module: str = "") -> Pattern:
    """Match import lines that point at the old controller package."""
    if old_module:
        return re.compile(rf'{re.escape(old_module)}/{re.escape(package)}(?:/|")')
    return re.compile(rf'/{re.escape(package)}(?:/|")')


def collect_new_imports(old: EntryPointFragment, new: EntryPointFragment,
                        exclude: Optional[Pattern] = None) -> List[str]:
    """Old import lines not yet present in *new*, in original order."""
    existing = {line.strip() for line in new.import_lines()}
    collected = []
    for line in old.import_lines():
        normalized = line.strip()
        if normalized in existing:
            continue
        if exclude is not None and exclude.search(line):
            logger.debug("import left for path rewriting: %s", normalized)
            continue
        existing.add(normalized)
        collected.append(line)
    return collected


def splice_entry_point(old: EntryPointFragment, new: EntryPointFragment,
                       exclude: Optional[Pattern] = None) -> SpliceReport:
    """Run all four passes from *old* into *new* (mutated in place)."""
    report = SpliceReport()

    imports = collect_new_imports(old, new, exclude)
    if imports and new.add_imports(imports):
        report.imports_added = imports

    body = old.init_body()
    if body:
        report.init_replaced = new.replace_init_body(body)

    value = old.scalar()
    if value and new.set_scalar(value):
        report.scalar_value = value

    block = old.setup_region()
    if block and new.insert_after_manager(block):
        report.setup_lines = len(block)

    return report
