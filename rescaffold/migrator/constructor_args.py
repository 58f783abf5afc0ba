"""Reconciler registration rewriting for cmd/main.go.

Old entry points register reconcilers like:

    if err = (&controllers.KeystoneAPIReconciler{
        Client:  mgr.GetClient(),
        Scheme:  mgr.GetScheme(),
        Kclient: kclient,
        Log:     ctrl.Log.WithName("controllers").WithName("KeystoneAPI"),
    }).SetupWithManager(context.Background(), mgr); err != nil {

The scaffold produces the same shape with ``controller.`` and only
Client/Scheme. Each scaffolded registration whose type also appears in the
old file is rebuilt with the three standard fields and the old file's
SetupWithManager arguments.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

SETUP_CALL = "SetupWithManager("
CLOSE_MARKER = "}).SetupWithManager"
DEFAULT_SETUP_ARGS = "mgr"

STANDARD_FIELDS = (
    "Client:  mgr.GetClient(),",
    "Scheme:  mgr.GetScheme(),",
    "Kclient: kclient,",
)


def registration_re(package: str):
    return re.compile(
        rf"^(\s*)if err (:?=) \(&{re.escape(package)}\.([A-Za-z0-9_]*Reconciler)\{{"
    )


def call_arguments(line: str, call: str = SETUP_CALL) -> Optional[str]:
    """Return the verbatim argument text of *call* on *line*.

    Nested parentheses are balanced, so ``context.Background(), mgr`` comes
    back whole. None when the call is missing or never closes.
    """
    pos = line.find(call)
    if pos < 0:
        return None
    depth = 1
    start = pos + len(call)
    for index in range(start, len(line)):
        char = line[index]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return line[start:index]
    return None


def capture_setup_args(old_text: str, package: str = "controllers") -> Dict[str, str]:
    """Map reconciler type name -> SetupWithManager arguments in the old file."""
    pattern = registration_re(package)
    captured = {}
    current = None
    for line in old_text.splitlines():
        match = pattern.match(line)
        if match:
            current = match.group(3)
            continue
        if current and CLOSE_MARKER in line:
            args = call_arguments(line)
            captured[current] = (args or "").strip()
            current = None
    return captured


@dataclass
class RegistrationReport:
    rewritten: List[str] = field(default_factory=list)
    defaulted: List[str] = field(default_factory=list)
    untouched: List[str] = field(default_factory=list)


def _closing_index(lines: List[str], start: int) -> Optional[int]:
    for index in range(start + 1, len(lines)):
        if CLOSE_MARKER in lines[index]:
            return index
    return None


def rewrite_registrations(new_text: str, setup_args: Dict[str, str],
                          package: str = "controller") -> Tuple[str, RegistrationReport]:
    """Rebuild known registrations in *new_text*.

    Types missing from *setup_args* are left as the generator wrote them
    and listed in ``report.untouched``. A known type whose captured
    argument list was empty gets ``mgr`` and is listed in ``report.defaulted``.
    """
    pattern = registration_re(package)
    newline = "\r\n" if "\r\n" in new_text else "\n"
    lines = new_text.splitlines()
    out = []
    report = RegistrationReport()
    index = 0
    while index < len(lines):
        line = lines[index]
        match = pattern.match(line)
        closing = _closing_index(lines, index) if match else None
        if not match or closing is None:
            out.append(line)
            index += 1
            continue

        indent, op, name = match.group(1), match.group(2), match.group(3)
        if name not in setup_args:
            report.untouched.append(name)
            logger.warning("No registration for %s in the old entry point; keeping scaffold", name)
            out.extend(lines[index:closing + 1])
            index = closing + 1
            continue

        args = setup_args[name]
        if not args:
            args = DEFAULT_SETUP_ARGS
            report.defaulted.append(name)
        out.append(f"{indent}if err {op} (&{package}.{name}{{")
        out.extend(f"{indent}\t{field_line}" for field_line in STANDARD_FIELDS)
        out.append(f"{indent}}}).SetupWithManager({args}); err != nil {{")
        report.rewritten.append(name)
        index = closing + 1

    text = newline.join(out)
    if new_text.endswith("\n") and out:
        text += newline
    return text, report
