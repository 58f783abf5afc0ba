"""PROJECT descriptor parsing.

The descriptor is the YAML-like ``PROJECT`` file the generator writes at
the root of an operator project:

    domain: openstack.org
    layout:
    - go.kubebuilder.io/v3
    projectName: keystone-operator
    repo: github.com/openstack-k8s-operators/keystone-operator
    resources:
    - api:
        crdVersion: v1
      group: keystone
      kind: KeystoneAPI
      version: v1beta1
      webhooks:
        defaulting: true
        validation: true
        webhookVersion: v1
    version: "3"

Only a documented subset of keys is read; everything else is ignored.
The file is scanned line by line rather than loaded as YAML so that
records keep their file order and incomplete ones can be dropped.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from migrator.errors import ConfigError

DESCRIPTOR_NAME = "PROJECT"

REQUIRED_FIELDS = ("projectName", "repo", "domain")

_TOP_LEVEL_RE = re.compile(r"^([A-Za-z][\w-]*):(.*)$")
_RESOURCE_FIELD_RE = re.compile(r"^  (group|kind|version|domain):\s*(.*)$")
_WEBHOOK_FIELD_RE = re.compile(r"^    (defaulting|validation):\s*(.*)$")


@dataclass(frozen=True)
class ResourceDescriptor:
    group: str
    kind: str
    version: str
    domain: str = ""
    webhook_defaulting: bool = False
    webhook_validation: bool = False

    @property
    def has_webhooks(self) -> bool:
        return self.webhook_defaulting or self.webhook_validation


@dataclass(frozen=True)
class ProjectDescriptor:
    project_name: str
    repo: str
    domain: str
    multigroup: bool = False
    resources: Tuple[ResourceDescriptor, ...] = ()


def _clean(value: str) -> str:
    """Strip whitespace, trailing comments and matching quotes from a scalar."""
    value = value.strip()
    if " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    if value[:1] in ("'", '"') and value[-1:] == value[:1] and len(value) >= 2:
        return value[1:-1]
    return value


def _as_bool(value: str) -> bool:
    return _clean(value).lower() == "true"


def parse_globals(text: str) -> dict:
    """Return the top-level scalar keys of the descriptor as a dict.

    Keys whose value lives on following lines (``layout:``, ``resources:``)
    map to an empty string.
    """
    found = {}
    for line in text.splitlines():
        match = _TOP_LEVEL_RE.match(line)
        if match and match.group(1) not in found:
            found[match.group(1)] = _clean(match.group(2))
    return found


def extract_resources(text: str) -> List[ResourceDescriptor]:
    """Scan the ``resources:`` section and return complete records in order.

    A record is flushed when the next ``- `` marker is seen or at end of
    input. Records missing group, kind or version are dropped.
    """
    resources = []
    in_resources = False
    started = False
    current = {}

    def flush():
        if started and current.get("group") and current.get("kind") and current.get("version"):
            resources.append(ResourceDescriptor(
                group=current["group"],
                kind=current["kind"],
                version=current["version"],
                domain=current.get("domain", ""),
                webhook_defaulting=current.get("defaulting", False),
                webhook_validation=current.get("validation", False),
            ))

    for line in text.splitlines():
        if line.startswith("resources:"):
            in_resources = True
            continue
        if in_resources and line[:1].isalpha():
            in_resources = False
        if not in_resources:
            continue

        if line.startswith("- "):
            flush()
            started = True
            current = {}
            # "- group: x" puts the first key on the marker line itself
            line = "  " + line[2:]

        if not started:
            continue

        match = _RESOURCE_FIELD_RE.match(line)
        if match:
            current[match.group(1)] = _clean(match.group(2))
            continue
        match = _WEBHOOK_FIELD_RE.match(line)
        if match:
            current[match.group(1)] = _as_bool(match.group(2))

    flush()
    return resources


def parse_descriptor(text: str) -> ProjectDescriptor:
    """Parse descriptor text into a ProjectDescriptor.

    Raises ConfigError when projectName, repo or domain is missing.
    """
    values = parse_globals(text)
    missing = [key for key in REQUIRED_FIELDS if not values.get(key)]
    if missing:
        raise ConfigError(
            f"Failed to parse required fields from PROJECT file: {', '.join(missing)}"
        )
    return ProjectDescriptor(
        project_name=values["projectName"],
        repo=values["repo"],
        domain=values["domain"],
        multigroup=_as_bool(values.get("multigroup", "")),
        resources=tuple(extract_resources(text)),
    )


def load_descriptor(project_dir, name: Optional[str] = None) -> ProjectDescriptor:
    """Read and parse ``<project_dir>/PROJECT``."""
    path = Path(project_dir) / (name or DESCRIPTOR_NAME)
    if not path.is_file():
        raise ConfigError(f"PROJECT file not found at '{path}'")
    return parse_descriptor(path.read_text(encoding="utf-8"))
