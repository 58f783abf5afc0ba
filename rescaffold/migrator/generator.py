"""External generator and go toolchain invocation.

The generator (operator-sdk) and ``go`` are black boxes: this module only
builds their command lines and runs them in an explicit working directory.
Any non-zero exit raises ToolError and ends the run.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from migrator.config import MigrationSettings
from migrator.descriptor import ProjectDescriptor, ResourceDescriptor
from migrator.errors import PreconditionError, ToolError
from migrator.run_log import log

logger = logging.getLogger(__name__)


def run_tool(cmd: List[str], cwd, timeout: int = 900) -> str:
    """Run *cmd* in *cwd* and return its stdout. Raises ToolError on failure."""
    logger.debug("running %s in %s", " ".join(cmd), cwd)
    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired:
        raise ToolError(cmd, 1, f"timed out after {timeout}s")
    except OSError as e:
        raise ToolError(cmd, 127, str(e))
    if result.returncode != 0:
        raise ToolError(cmd, result.returncode, result.stderr.strip())
    if result.stdout.strip():
        logger.debug(result.stdout.strip())
    return result.stdout


# ---------------------------------------------------------------------------
# Command builders (pure)
# ---------------------------------------------------------------------------

def init_command(settings: MigrationSettings, project: ProjectDescriptor) -> List[str]:
    return [
        settings.generator, "init",
        f"--domain={project.domain}",
        f"--project-name={project.project_name}",
        f"--plugins={settings.plugin}",
    ]


def api_command(settings: MigrationSettings, resource: ResourceDescriptor) -> List[str]:
    return [
        settings.generator, "create", "api",
        f"--group={resource.group}",
        f"--version={resource.version}",
        f"--kind={resource.kind}",
        "--resource", "--controller",
    ]


def webhook_command(settings: MigrationSettings, resource: ResourceDescriptor) -> Optional[List[str]]:
    """Webhook scaffold command, or None when the resource declares no webhooks."""
    if not resource.has_webhooks:
        return None
    cmd = [
        settings.generator, "create", "webhook",
        f"--group={resource.group}",
        f"--version={resource.version}",
        f"--kind={resource.kind}",
    ]
    if resource.webhook_defaulting:
        cmd.append("--defaulting")
    if resource.webhook_validation:
        cmd.append("--programmatic-validation")
    return cmd


# ---------------------------------------------------------------------------
# Generator session
# ---------------------------------------------------------------------------

class Generator:
    """Runs scaffold commands inside one converted project directory."""

    def __init__(self, settings: MigrationSettings, project_dir):
        self.settings = settings
        self.project_dir = Path(project_dir)

    def check_available(self) -> None:
        for binary in (self.settings.go_binary, self.settings.generator):
            if shutil.which(binary) is None:
                raise PreconditionError(f"Required tool not found on PATH: {binary}")

    def _run(self, cmd: List[str], cwd=None) -> str:
        log("gen", " ".join(cmd))
        return run_tool(cmd, cwd or self.project_dir, self.settings.command_timeout)

    def init_project(self, project: ProjectDescriptor) -> None:
        self.project_dir.mkdir(parents=True, exist_ok=True)
        self._run([self.settings.go_binary, "mod", "init", project.repo])
        self._run(init_command(self.settings, project))
        if project.multigroup:
            log("info", "Enabling multigroup layout...")
            self._run([self.settings.generator, "edit", "--multigroup=true"])

    def create_api(self, resource: ResourceDescriptor) -> None:
        self._run(api_command(self.settings, resource))

    def create_webhook(self, resource: ResourceDescriptor) -> bool:
        cmd = webhook_command(self.settings, resource)
        if cmd is None:
            return False
        self._run(cmd)
        return True

    def mod_tidy(self, directory=None) -> None:
        self._run([self.settings.go_binary, "mod", "tidy"], cwd=directory)
