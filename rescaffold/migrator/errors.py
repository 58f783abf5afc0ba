"""Error taxonomy for migration and reconcile runs.

- ConfigError: missing or invalid descriptor/config input. Raised before
  any file is touched.
- PreconditionError: a required directory or repository is missing.
- ToolError: an external command (generator, go, git) exited non-zero.
- MigrationCancelled: the user declined a destructive prompt.

Recoverable misses (scaffold file absent, marker not found) are not
errors; they are logged and the run continues.
"""


class ConfigError(ValueError):
    pass


class PreconditionError(RuntimeError):
    pass


class ToolError(RuntimeError):
    def __init__(self, cmd, returncode: int, stderr: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        cmd_str = " ".join(self.cmd)
        detail = f": {stderr[:200]}" if stderr else ""
        super().__init__(f"{cmd_str} exited with {returncode}{detail}")


class MigrationCancelled(Exception):
    pass
