#!/usr/bin/env python3
"""
Re-scaffold an operator project from the go/v3 layout to go/v4.

Usage:
    operator-relocate <operator-directory> [--yes]
    python3 -m migrator.rescaffold keystone-operator

Creates ``<operator-directory>-v4`` next to the source project:

 1. Initialize the new project with the generator
 2. Scaffold APIs and controllers from the PROJECT file
 3. Scaffold webhooks
 4. Migrate API definitions from api/
 5. Set up api/ as a Go submodule
 6. Migrate controllers/ to internal/controller/
 7. Migrate webhooks
 8. Migrate pkg/ to internal/
 9. Update import paths
10. Copy go.mod from the original project
11. Migrate main.go into cmd/main.go
12. Sync Go dependencies
13. Copy additional configuration files
14. Remove unnecessary scaffold output

Every replaced scaffold file is kept next to its replacement with the
snapshot suffix (``.snapshot`` by default).
"""

import argparse
import logging
import os
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from migrator import gomod
from migrator.config import MigrationSettings, converted_dir_for, load_config
from migrator.constructor_args import capture_setup_args, rewrite_registrations
from migrator.descriptor import ProjectDescriptor, load_descriptor
from migrator.errors import ConfigError, MigrationCancelled, PreconditionError, ToolError
from migrator.generator import Generator
from migrator.path_rewriter import read_source, rewrite_text, rewrite_tree, rules_for, write_source
from migrator.relocator import (
    PathMapping,
    RelocationReport,
    default_mappings,
    mapping_by_name,
    relocate,
    snapshot_report,
    take_snapshot,
)
from migrator.run_log import headline, log, step_banner
from migrator.splicer import EntryPointFragment, controller_import_filter, splice_entry_point

logger = logging.getLogger(__name__)


def confirm(prompt: str) -> bool:
    """Ask a y/n question on stdin. EOF counts as no."""
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower().startswith("y")


@dataclass
class RescaffoldRun:
    """State shared by the steps of one relocation run.

    Paths are explicit; nothing changes the process working directory.
    """

    source_dir: Path
    converted_dir: Path
    project: ProjectDescriptor
    settings: MigrationSettings
    generator: Generator
    reports: List[RelocationReport] = field(default_factory=list)

    @property
    def old_module(self) -> str:
        return gomod.read_module(self.source_dir / "go.mod")

    @property
    def new_module(self) -> str:
        return gomod.module_or_default(self.converted_dir / "go.mod", self.project.repo)

    def _mapping(self, name: str) -> PathMapping:
        return mapping_by_name(default_mappings(self.settings), name)

    def _relocate(self, *names: str) -> List[RelocationReport]:
        done = []
        for name in names:
            report = relocate(self._mapping(name), self.source_dir, self.converted_dir,
                              self.settings.snapshot_suffix)
            self.reports.append(report)
            done.append(report)
        return done

    # -- steps ----------------------------------------------------------------

    def init_project(self) -> None:
        step_banner(1, f"Initializing new {self.settings.plugin} project in: {self.converted_dir}")
        self.generator.init_project(self.project)
        log("ok", f"Operator initialized with {self.settings.plugin} plugin")

    def scaffold_apis(self) -> None:
        step_banner(2, "Scaffolding APIs and Controllers")
        for resource in self.project.resources:
            log("info", f"Scaffolding API: {resource.group}/{resource.version} Kind={resource.kind}")
            self.generator.create_api(resource)
        log("ok", "All APIs and controllers scaffolded")

    def scaffold_webhooks(self) -> None:
        step_banner(3, "Scaffolding Webhooks")
        created = [r for r in self.project.resources if self.generator.create_webhook(r)]
        if created:
            for resource in created:
                log("ok", f"Webhook scaffolded for {resource.kind}")
        else:
            log("info", "No webhooks found in original project")

    def migrate_api_definitions(self) -> None:
        step_banner(4, "Migrating API Definitions")
        if not (self.source_dir / "api").is_dir():
            log("info", "No api/ directory found in source project")
            return
        self._relocate("api-types", "api-support")
        log("ok", "API definitions migrated")

    def setup_api_module(self) -> None:
        step_banner(5, "Setting up api/ as Go Submodule")
        api_dir = self.converted_dir / "api"
        if not api_dir.is_dir():
            log("info", "No api/ directory found in converted project")
            return
        main_mod = self.converted_dir / "go.mod"
        new_module = self.new_module
        api_module = f"{new_module}/api"
        log("info", f"Main module: {new_module}")
        log("info", f"API module: {api_module}")

        source_api_mod = self.source_dir / "api" / "go.mod"
        if source_api_mod.is_file():
            gomod.copy_manifest(source_api_mod, api_dir / "go.mod", api_module, self.old_module)
            log("ok", "api/go.mod copied (go.sum will be regenerated)")
        else:
            go_version = gomod.read_go_version(main_mod)
            log("info", f"Creating api/go.mod with Go version: {go_version}")
            (api_dir / "go.mod").write_text(
                gomod.render_api_manifest(api_module, go_version, self.settings.api_module_requires),
                encoding="utf-8",
            )
        if main_mod.is_file() and gomod.ensure_replace_directive(main_mod, api_module, "./api"):
            log("ok", f"Added replace {api_module} => ./api to go.mod")

    def migrate_controllers(self) -> None:
        step_banner(6, "Migrating Controller Logic")
        if not (self.source_dir / self.settings.old_controller_package).is_dir():
            log("info", f"No {self.settings.old_controller_package}/ directory found in source project")
            return
        self._relocate("controllers")
        log("ok", "Controller logic migrated")

    def migrate_webhooks(self) -> None:
        step_banner(7, "Migrating Webhook Definitions")
        (report,) = self._relocate("webhooks")
        if not report.total:
            log("info", "No webhook files found in source project")
            return
        log("ok", "Webhook definitions migrated")

    def migrate_pkg(self) -> None:
        step_banner(8, "Migrating pkg/ to internal/")
        if not (self.source_dir / "pkg").is_dir():
            log("info", "No pkg/ directory found in source project")
            return
        self._relocate("pkg")
        internal = self.converted_dir / "internal"
        if not internal.is_dir():
            return
        skip = self.settings.new_controller_package
        packages = sorted(p.name for p in internal.iterdir() if p.is_dir() and p.name != skip)
        for name in packages:
            log("info", f"  - {name}")
        log("ok", "pkg/ migrated to internal/")

    def update_import_paths(self) -> None:
        step_banner(9, "Updating Import Paths")
        old_module, new_module = self.old_module, self.new_module
        if not old_module:
            log("warn", "Could not determine old module name")
            return
        log("info", f"Old module: {old_module}")
        log("info", f"New module: {new_module}")
        settings = self.settings
        modified = rewrite_tree(
            self.converted_dir,
            rules_for(settings, old_module, new_module),
            settings.rewrite_suffixes,
            settings.generated_marker,
            settings.snapshot_suffix,
        )
        for path in modified:
            log("move", f"Updated: {path.relative_to(self.converted_dir)}")

        main_mod = self.converted_dir / "go.mod"
        removed = gomod.prune_stale_requirements(
            main_mod, old_module, (settings.old_controller_package, "pkg"), replace_only=True,
        )
        for line in removed:
            log("info", f"Removed old replace directive: {line.strip()}")
        if main_mod.is_file() and old_module != new_module and gomod.mentions(main_mod, old_module):
            text = main_mod.read_text(encoding="utf-8")
            main_mod.write_text(gomod.rename_module_references(text, old_module, new_module), encoding="utf-8")
            log("info", "Updated module references in go.mod")
        log("ok", "Import paths updated")

    def copy_go_mod(self) -> None:
        step_banner(10, "Copying go.mod from original project")
        source_mod = self.source_dir / "go.mod"
        if not source_mod.is_file():
            log("warn", "No go.mod in source project; keeping the scaffolded one")
            return
        old_module, new_module = self.old_module, self.new_module
        gomod.copy_manifest(source_mod, self.converted_dir / "go.mod", new_module, old_module)
        log("ok", "go.mod copied (go.sum will be regenerated by go mod tidy)")

    def migrate_main(self) -> None:
        step_banner(11, "Migrating main.go")
        source_main = self.source_dir / "main.go"
        target_main = self.converted_dir / "cmd" / "main.go"
        if not source_main.is_file():
            log("info", "No main.go found in source project")
            return
        if not target_main.is_file():
            log("warn", "cmd/main.go not found in converted project")
            return
        snap = take_snapshot(target_main, self.settings.snapshot_suffix)

        settings = self.settings
        old_text = read_source(source_main)
        old = EntryPointFragment(old_text)
        new = EntryPointFragment(read_source(target_main))
        exclude = controller_import_filter(settings.old_controller_package, self.old_module)
        report = splice_entry_point(old, new, exclude)
        if report.imports_added:
            log("info", f"Added {len(report.imports_added)} custom import(s)")
        if report.init_replaced:
            log("info", "Replaced init() function contents")
        if report.scalar_value:
            log("info", f"Set LeaderElectionID to: {report.scalar_value}")
        if report.setup_lines:
            log("info", "Added cfg and kclient creation code")

        text, registrations = rewrite_registrations(
            new.text,
            capture_setup_args(old_text, settings.old_controller_package),
            settings.new_controller_package,
        )
        old_module = self.old_module
        if old_module:
            text = rewrite_text(text, rules_for(settings, old_module, self.new_module))
        for name in registrations.rewritten:
            log("info", f"Updated {name} constructor arguments")
        for name in registrations.defaulted:
            log("warn", f"{name}: no SetupWithManager arguments captured, using the default")
        for name in registrations.untouched:
            log("warn", f"{name} has no registration in the original main.go; left as scaffolded")
        write_source(target_main, text)
        log("ok", f"main.go migrated (backup: {snap.relative_to(self.converted_dir)})")

    def sync_dependencies(self) -> None:
        step_banner(12, "Syncing Go Dependencies")
        main_mod = self.converted_dir / "go.mod"
        old_module, new_module = self.old_module, self.new_module
        for line in gomod.prune_stale_requirements(
                main_mod, old_module, (self.settings.old_controller_package, "pkg")):
            log("info", f"Removed stale requirement: {line.strip()}")
        for line in gomod.drop_old_module_requires(main_mod, old_module, new_module):
            log("info", f"Removed old module requirement: {line.strip()}")

        api_dir = self.converted_dir / "api"
        if (api_dir / "go.mod").is_file():
            log("info", "Running go mod tidy in api/ directory...")
            self.generator.mod_tidy(api_dir)
        log("info", "Running go mod tidy in main directory...")
        self.generator.mod_tidy()
        log("ok", "Go dependencies synced")

    def copy_extras(self) -> None:
        step_banner(13, "Copying Additional Configuration Files")
        for name in self.settings.extra_files:
            source = self.source_dir / name
            if source.is_file():
                log("move", f"Copying {name}")
                shutil.copy2(source, self.converted_dir / name)
        for name in self.settings.extra_dirs:
            source = self.source_dir / name
            if source.is_dir():
                log("move", f"Copying {name}/ directory")
                shutil.copytree(source, self.converted_dir / name, dirs_exist_ok=True)
        log("ok", "Additional configuration files copied")

    def cleanup(self) -> None:
        step_banner(14, "Removing Unnecessary Directories and Files")
        for name in self.settings.cleanup_paths:
            path = self.converted_dir / name
            if path.is_dir():
                log("info", f"Removing {name}/ directory")
                shutil.rmtree(path)
            elif path.exists():
                log("info", f"Removing {name} file")
                path.unlink()
        log("ok", "Unnecessary files and directories removed")

    def verify(self) -> List[str]:
        """Warn about old controller import paths that survived the run."""
        old_module = self.old_module
        if not old_module:
            return []
        needle = f"{old_module}/{self.settings.old_controller_package}"
        leftovers = []
        for rel in ("cmd/main.go", "go.mod"):
            if gomod.mentions(self.converted_dir / rel, needle):
                log("warn", f"Old controller path still found in {rel}")
                leftovers.append(rel)
        return leftovers

    def run(self) -> None:
        self.init_project()
        self.scaffold_apis()
        self.scaffold_webhooks()
        self.migrate_api_definitions()
        self.setup_api_module()
        self.migrate_controllers()
        self.migrate_webhooks()
        self.migrate_pkg()
        self.update_import_paths()
        self.copy_go_mod()
        self.migrate_main()
        self.sync_dependencies()
        self.copy_extras()
        self.cleanup()
        print()
        log("info", "Verifying migration...")
        self.verify()


def prepare_converted_dir(converted_dir: Path, assume_yes: bool = False) -> None:
    """Clear an existing output directory after confirmation."""
    if not converted_dir.exists():
        return
    log("warn", f"Directory '{converted_dir}' already exists")
    if not assume_yes and not confirm("Remove and continue? (y/n): "):
        raise MigrationCancelled("Migration cancelled")
    log("info", f"Removing existing directory: {converted_dir}")
    shutil.rmtree(converted_dir)


def print_summary(run: RescaffoldRun) -> None:
    suffix = run.settings.snapshot_suffix
    print()
    headline("Migration Completed Successfully!")
    print()
    print(f"New {run.settings.plugin} operator created at: {run.converted_dir}")
    diffs = snapshot_report(run.converted_dir, suffix)
    if diffs:
        print()
        print(f"Replaced scaffold files ({suffix} backups kept):")
        for diff in diffs:
            print(f"  {diff.path}  +{diff.added} -{diff.removed}")
    print()
    print("Next Steps:")
    print(f"1. Review the migrated code in {run.converted_dir}")
    print(f"2. Compare scaffold backups: find {run.converted_dir} -name '*{suffix}'")
    print("3. Review and update the Makefile for any custom targets")
    print(f"4. Build and test: make manifests generate build test (in {run.converted_dir})")
    print("5. Review PROJECT file changes and update if needed")


def rescaffold(project_dir, settings: Optional[MigrationSettings] = None,
               assume_yes: bool = False) -> RescaffoldRun:
    """Run the whole relocation for *project_dir*; return the finished run."""
    settings = settings or MigrationSettings()
    source_dir = Path(project_dir).resolve()
    if not source_dir.is_dir():
        raise ConfigError(f"Directory '{project_dir}' does not exist")
    project = load_descriptor(source_dir)

    log("info", f"Project Name: {project.project_name}")
    log("info", f"Repository: {project.repo}")
    log("info", f"Domain: {project.domain}")
    log("info", f"Multigroup: {str(project.multigroup).lower()}")
    log("info", f"Extracted {len(project.resources)} resource(s):")
    for r in project.resources:
        log("info", f"  {r.group}|{r.kind}|{r.version}|{r.domain}|"
                    f"{str(r.webhook_defaulting).lower()}|{str(r.webhook_validation).lower()}")

    converted_dir = converted_dir_for(source_dir, settings)
    generator = Generator(settings, converted_dir)
    generator.check_available()
    prepare_converted_dir(converted_dir, assume_yes)

    run = RescaffoldRun(source_dir, converted_dir, project, settings, generator)
    run.run()
    return run


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Migrate an operator project from the go/v3 to the go/v4 layout",
    )
    parser.add_argument("project_dir", help="Operator project directory (contains PROJECT)")
    parser.add_argument("-y", "--yes", action="store_true",
                        help="Remove an existing output directory without asking")
    parser.add_argument("--config", default=None, help="YAML settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else os.environ.get("RESCAFFOLD_LOG_LEVEL", "WARNING"),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_config(args.config)
        headline(f"Operator Migration: v3 to {settings.new_version}")
        log("info", f"Source: {args.project_dir}")
        run = rescaffold(args.project_dir, settings, assume_yes=args.yes)
    except MigrationCancelled as e:
        log("warn", str(e))
        return 1
    except (ConfigError, PreconditionError, ToolError) as e:
        log("error", str(e))
        return 1

    print_summary(run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
