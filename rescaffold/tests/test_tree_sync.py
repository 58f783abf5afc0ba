"""Tests for tree_sync.py: reconciling a git tree with a regenerated one."""

import os

import pytest

from migrator.config import MigrationSettings
from migrator.errors import PreconditionError
from migrator.tree_sync import (
    EXCLUDE_FROM_OVERLAY,
    NORMAL,
    PROTECT,
    TreeReconciler,
    build_rules,
    classify,
    main,
    operator_name,
)
from tests._helpers import git, make_repo, tracked, write_tree

RULES = build_rules(MigrationSettings())

REFERENCE = {
    "cmd/main.go": "package main\n// v4\n",
    "go.mod": "module github.com/openstack-k8s-operators/glance-operator\n",
    "Makefile": "# regenerated\n",
    ".golangci.yml": "run: {timeout: 5m}\n",
    "internal/controller/glance_controller.go": "package controller\n// scaffold\n",
    "config/samples/glance_v1beta1_glance.yaml": "kind: Glance\nspec: {}\n",
    "config/rbac/role.yaml": "kind: ClusterRole\n",
}


@pytest.fixture
def reference(tmp_path):
    return write_tree(tmp_path / "glance-operator-v4", REFERENCE)


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------

class TestClassify:
    @pytest.mark.parametrize("path, action, rule", [
        ("cmd/main.go.snapshot", PROTECT, "snapshot file"),
        ("Makefile", PROTECT, "protected top-level file"),
        ("OWNERS_ALIASES", PROTECT, "protected top-level file"),
        ("internal/controller/foo.go", PROTECT, "internal directory file"),
        ("config/samples/x.yaml", PROTECT, "config/samples directory file"),
        (".github/workflows/ci.yaml", PROTECT, ".github directory file"),
        ("zuul.d/jobs.yaml", PROTECT, "zuul.d directory file"),
        ("test/kuttl/common.yaml", PROTECT, "test directory file"),
        (".gitignore", PROTECT, "hidden top-level file"),
        (".golangci.yml", PROTECT, "hidden top-level file"),
        ("api/.golangci.yml", EXCLUDE_FROM_OVERLAY, "lint config"),
    ])
    def test_rules(self, path, action, rule):
        assert classify(path, RULES) == (action, rule)

    @pytest.mark.parametrize("path", [
        "docs/Makefile",
        "internalx/a.go",
        "tests/kuttl/common.yaml",
        "config/rbac/role.yaml",
        "hack/.hidden",
        "main.go",
    ])
    def test_normal(self, path):
        assert classify(path, RULES) == (NORMAL, None)

    def test_custom_suffix_protected(self):
        rules = build_rules(MigrationSettings(snapshot_suffix=".scaffold"))
        assert classify("cmd/main.go.scaffold", rules)[0] == PROTECT
        assert classify("cmd/main.go.snapshot", rules)[0] == NORMAL


class TestOperatorName:
    def test_strips_suffix(self, tmp_path):
        assert operator_name(tmp_path / "glance-operator") == "glance"

    def test_without_suffix(self, tmp_path):
        assert operator_name(tmp_path / "glance") == "glance"


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------

class TestPreconditions:
    def test_missing_repo(self, tmp_path, reference):
        with pytest.raises(PreconditionError, match="does not exist"):
            TreeReconciler(tmp_path / "nope", reference, MigrationSettings()).check_preconditions()

    def test_missing_reference(self, glance_repo, tmp_path):
        with pytest.raises(PreconditionError, match="Source directory"):
            TreeReconciler(glance_repo, tmp_path / "nope", MigrationSettings()).check_preconditions()

    def test_not_a_repo(self, tmp_path, reference):
        plain = tmp_path / "plain"
        plain.mkdir()
        with pytest.raises(PreconditionError, match="Not a git repository"):
            TreeReconciler(plain, reference, MigrationSettings()).check_preconditions()


# ---------------------------------------------------------------------------
# Structural moves
# ---------------------------------------------------------------------------

class TestStructuralMoves:
    def test_controllers_move_with_package_rename(self, glance_repo, reference):
        reconciler = TreeReconciler(glance_repo, reference, MigrationSettings())
        reconciler.structural_moves()

        assert not (glance_repo / "controllers").exists()
        moved = glance_repo / "internal/controller/glance_controller.go"
        assert moved.read_text() == "package controller\n\n// reconcile\n"
        assert ("controllers/glance_controller.go",
                "internal/controller/glance_controller.go") in reconciler.result.moved

    def test_pkg_and_tests(self, glance_repo, reference):
        TreeReconciler(glance_repo, reference, MigrationSettings()).structural_moves()
        assert (glance_repo / "internal/glance/const.go").is_file()
        assert not (glance_repo / "pkg").exists()
        assert (glance_repo / "test/kuttl/common.yaml").is_file()
        assert not (glance_repo / "tests").exists()

    def test_moves_are_staged_as_renames(self, glance_repo, reference):
        TreeReconciler(glance_repo, reference, MigrationSettings()).structural_moves()
        status = git(glance_repo, "status", "--short")
        assert "R  tests/kuttl/common.yaml -> test/kuttl/common.yaml" in status
        assert "R  pkg/glance/const.go -> internal/glance/const.go" in status

    def test_existing_test_dir_not_overwritten(self, tmp_path, reference, requires_git):
        repo = make_repo(tmp_path / "nova-operator", {
            "tests/a.yaml": "a\n",
            "test/b.yaml": "b\n",
        })
        reconciler = TreeReconciler(repo, reference, MigrationSettings())
        assert reconciler.move_tests_dir() is False
        assert (repo / "tests/a.yaml").is_file()

    def test_untracked_files_stay_behind(self, glance_repo, reference):
        (glance_repo / "controllers" / "scratch.txt").write_text("local\n")
        TreeReconciler(glance_repo, reference, MigrationSettings()).structural_moves()
        assert (glance_repo / "controllers/scratch.txt").is_file()
        assert not (glance_repo / "internal/controller/scratch.txt").exists()


# ---------------------------------------------------------------------------
# Full run
# ---------------------------------------------------------------------------

class TestReconcile:
    def test_protected_paths_survive(self, glance_repo, reference):
        TreeReconciler(glance_repo, reference, MigrationSettings()).run()
        assert (glance_repo / "Makefile").read_text() == "build:\n\tgo build\n"
        assert (glance_repo / "OWNERS").is_file()
        assert (glance_repo / ".golangci.yml").read_text() == "run: {}\n"
        assert (glance_repo / "config/samples/glance_v1beta1_glance.yaml").read_text() == "kind: Glance\n"
        assert (glance_repo / "internal/controller/glance_controller.go").read_text() == (
            "package controller\n\n// reconcile\n"
        )

    def test_stale_files_removed(self, glance_repo, reference):
        result = TreeReconciler(glance_repo, reference, MigrationSettings()).run()
        assert "main.go" in result.removed
        assert "hack/old-script.sh" in result.removed
        assert not (glance_repo / "hack").exists()

    def test_reference_files_copied(self, glance_repo, reference):
        result = TreeReconciler(glance_repo, reference, MigrationSettings()).run()
        assert (glance_repo / "cmd/main.go").read_text() == "package main\n// v4\n"
        assert (glance_repo / "config/rbac/role.yaml").is_file()
        assert "Makefile" not in result.copied
        assert "internal/controller/glance_controller.go" not in result.copied

    def test_normal_paths_match_reference(self, glance_repo, reference):
        TreeReconciler(glance_repo, reference, MigrationSettings()).run()
        repo_normal = {p for p in tracked(glance_repo) if classify(p, RULES)[0] == NORMAL}
        ref_normal = {p for p in REFERENCE if classify(p, RULES)[0] == NORMAL}
        assert repo_normal == ref_normal

    def test_everything_staged(self, glance_repo, reference):
        result = TreeReconciler(glance_repo, reference, MigrationSettings()).run()
        assert git(glance_repo, "status", "--porcelain", "--untracked-files=all").strip()
        assert "??" not in result.status
        assert "cmd/main.go" in result.status

    def test_overlay_excluded_path_never_removed(self, tmp_path, reference, requires_git):
        repo = make_repo(tmp_path / "glance-operator", {
            "api/.golangci.yml": "run: {}\n",
            "main.go": "package main\n",
        })
        write_tree(reference, {"api/.golangci.yml": "run: {timeout: 1m}\n"})
        TreeReconciler(repo, reference, MigrationSettings()).run()
        assert (repo / "api/.golangci.yml").read_text() == "run: {}\n"

    def test_snapshot_files_never_touched(self, tmp_path, reference, requires_git):
        repo = make_repo(tmp_path / "glance-operator", {
            "cmd/main.go.snapshot": "old\n",
        })
        write_tree(reference, {"cmd/main.go.snapshot": "new\n"})
        TreeReconciler(repo, reference, MigrationSettings()).run()
        assert (repo / "cmd/main.go.snapshot").read_text() == "old\n"
        assert "cmd/main.go.snapshot" in tracked(repo)

    def test_tracked_file_replaced_by_reference_directory(self, tmp_path, reference, requires_git):
        repo = make_repo(tmp_path / "glance-operator", {"docs": "old notes\n"})
        write_tree(reference, {"docs/index.md": "# Glance\n"})
        result = TreeReconciler(repo, reference, MigrationSettings()).run()
        assert "docs" in result.removed
        assert (repo / "docs/index.md").read_text() == "# Glance\n"
        assert "docs/index.md" in tracked(repo)

    def test_symlink_copied_as_link(self, glance_repo, reference):
        (reference / "bin").mkdir()
        (reference / "bin" / "tool").symlink_to("../cmd/main.go")
        TreeReconciler(glance_repo, reference, MigrationSettings()).run()
        link = glance_repo / "bin" / "tool"
        assert link.is_symlink()
        assert os.readlink(link) == "../cmd/main.go"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

class TestMain:
    def test_success(self, glance_repo, reference, capsys):
        assert main([str(glance_repo), str(reference)]) == 0
        out = capsys.readouterr().out
        assert "Step 4: Adding new/modified files to git" in out
        assert "Sync complete!" in out

    def test_missing_reference(self, glance_repo, tmp_path, capsys):
        assert main([str(glance_repo), str(tmp_path / "missing")]) == 1
        assert "[error] Source directory does not exist" in capsys.readouterr().out

    def test_bad_config(self, glance_repo, reference, tmp_path, capsys):
        config = tmp_path / "bad.yaml"
        config.write_text("nope: 1\n")
        assert main([str(glance_repo), str(reference), "--config", str(config)]) == 1
        assert "Unknown config keys" in capsys.readouterr().out
