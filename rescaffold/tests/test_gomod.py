"""Tests for gomod.py: go.mod text edits."""

from migrator import gomod

MODULE = "github.com/example/foo-operator"

GO_MOD = (
    f"module {MODULE}\n"
    "\n"
    "go 1.21\n"
    "\n"
    "require (\n"
    f"\t{MODULE}/api v0.0.0\n"
    "\tk8s.io/client-go v0.29.0\n"
    ")\n"
    "\n"
    f"replace {MODULE}/api => ./api\n"
)


# ---------------------------------------------------------------------------
# reading
# ---------------------------------------------------------------------------

class TestRead:
    def test_module_and_go_version(self, tmp_path):
        path = tmp_path / "go.mod"
        path.write_text(GO_MOD)
        assert gomod.read_module(path) == MODULE
        assert gomod.read_go_version(path) == "1.21"

    def test_missing_file(self, tmp_path):
        assert gomod.read_module(tmp_path / "go.mod") == ""
        assert gomod.read_go_version(tmp_path / "go.mod") == ""

    def test_module_or_default(self, tmp_path):
        assert gomod.module_or_default(tmp_path / "go.mod", "example.com/x") == "example.com/x"
        assert gomod.module_or_default(tmp_path / "go.mod", None) == ""


# ---------------------------------------------------------------------------
# renaming
# ---------------------------------------------------------------------------

class TestRename:
    def test_references_respect_boundary(self):
        text = f"{MODULE}/api v1\n{MODULE}-extra v2\n{MODULE} v3\n"
        out = gomod.rename_module_references(text, MODULE, "example.com/new")
        assert out == f"example.com/new/api v1\n{MODULE}-extra v2\nexample.com/new v3\n"

    def test_copy_manifest_renames(self, tmp_path):
        source = tmp_path / "src" / "go.mod"
        source.parent.mkdir()
        source.write_text(GO_MOD)
        target = tmp_path / "dst" / "go.mod"
        assert gomod.copy_manifest(source, target, "example.com/new", MODULE) is True
        text = target.read_text()
        assert text.startswith("module example.com/new\n")
        assert "replace example.com/new/api => ./api" in text

    def test_copy_manifest_same_module(self, tmp_path):
        source = tmp_path / "go.mod"
        source.write_text(GO_MOD)
        target = tmp_path / "out" / "go.mod"
        assert gomod.copy_manifest(source, target, MODULE, MODULE) is False
        assert target.read_text() == GO_MOD


# ---------------------------------------------------------------------------
# api submodule
# ---------------------------------------------------------------------------

class TestApiModule:
    def test_render(self):
        text = gomod.render_api_manifest(f"{MODULE}/api", "1.21", ["k8s.io/apimachinery v0.31.0"])
        assert text == (
            f"module {MODULE}/api\n\ngo 1.21\n\nrequire (\n"
            "\tk8s.io/apimachinery v0.31.0\n)\n"
        )

    def test_replace_added_once(self, tmp_path):
        path = tmp_path / "go.mod"
        path.write_text(f"module {MODULE}\n\ngo 1.21")
        assert gomod.ensure_replace_directive(path, f"{MODULE}/api", "./api") is True
        assert gomod.ensure_replace_directive(path, f"{MODULE}/api", "./api") is False
        assert path.read_text().count("replace ") == 1

    def test_existing_replace_detected(self, tmp_path):
        path = tmp_path / "go.mod"
        path.write_text(GO_MOD)
        assert gomod.ensure_replace_directive(path, f"{MODULE}/api", "./api") is False


# ---------------------------------------------------------------------------
# pruning
# ---------------------------------------------------------------------------

class TestPrune:
    def test_stale_requirements_removed(self, tmp_path):
        path = tmp_path / "go.mod"
        path.write_text(GO_MOD + f"require {MODULE}/controllers v0.0.0\n"
                        f"replace {MODULE}/pkg/foo => ./pkg/foo\n")
        removed = gomod.prune_stale_requirements(path, MODULE)
        assert len(removed) == 2
        assert "/controllers" not in path.read_text()
        assert f"{MODULE}/api v0.0.0" in path.read_text()

    def test_replace_only(self, tmp_path):
        path = tmp_path / "go.mod"
        path.write_text(f"require {MODULE}/controllers v0.0.0\n"
                        f"replace {MODULE}/controllers => ./controllers\n")
        removed = gomod.prune_stale_requirements(path, MODULE, replace_only=True)
        assert removed == [f"replace {MODULE}/controllers => ./controllers"]
        assert path.read_text() == f"require {MODULE}/controllers v0.0.0\n"

    def test_nothing_to_prune_leaves_file(self, tmp_path):
        path = tmp_path / "go.mod"
        path.write_text(GO_MOD)
        assert gomod.prune_stale_requirements(path, MODULE) == []
        assert path.read_text() == GO_MOD

    def test_drop_old_module_requires(self, tmp_path):
        path = tmp_path / "go.mod"
        path.write_text(f"require {MODULE} v0.1.0\nrequire {MODULE}/api v0.0.0\n")
        removed = gomod.drop_old_module_requires(path, MODULE, "example.com/new")
        assert removed == [f"require {MODULE} v0.1.0"]
        assert path.read_text() == f"require {MODULE}/api v0.0.0\n"

    def test_drop_noop_when_module_unchanged(self, tmp_path):
        path = tmp_path / "go.mod"
        path.write_text(f"require {MODULE} v0.1.0\n")
        assert gomod.drop_old_module_requires(path, MODULE, MODULE) == []


class TestMentions:
    def test_mentions(self, tmp_path):
        path = tmp_path / "main.go"
        path.write_text(f'"{MODULE}/controllers"')
        assert gomod.mentions(path, f"{MODULE}/controllers")
        assert not gomod.mentions(path, "other")
        assert not gomod.mentions(tmp_path / "missing.go", "x")
        assert not gomod.mentions(path, "")
