"""Shared fixtures for rescaffold tests."""

import shutil

import pytest

from tests._helpers import NEW_MAIN, OLD_MAIN, PROJECT_FILE, make_repo, write_tree


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch, tmp_path):
    """Keep tests away from user config and colored output."""
    for name in (
        "RESCAFFOLD_CONFIG",
        "RESCAFFOLD_SNAPSHOT_SUFFIX",
        "RESCAFFOLD_GENERATOR",
        "RESCAFFOLD_FORCE_COLOR",
        "RESCAFFOLD_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.chdir(tmp_path)
    import migrator.run_log as run_log
    monkeypatch.setattr(run_log, "_COLORS", {})


@pytest.fixture
def requires_git():
    if shutil.which("git") is None:
        pytest.skip("git not installed")


@pytest.fixture
def operator_project(tmp_path):
    """A minimal go/v3 keystone-operator source tree."""
    return write_tree(tmp_path / "keystone-operator", {
        "PROJECT": PROJECT_FILE,
        "go.mod": (
            "module github.com/openstack-k8s-operators/keystone-operator\n\n"
            "go 1.21\n\n"
            "require (\n"
            "\tgithub.com/openstack-k8s-operators/keystone-operator/api v0.0.0\n"
            "\tk8s.io/client-go v0.29.0\n"
            ")\n\n"
            "replace github.com/openstack-k8s-operators/keystone-operator/api => ./api\n"
        ),
        "main.go": OLD_MAIN,
        "api/v1beta1/keystoneapi_types.go": "package v1beta1\n\ntype KeystoneAPISpec struct{}\n",
        "api/v1beta1/keystoneapi_webhook.go": "package v1beta1\n\n// webhook\n",
        "api/v1beta1/conditions.go": "package v1beta1\n\nconst ReadyCondition = \"Ready\"\n",
        "api/v1beta1/zz_generated.deepcopy.go": "package v1beta1\n",
        "controllers/keystoneapi_controller.go": (
            "package controllers\n\n"
            "import (\n"
            "\t\"github.com/openstack-k8s-operators/keystone-operator/pkg/keystone\"\n"
            ")\n"
        ),
        "pkg/keystone/const.go": "package keystone\n\nconst ServiceName = \"keystone\"\n",
        "templates/keystoneapi/config/keystone.conf": "[DEFAULT]\n",
    })


@pytest.fixture
def entry_points():
    return OLD_MAIN, NEW_MAIN


@pytest.fixture
def glance_repo(tmp_path, requires_git):
    """A committed go/v3 glance-operator working tree."""
    return make_repo(tmp_path / "glance-operator", {
        "Makefile": "build:\n\tgo build\n",
        "OWNERS": "approvers: []\n",
        "main.go": "package main\n",
        ".golangci.yml": "run: {}\n",
        ".gitignore": "bin/\n",
        "controllers/glance_controller.go": "package controllers\n\n// reconcile\n",
        "controllers/glanceapi_controller.go": "package controllers\n",
        "pkg/glance/const.go": "package glance\n",
        "tests/kuttl/common.yaml": "kind: TestStep\n",
        "config/samples/glance_v1beta1_glance.yaml": "kind: Glance\n",
        "hack/old-script.sh": "#!/bin/sh\n",
    })
