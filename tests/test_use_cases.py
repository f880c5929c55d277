"""
Tests for the generate and install workflows.

The installer and the tool provisioner are faked (see conftest.py); the
file system side of each workflow is real.
"""

import json
import os
import shutil
from pathlib import Path

import pytest

from monoinstall.core.config.loader import load_config
from monoinstall.core.execution.disposal import AsyncDisposer
from monoinstall.core.execution.installer import InstallerFailure
from monoinstall.core.models import GitPolicySettings, InstallDecision
from monoinstall.core.services import git_policy
from monoinstall.core.services.consistency import DriftError, MissingTempModuleError
from monoinstall.core.services.git_policy import GitPolicyError
from monoinstall.core.use_cases.generate import GenerateOrchestrator, run_generate
from monoinstall.core.use_cases.install import InstallOrchestrator, run_install

from conftest import write_package_json


def _generate(config, runner, provisioner, **kwargs):
    return GenerateOrchestrator(config, runner=runner, provisioner=provisioner).run(**kwargs)


def _install(config, runner, provisioner, **kwargs):
    return InstallOrchestrator(config, runner=runner, provisioner=provisioner).run(**kwargs)


def _settle(config) -> None:
    """Push every install input behind the marker."""
    inputs = [config.common_manifest_path, config.installed_folder]
    inputs += list(config.temp_modules_folder.glob("*/package.json"))
    for path in inputs:
        st = path.stat()
        os.utime(path, (st.st_atime - 100, st.st_mtime - 100))


class TestGenerate:
    def test_first_run_is_full(self, config, runner, provisioner):
        result = _generate(config, runner, provisioner)

        assert result.decision is InstallDecision.FULL_REINSTALL
        assert result.report.lock_file_found is False
        assert result.shrinkwrapped is True
        assert runner.subcommands() == ["install", "shrinkwrap"]
        assert provisioner.calls == [False]
        assert config.lock_file_path.is_file()
        assert config.marker_path.is_file()
        assert [p.parent.name for p in result.temp_module_files] == ["mono-app", "mono-core"]

    def test_installer_path_from_provisioner(self, config, runner, provisioner):
        _generate(config, runner, provisioner)
        cmd, cwd = runner.calls[0]
        assert cmd[0] == "/opt/fake/npm"
        assert cwd == config.common_folder

    def test_second_run_is_fast_and_idempotent(self, config, runner, provisioner):
        _generate(config, runner, provisioner)
        before = {
            p: p.read_bytes()
            for p in [config.common_manifest_path, *config.temp_modules_folder.glob("*/package.json")]
        }
        lock_before = config.lock_file_path.read_bytes()
        runner.calls.clear()

        result = _generate(config, runner, provisioner)

        assert result.decision is InstallDecision.FAST_INSTALL
        assert result.lock_file_deleted is False
        assert result.shrinkwrapped is False
        assert runner.subcommands() == ["install"]
        assert config.lock_file_path.read_bytes() == lock_before
        for path, content in before.items():
            assert path.read_bytes() == content
        # Third-party packages kept; temp project copies reinstalled
        assert (config.installed_folder / "lodash").is_dir()
        assert (config.installed_folder / "mono-core").is_dir()

    def test_unsatisfied_range_rebuilds(self, repo, config, runner, provisioner):
        _generate(config, runner, provisioner)
        write_package_json(
            repo.parent / "libs" / "core",
            "@acme/core",
            dependencies={"lodash": "^5.0.0"},
            dev_dependencies={"typescript": "~5.4.0"},
        )
        runner.calls.clear()

        result = _generate(load_config(repo), runner, provisioner)

        assert result.decision is InstallDecision.FULL_REINSTALL
        unsatisfied = result.report.unsatisfied
        assert [(u.consumer, u.dependency, u.locked) for u in unsatisfied] == [
            ("mono-core", "lodash", "4.17.21")
        ]
        assert result.lock_file_deleted is True
        assert runner.subcommands() == ["install", "shrinkwrap"]
        assert config.lock_file_path.is_file()

    def test_force(self, config, runner, provisioner):
        _generate(config, runner, provisioner)
        stray = config.installed_folder / "removed-dependency"
        stray.mkdir()

        result = _generate(config, runner, provisioner, force=True)

        assert result.decision is InstallDecision.FULL_REINSTALL
        assert result.forced is True
        assert result.shrinkwrapped is True
        assert not stray.exists()

    def test_lazy_keeps_installed_folder(self, config, runner, provisioner):
        _generate(config, runner, provisioner)
        kept = config.installed_folder / "kept-package"
        kept.mkdir()
        runner.calls.clear()

        result = _generate(config, runner, provisioner, lazy=True, force=True)

        assert result.lazy is True
        assert result.lock_file_deleted is True
        assert result.shrinkwrapped is False
        assert runner.subcommands() == ["install"]
        assert kept.is_dir()
        assert not config.lock_file_path.exists()
        assert config.marker_path.is_file()

    def test_lazy_fast_path_drops_lock_file(self, config, runner, provisioner):
        _generate(config, runner, provisioner)
        result = _generate(config, runner, provisioner, lazy=True)
        assert result.decision is InstallDecision.FAST_INSTALL
        assert result.lock_file_deleted is True

    def test_removed_project_leaves_no_temp_module(self, repo, config, runner, provisioner):
        _generate(config, runner, provisioner)
        repo.write_text(repo.read_text().replace(
            '  - package_name: "@acme/app"\n    folder: apps/app\n', ""
        ))

        result = _generate(load_config(repo), runner, provisioner)

        assert [p.parent.name for p in result.temp_module_files] == ["mono-core"]
        assert not (config.temp_modules_folder / "mono-app").exists()

    def test_install_failure_leaves_no_marker(self, config, runner, provisioner):
        runner.failures = {"install": 3}
        with pytest.raises(InstallerFailure):
            _generate(config, runner, provisioner)
        assert not config.marker_path.exists()

    def test_leftover_recycler_entries_are_deleted(self, config, runner, provisioner):
        leftover = config.recycler_folder / "node_modules-1-1" / "pkg"
        leftover.mkdir(parents=True)

        _generate(config, runner, provisioner, force=True)

        assert not leftover.parent.exists()

    def test_failed_install_still_waits_for_disposals(self, config, runner, provisioner):
        _generate(config, runner, provisioner)
        runner.failures = {"install": 3}
        disposer = AsyncDisposer(config.recycler_folder)
        orchestrator = GenerateOrchestrator(
            config, runner=runner, provisioner=provisioner, disposer=disposer
        )

        with pytest.raises(InstallerFailure):
            orchestrator.run(force=True)

        assert disposer.pending == []
        assert list(config.recycler_folder.iterdir()) == []

    def test_package_review_written(self, config, runner, provisioner, tmp_path):
        path = tmp_path / "packages.json"
        config = config.model_copy(update={"package_review_file": path})
        _generate(config, runner, provisioner)
        assert path.is_file()

    def test_result_to_dict(self, config, runner, provisioner):
        data = _generate(config, runner, provisioner).to_dict()
        assert data["decision"] == "full_reinstall"
        assert data["satisfaction"]["lock_file_found"] is False
        assert len(data["temp_modules"]) == 2

    def test_run_generate_captures_errors(self, tmp_path: Path):
        result = run_generate(config_path=tmp_path / "missing.yml")
        assert result.error
        assert result.error_type == "ConfigError"
        assert result.to_dict() == {"error": result.error, "error_type": "ConfigError"}


class TestInstall:
    @pytest.fixture
    def generated(self, config, runner, provisioner):
        _generate(config, runner, provisioner)
        runner.calls.clear()
        provisioner.calls.clear()
        return config

    def test_up_to_date(self, generated, runner, provisioner):
        _settle(generated)
        result = _install(generated, runner, provisioner)
        assert result.outcome.decision is InstallDecision.SKIP
        assert runner.calls == []
        assert provisioner.calls == [False]

    def test_fresh_clone(self, generated, runner, provisioner):
        # Committed files only: no installed folder, no marker
        generated.marker_path.unlink()
        shutil.rmtree(generated.installed_folder)

        result = _install(generated, runner, provisioner)

        assert result.outcome.decision is InstallDecision.FULL_REINSTALL
        assert runner.subcommands() == ["install"]
        assert generated.marker_path.is_file()

    def test_full_clean_reprovisions_tool(self, generated, runner, provisioner):
        result = _install(generated, runner, provisioner, full_clean=True)
        assert provisioner.calls == [True]
        assert result.full_clean is True
        assert result.outcome.decision is InstallDecision.FULL_REINSTALL

    def test_drift_aborts_before_installing(self, repo, generated, runner, provisioner):
        write_package_json(
            repo.parent / "apps" / "app",
            "@acme/app",
            dependencies={"@acme/core": "^1.0.0", "react": "^18.2.0", "vue": "^3.0.0"},
        )
        with pytest.raises(DriftError, match="@acme/app"):
            _install(load_config(repo), runner, provisioner)
        assert runner.calls == []
        assert provisioner.calls == []

    def test_not_generated(self, config, runner, provisioner):
        with pytest.raises(MissingTempModuleError):
            _install(config, runner, provisioner)

    def test_git_policy_enforced(self, generated, runner, provisioner, monkeypatch):
        policed = generated.model_copy(
            update={"git_policy": GitPolicySettings(allowed_email_regex=r".+@acme\.com")}
        )
        monkeypatch.setattr(git_policy, "configured_email", lambda cwd: "someone@else.org")

        with pytest.raises(GitPolicyError):
            _install(policed, runner, provisioner)

        _settle(policed)
        result = _install(policed, runner, provisioner, bypass_policy=True)
        assert result.outcome.decision is InstallDecision.SKIP

    def test_result_to_dict(self, generated, runner, provisioner):
        data = _install(generated, runner, provisioner, clean=True).to_dict()
        assert data["clean"] is True
        assert data["decision"] == "full_reinstall"
        assert data["state"] == "installed"
        json.dumps(data)

    def test_run_install_captures_errors(self, repo):
        result = run_install(config_path=repo)
        assert result.error_type == "MissingTempModuleError"
        assert "monoinstall generate" in result.error
