"""
Tests for CLI commands — generate, install, config check, and global options.
"""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from monoinstall.core.use_cases import generate as generate_use_case
from monoinstall.core.use_cases import install as install_use_case
from monoinstall.main import cli

from conftest import FakeProvisioner, FakeRunner


@pytest.fixture(autouse=True)
def _reset_logging(restore_root_logger):
    yield


@pytest.fixture
def fake_installer(monkeypatch) -> FakeRunner:
    """Route both workflows through one FakeRunner and a fake provisioner."""
    fake = FakeRunner()
    for module in (generate_use_case, install_use_case):
        monkeypatch.setattr(module, "SubprocessRunner", lambda: fake)
        monkeypatch.setattr(module, "ToolProvisioner", lambda *args, **kwargs: FakeProvisioner())
    return fake


def _invoke(*args: str):
    return CliRunner().invoke(cli, list(args))


class TestCLIGlobal:
    def test_help(self):
        result = _invoke("--help")
        assert result.exit_code == 0
        assert "one shared dependency install" in result.output
        for command in ("generate", "install", "config"):
            assert command in result.output

    def test_version(self):
        result = _invoke("--version")
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_generate_help(self):
        result = _invoke("generate", "--help")
        assert result.exit_code == 0
        assert "--lazy" in result.output
        assert "--force" in result.output

    def test_install_help(self):
        result = _invoke("install", "--help")
        assert result.exit_code == 0
        assert "--full-clean" in result.output
        assert "--bypass-policy" in result.output


class TestConfigCheck:
    def test_valid(self, repo: Path):
        result = _invoke("--config", str(repo), "config", "check")
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "Projects: 2" in result.output
        assert "cache_folder" in result.output

    def test_valid_json(self, repo: Path):
        result = _invoke("--quiet", "--config", str(repo), "config", "check", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["valid"] is True
        assert data["project_count"] == 2
        assert data["pinned_count"] == 1

    def test_missing_file(self, tmp_path: Path):
        result = _invoke("--config", str(tmp_path / "missing.yml"), "config", "check")
        assert result.exit_code == 1
        assert "Configuration errors" in result.output

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "monorepo.yml"
        path.write_text("projects: [unclosed")
        result = _invoke("--quiet", "--config", str(path), "config", "check", "--json")
        assert result.exit_code == 1
        assert json.loads(result.output)["valid"] is False


class TestGenerateCommand:
    def test_generate(self, repo: Path, fake_installer: FakeRunner):
        result = _invoke("--config", str(repo), "generate")
        assert result.exit_code == 0, result.output
        assert "monoinstall generate finished successfully" in result.output
        assert "No previous lock file" in result.output
        assert fake_installer.subcommands() == ["install", "shrinkwrap"]

    def test_generate_twice_reports_fast_mode(self, repo: Path, fake_installer: FakeRunner):
        _invoke("--config", str(repo), "generate")
        result = _invoke("--config", str(repo), "generate")
        assert result.exit_code == 0
        assert "fast mode" in result.output

    def test_generate_json(self, repo: Path, fake_installer: FakeRunner):
        result = _invoke("--quiet", "--config", str(repo), "generate", "--json", "--force")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["decision"] == "full_reinstall"
        assert data["forced"] is True

    def test_generate_installer_failure(self, repo: Path, fake_installer: FakeRunner):
        fake_installer.failures = {"install": 3}
        result = _invoke("--quiet", "--config", str(repo), "generate", "--json")
        assert result.exit_code == 1
        # output also carries the retry error log from stderr
        assert '"error_type": "InstallerFailure"' in result.output

    def test_generate_bad_config(self, tmp_path: Path):
        result = _invoke("--config", str(tmp_path / "missing.yml"), "generate")
        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestInstallCommand:
    def test_install_before_generate(self, repo: Path, fake_installer: FakeRunner):
        result = _invoke("--quiet", "--config", str(repo), "install", "--json")
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["error_type"] == "MissingTempModuleError"
        assert fake_installer.calls == []

    def test_install_after_generate(self, repo: Path, fake_installer: FakeRunner):
        _invoke("--config", str(repo), "generate")
        result = _invoke("--quiet", "--config", str(repo), "install", "--clean", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["decision"] == "full_reinstall"
        assert data["state"] == "installed"

    def test_install_human_output(self, repo: Path, fake_installer: FakeRunner):
        _invoke("--config", str(repo), "generate")
        result = _invoke("--config", str(repo), "install", "-c")
        assert result.exit_code == 0
        assert "The common packages are up to date" in result.output
