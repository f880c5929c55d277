"""
Shared test fixtures and configuration.

The installer is never really executed: ``FakeRunner`` stands in for the
process runner and simulates what the installer does to the common folder.
"""

import json
import logging
import textwrap
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from monoinstall.core.config.loader import load_config
from monoinstall.core.execution.process_runner import ProcessResult

LOCKED_VERSIONS = {
    "lodash": "4.17.21",
    "react": "18.3.1",
    "typescript": "5.4.5",
}


def write_package_json(
    folder: Path,
    name: str,
    dependencies: dict | None = None,
    dev_dependencies: dict | None = None,
) -> Path:
    folder.mkdir(parents=True, exist_ok=True)
    data: dict = {"name": name, "version": "1.0.0"}
    if dependencies is not None:
        data["dependencies"] = dependencies
    if dev_dependencies is not None:
        data["devDependencies"] = dev_dependencies
    path = folder / "package.json"
    path.write_text(json.dumps(data, indent=2))
    return path


@dataclass
class FakeRunner:
    """Scripted process runner.

    ``failures`` maps a subcommand (``install``, ``prune``, ...) to the
    number of times it fails before succeeding.  A successful ``install``
    in the common folder creates the installed folder with a copy of every
    temp module; ``shrinkwrap`` writes a lock file.
    """

    failures: dict[str, int] = field(default_factory=dict)
    locked_versions: dict[str, str] = field(default_factory=lambda: dict(LOCKED_VERSIONS))
    calls: list[tuple[list[str], Path]] = field(default_factory=list)

    def subcommands(self) -> list[str]:
        return [" ".join(cmd[1:]) for cmd, _cwd in self.calls]

    def run(self, cmd: list[str], *, cwd: Path) -> ProcessResult:
        self.calls.append((list(cmd), cwd))
        sub = cmd[1]
        if self.failures.get(sub, 0) > 0:
            self.failures[sub] -= 1
            return ProcessResult(1, error="Command failed (exit 1)")

        if sub == "install":
            self._install(cwd)
        elif sub == "shrinkwrap":
            self._shrinkwrap(cwd)
        return ProcessResult(0)

    def _install(self, cwd: Path) -> None:
        installed = cwd / "node_modules"
        installed.mkdir(exist_ok=True)
        temp_modules = cwd / "temp_modules"
        if temp_modules.is_dir():
            for folder in temp_modules.iterdir():
                (installed / folder.name).mkdir(exist_ok=True)
        for dep in self.locked_versions:
            (installed / dep).mkdir(exist_ok=True)

    def _shrinkwrap(self, cwd: Path) -> None:
        deps: dict = {
            name: {"version": version, "from": f"{name}@^{version}", "resolved": f"https://registry/{name}"}
            for name, version in self.locked_versions.items()
        }
        temp_modules = cwd / "temp_modules"
        if temp_modules.is_dir():
            for folder in sorted(temp_modules.iterdir()):
                manifest = json.loads((folder / "package.json").read_text())
                nested = {
                    dep: {"version": "0.0.0", "from": rng}
                    for dep, rng in manifest["dependencies"].items()
                    if rng.startswith("file:")
                }
                deps[folder.name] = {
                    "version": "0.0.0",
                    "from": f"file:temp_modules/{folder.name}",
                    "dependencies": nested,
                }
        lock = {"name": "monoinstall-common", "version": "0.0.0", "dependencies": deps}
        (cwd / "npm-shrinkwrap.json").write_text(json.dumps(lock, indent=2))


class FakeProvisioner:
    """Stands in for ToolProvisioner without touching PATH or the tool home."""

    def __init__(self, executable: str = "/opt/fake/npm"):
        self.executable = Path(executable)
        self.calls: list[bool] = []

    def ensure(self, clean: bool = False) -> Path:
        self.calls.append(clean)
        return self.executable


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A two-project monorepo; returns the path of its monorepo.yml."""
    content = textwrap.dedent(f"""\
        common_folder: common
        tool_home: {tmp_path / 'tool-home'}
        installer:
          tool: npm
          version: 4.5.0
          max_attempts: 3
        pinned_versions:
          typescript: 5.4.5
        projects:
          - package_name: "@acme/core"
            folder: libs/core
          - package_name: "@acme/app"
            folder: apps/app
    """)
    write_package_json(
        tmp_path / "libs" / "core",
        "@acme/core",
        dependencies={"lodash": "^4.17.0"},
        dev_dependencies={"typescript": "~5.4.0"},
    )
    write_package_json(
        tmp_path / "apps" / "app",
        "@acme/app",
        dependencies={"@acme/core": "^1.0.0", "react": "^18.2.0"},
    )
    path = tmp_path / "monorepo.yml"
    path.write_text(content)
    return path


@pytest.fixture
def config(repo: Path):
    return load_config(repo)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def provisioner() -> FakeProvisioner:
    return FakeProvisioner()


@pytest.fixture
def restore_root_logger():
    """Undo setup_logging(): drop the handlers it added and reset the root level."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
