"""Shared fixtures for attodesk tests."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from attodesk.adapters.agents import AgentHandle, AgentOptions, AgentReply
from attodesk.adapters.process import ProcessResult
from attodesk.store.notes import NoteStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ("ATTODESK_WORKSPACES_ROOT", "ATTODESK_AGENT_SERVER_PATH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ATTODESK_HOME", str(tmp_path / "home"))


@pytest.fixture
def workspace_dir(tmp_path: Path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def notes(workspace_dir: Path) -> NoteStore:
    return NoteStore(workspace_dir)


@dataclass
class FakeConversation:
    """Records agent creation and messages instead of talking to a server."""

    created: list[AgentOptions] = field(default_factory=list)
    messages: list[tuple[str, str]] = field(default_factory=list)

    def create_agent(self, workspace_path: str, options: AgentOptions) -> AgentHandle:
        self.created.append(options)
        return AgentHandle(
            agent_id=f"agent-{len(self.created)}",
            label=options.label,
            model=options.model,
            specialist_id=options.specialist_id,
        )

    def send_message(self, workspace_path: str, agent_id: str, text: str) -> AgentReply:
        self.messages.append((agent_id, text))
        return AgentReply(agent_id=agent_id)


@pytest.fixture
def conversation() -> FakeConversation:
    return FakeConversation()


@dataclass
class FakeRunner:
    result: ProcessResult = field(default_factory=lambda: ProcessResult(output="ok\n", exit_code=0))
    calls: list[tuple[object, object, object]] = field(default_factory=list)

    def run(self, command, cwd=None, timeout=None):  # type: ignore[no-untyped-def]
        self.calls.append((command, cwd, timeout))
        return self.result


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


def _git(args: list[str], cwd: Path) -> None:
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A real repository with one commit on ``main``."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    repo = tmp_path / "repos" / "demo-app"
    repo.mkdir(parents=True)
    _git(["init", "-b", "main"], repo)
    _git(["config", "user.email", "dev@example.com"], repo)
    _git(["config", "user.name", "Dev"], repo)
    _git(["config", "commit.gpgsign", "false"], repo)
    (repo / "README.md").write_text("# demo\n", encoding="utf-8")
    _git(["add", "README.md"], repo)
    _git(["commit", "-m", "initial"], repo)
    return repo
