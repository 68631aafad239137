"""Configuration schema for attodesk YAML files."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class WorkspacesConfig:
    root: str = ""  # empty = <home>/workspaces
    state_dir: str = ".workspace"
    branch_prefix: str = "attodesk/"
    default_base_ref: str = "main"
    setup_timeout_seconds: float = 120.0


@dataclass(slots=True)
class AgentServerConfig:
    binary: str = "opencode"
    binary_path: str = ""  # explicit path wins over PATH lookup
    args: list[str] = field(
        default_factory=lambda: ["serve", "--hostname={host}", "--port={port}"]
    )
    host: str = "127.0.0.1"
    port_start: int = 4096
    port_end: int = 65535
    ready_timeout_seconds: float = 15.0
    terminate_timeout_seconds: float = 5.0
    config_dir_env: str = "OPENCODE_CONFIG_DIR"


@dataclass(slots=True)
class SpecialistsConfig:
    builtin_dir: str = ""
    user_dir: str = ""  # empty = <home>/specialists


@dataclass(slots=True)
class DeskConfig:
    version: int = 1
    home: str = ""
    workspaces: WorkspacesConfig = field(default_factory=WorkspacesConfig)
    agent_server: AgentServerConfig = field(default_factory=AgentServerConfig)
    specialists: SpecialistsConfig = field(default_factory=SpecialistsConfig)
