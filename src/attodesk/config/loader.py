"""YAML config loader for attodesk.

Priority: explicit path > ``$ATTODESK_HOME/config.yaml`` > defaults, with
environment overrides applied last.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from attodesk.config.schema import (
    AgentServerConfig,
    DeskConfig,
    SpecialistsConfig,
    WorkspacesConfig,
)

logger = logging.getLogger(__name__)

HOME_ENV = "ATTODESK_HOME"
WORKSPACES_ROOT_ENV = "ATTODESK_WORKSPACES_ROOT"
AGENT_SERVER_PATH_ENV = "ATTODESK_AGENT_SERVER_PATH"
CONFIG_FILE = "config.yaml"


def get_home() -> Path:
    """Return the attodesk home directory (``~/.attodesk`` by default)."""
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".attodesk"


def load_config(path: str | Path | None = None) -> DeskConfig:
    load_dotenv()

    home = get_home()
    p = Path(path) if path is not None else home / CONFIG_FILE
    raw: Any = {}
    if p.exists():
        try:
            raw = yaml.safe_load(p.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            logger.warning("Ignoring malformed config %s: %s", p, exc)
            raw = {}
    if not isinstance(raw, dict):
        raw = {}

    workspaces_raw = raw.get("workspaces", {}) if isinstance(raw.get("workspaces"), dict) else {}
    server_raw = raw.get("agent_server", {}) if isinstance(raw.get("agent_server"), dict) else {}
    specialists_raw = (
        raw.get("specialists", {}) if isinstance(raw.get("specialists"), dict) else {}
    )

    workspaces = WorkspacesConfig(**_pick(workspaces_raw, WorkspacesConfig))
    agent_server = AgentServerConfig(**_pick(server_raw, AgentServerConfig))
    specialists = SpecialistsConfig(**_pick(specialists_raw, SpecialistsConfig))

    config = DeskConfig(
        version=int(raw.get("version", 1)),
        home=str(home),
        workspaces=workspaces,
        agent_server=agent_server,
        specialists=specialists,
    )
    _apply_env(config)
    _fill_defaults(config)
    return config


def workspaces_root(config: DeskConfig) -> Path:
    return Path(config.workspaces.root).expanduser()


def _apply_env(config: DeskConfig) -> None:
    root = os.environ.get(WORKSPACES_ROOT_ENV)
    if root:
        config.workspaces.root = root
    server_path = os.environ.get(AGENT_SERVER_PATH_ENV)
    if server_path:
        config.agent_server.binary_path = server_path


def _fill_defaults(config: DeskConfig) -> None:
    home = Path(config.home)
    if not config.workspaces.root:
        config.workspaces.root = str(home / "workspaces")
    if not config.specialists.user_dir:
        config.specialists.user_dir = str(home / "specialists")


def _pick(raw: dict[str, Any], model_type: type[Any]) -> dict[str, Any]:
    allowed = set(model_type.__dataclass_fields__.keys())
    return {k: v for k, v in raw.items() if k in allowed}
