"""Agent conversation interface.

The core only depends on this contract; the transport that talks to the
agent server lives outside attodesk.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(slots=True)
class AgentOptions:
    label: str
    model: str | None = None
    specialist_id: str | None = None
    system_prompt: str | None = None


@dataclass(slots=True)
class AgentHandle:
    agent_id: str
    label: str
    model: str | None = None
    specialist_id: str | None = None


@dataclass(slots=True)
class AgentReply:
    agent_id: str
    text: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


class AgentConversation(Protocol):
    def create_agent(self, workspace_path: str, options: AgentOptions) -> AgentHandle: ...

    def send_message(self, workspace_path: str, agent_id: str, text: str) -> AgentReply: ...
