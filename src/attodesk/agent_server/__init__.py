"""Per-workspace agent server processes."""

from attodesk.agent_server.manager import AgentServerManager, ServerRegistry, ServerStatus
from attodesk.agent_server.ports import PortAllocator, is_pid_alive, is_port_available
from attodesk.agent_server.readiness import extract_ready_url, wait_for_ready

__all__ = [
    "AgentServerManager",
    "PortAllocator",
    "ServerRegistry",
    "ServerStatus",
    "extract_ready_url",
    "is_pid_alive",
    "is_port_available",
    "wait_for_ready",
]
