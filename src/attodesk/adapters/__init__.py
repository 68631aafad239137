"""Leaf adapters for external collaborators (processes, git, agents)."""

from attodesk.adapters.agents import AgentConversation, AgentHandle, AgentOptions, AgentReply
from attodesk.adapters.git import GitAdapter, GitResult
from attodesk.adapters.process import ProcessResult, ProcessRunner, SubprocessRunner

__all__ = [
    "AgentConversation",
    "AgentHandle",
    "AgentOptions",
    "AgentReply",
    "GitAdapter",
    "GitResult",
    "ProcessResult",
    "ProcessRunner",
    "SubprocessRunner",
]
