"""
Transmission Agent process - background service that watches a Transmission daemon.

The agent provides:
- Periodic status reconciliation (Active / Paused / Disconnected)
- User toggles of the daemon's global run state
- Automatic pause/resume when watched processes run
- IPC interface for CLI communication
"""

from transmission_agent.agent.agent import AgentError, TransmissionAgent
from transmission_agent.agent.controller import IntentController
from transmission_agent.agent.ipc import IPCClient, IPCError, IPCServer
from transmission_agent.agent.reconciler import Reconciler, Scheduler
from transmission_agent.agent.state import AgentState, StateManager

__all__ = [
    "AgentError",
    "AgentState",
    "IPCClient",
    "IPCError",
    "IPCServer",
    "IntentController",
    "Reconciler",
    "Scheduler",
    "StateManager",
    "TransmissionAgent",
]
