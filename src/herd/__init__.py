"""herd: one shell per cluster address, driven from a single control line."""

from .broadcast import BroadcastResult, broadcast
from .cluster import ClusterController, ClusterManager, ClusterState
from .config import Config, Defaults, ResolverConfig, load_config
from .control import Command, CommandKind, Data, Interpreter, Outcome, classify
from .endpoints import DigResolver, Endpoint, SocketResolver, parse_destination, resolve, resolve_all
from .errors import HerdError, ResolutionError, SpawnError
from .history import History, get_history
from .registry import SessionRegistry
from .session import Session, SessionStatus, spawn

__all__ = [
    "BroadcastResult",
    "broadcast",
    "ClusterController",
    "ClusterManager",
    "ClusterState",
    "Config",
    "Defaults",
    "ResolverConfig",
    "load_config",
    "Command",
    "CommandKind",
    "Data",
    "Interpreter",
    "Outcome",
    "classify",
    "DigResolver",
    "Endpoint",
    "SocketResolver",
    "parse_destination",
    "resolve",
    "resolve_all",
    "HerdError",
    "ResolutionError",
    "SpawnError",
    "History",
    "get_history",
    "SessionRegistry",
    "Session",
    "SessionStatus",
    "spawn",
]
