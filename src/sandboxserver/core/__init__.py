"""
Transport layer: sockets, connections and the worker pool.

    SocketServer      bind + accept loop
    Connection        one client socket, reads a whole request
    RequestAssembler  header/body accumulation state machine
    ThreadPool        bounded workers; a full pool rejects new connections
    ServerAddress     what start() reports (BIND_FAILED on error)
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .assembler import RequestAssembler, AssemblyState
from .thread_pool import ThreadPool
from .netinfo import ServerAddress, BIND_FAILED

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestAssembler",
    "AssemblyState",
    "ThreadPool",
    "ServerAddress",
    "BIND_FAILED",
]
