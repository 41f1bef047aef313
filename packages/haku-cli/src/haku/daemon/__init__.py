"""
haku offline worker package.

The worker runs on localhost in front of the backend:
- server.py: FastAPI app forwarding requests and handling control messages
"""

from .server import WorkerState, create_app, run_server

__all__ = ["WorkerState", "create_app", "run_server"]
