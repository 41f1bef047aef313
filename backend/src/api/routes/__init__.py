"""HTTP API route handlers."""

from . import admin, auth, files, folders, inbox, notes, rpc, todos

__all__ = ["admin", "auth", "files", "folders", "inbox", "notes", "rpc", "todos"]
