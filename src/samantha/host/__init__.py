"""Capability interfaces for the editor host and the chat panel."""

from .local import LocalWorkspaceHost
from .protocol import ActiveSelection, ChangeListener, OpenDocument, PanelHost, TextMatch, WorkspaceHost

__all__ = [
    "ActiveSelection",
    "ChangeListener",
    "LocalWorkspaceHost",
    "OpenDocument",
    "PanelHost",
    "TextMatch",
    "WorkspaceHost",
]
