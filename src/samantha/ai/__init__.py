"""Completion client, action loop and controller wiring."""

from .client import ClientSettings, CompletionClient
from .controller import AssistantController
from .loop import AgentLoop, LoopOutcome, LoopState

__all__ = ["AgentLoop", "AssistantController", "ClientSettings", "CompletionClient", "LoopOutcome", "LoopState"]
