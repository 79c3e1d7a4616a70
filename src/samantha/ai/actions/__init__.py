"""Action batch parsing and execution."""

from .executor import ActionExecutor, ExecutorSettings, truncate_for_tokens
from .models import Action, ActionBatch, ActionType
from .parser import extract_action_batch
from .web_search import DuckDuckGoHtmlProvider, SearchProvider, SearchResult

__all__ = [
    "Action",
    "ActionBatch",
    "ActionExecutor",
    "ActionType",
    "DuckDuckGoHtmlProvider",
    "ExecutorSettings",
    "SearchProvider",
    "SearchResult",
    "extract_action_batch",
    "truncate_for_tokens",
]
