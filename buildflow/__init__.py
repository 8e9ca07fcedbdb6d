# buildflow/__init__.py
"""
Buildflow - orchestration core of the build agent.

Decodes the model's event stream, runs tools against the draft file system,
loops until the agent finishes, and supervises plan approval, continuation
and auto-validation.
"""

from .core.continuation import ContinuationSupervisor
from .core.decoder import EventStreamDecoder, decode_stream
from .core.exceptions import (
    BuildflowError, ModelAuthError, ModelBackendError, ModelUnavailableError,
    NoPendingPlanError, SessionBusyError, SessionClosedError,
)
from .core.models import OutcomeStatus, TaskStatus, TurnOutcome, TurnState
from .core.state import NoticeChannel, TurnView
from .core.tools import TOOL_CATALOG, ToolExecutor
from .core.turn_loop import ConversationOrchestrator
from .core.validation import AutoValidationSupervisor

__all__ = [
    'ContinuationSupervisor', 'EventStreamDecoder', 'decode_stream',
    'BuildflowError', 'ModelAuthError', 'ModelBackendError', 'ModelUnavailableError',
    'NoPendingPlanError', 'SessionBusyError', 'SessionClosedError',
    'OutcomeStatus', 'TaskStatus', 'TurnOutcome', 'TurnState',
    'NoticeChannel', 'TurnView', 'TOOL_CATALOG', 'ToolExecutor',
    'ConversationOrchestrator', 'AutoValidationSupervisor',
]
