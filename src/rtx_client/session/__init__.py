"""Session engine: state machine, prompt detection, dialogs and command execution."""
from .auth import Authenticator
from .prompt import PromptDetector, PromptKind, PromptMatch, PromptPattern
from .runner import Command, CommandRunner
from .state import InvalidTransition, SessionState, SessionStateMachine

__all__ = [
    "Authenticator",
    "Command",
    "CommandRunner",
    "InvalidTransition",
    "PromptDetector",
    "PromptKind",
    "PromptMatch",
    "PromptPattern",
    "SessionState",
    "SessionStateMachine",
]
