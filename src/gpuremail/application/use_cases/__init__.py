"""Gateway operations, each run inside one request-scoped mail session."""

from gpuremail.application.use_cases.compose_message import build_mime, compose
from gpuremail.application.use_cases.get_message import get_message
from gpuremail.application.use_cases.list_messages import ListMessagesUseCase, list_messages, paginate
from gpuremail.application.use_cases.mutate_message import delete_message, set_flag

__all__ = [
    "ListMessagesUseCase",
    "list_messages",
    "paginate",
    "get_message",
    "set_flag",
    "delete_message",
    "compose",
    "build_mime",
]
