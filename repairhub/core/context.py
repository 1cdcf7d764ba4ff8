"""Identifiers of the active portal session and chat, carried into log records."""

from contextvars import ContextVar
from typing import Dict, Optional

_log_fields: ContextVar[Dict[str, Optional[str]]] = ContextVar("repairhub_log_fields", default={})


def current_log_fields() -> Dict[str, Optional[str]]:
    return _log_fields.get()


def bind_log_fields(session_id: Optional[str] = None, chat_id: Optional[str] = None) -> None:
    """Tag records logged from the current task with the session and/or chat id."""
    fields = dict(_log_fields.get())
    if session_id is not None:
        fields["session_id"] = session_id
    if chat_id is not None:
        fields["chat_id"] = chat_id
    _log_fields.set(fields)
