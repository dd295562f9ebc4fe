"""
Port messaging between platform automations and the background handler
"""

from shared.messaging.message_types import (
    COMPLETION_MESSAGES,
    ERROR_COMPLETIONS,
    SKIP_COMPLETIONS,
    SUCCESS_COMPLETIONS,
    MessageType,
    make_message,
)
from shared.messaging.port import MessageHub, Port, PortSender

__all__ = [
    "COMPLETION_MESSAGES",
    "ERROR_COMPLETIONS",
    "SKIP_COMPLETIONS",
    "SUCCESS_COMPLETIONS",
    "MessageHub",
    "MessageType",
    "Port",
    "PortSender",
    "make_message",
]
