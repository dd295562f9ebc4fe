"""
Message tags exchanged between platform automations and the background handler
"""


class MessageType:
    """String tags carried in the ``type`` field of every port message"""

    # Connection
    CONNECTION_ESTABLISHED = "CONNECTION_ESTABLISHED"
    KEEPALIVE = "KEEPALIVE"
    KEEPALIVE_RESPONSE = "KEEPALIVE_RESPONSE"

    # Search tab
    GET_SEARCH_TASK = "GET_SEARCH_TASK"
    SEARCH_TASK_DATA = "SEARCH_TASK_DATA"
    SEARCH_NEXT = "SEARCH_NEXT"
    SEARCH_NEXT_READY = "SEARCH_NEXT_READY"
    SEARCH_COMPLETED = "SEARCH_COMPLETED"
    SEARCH_TASK_DONE = "SEARCH_TASK_DONE"
    START_APPLICATION = "START_APPLICATION"

    # Apply tab
    GET_APPLICATION_TASK = "GET_APPLICATION_TASK"
    GET_SEND_CV_TASK = "GET_SEND_CV_TASK"
    APPLICATION_TASK_DATA = "APPLICATION_TASK_DATA"
    GET_PROFILE_DATA = "GET_PROFILE_DATA"
    PROFILE_DATA = "PROFILE_DATA"

    # Completion
    APPLICATION_SUCCESS = "APPLICATION_SUCCESS"
    APPLICATION_ERROR = "APPLICATION_ERROR"
    APPLICATION_SKIPPED = "APPLICATION_SKIPPED"
    APPLICATION_COMPLETED = "APPLICATION_COMPLETED"
    SEND_CV_TASK_DONE = "SEND_CV_TASK_DONE"
    SEND_CV_TASK_ERROR = "SEND_CV_TASK_ERROR"
    SEND_CV_TASK_SKIP = "SEND_CV_TASK_SKIP"

    # Status
    CHECK_APPLICATION_STATUS = "CHECK_APPLICATION_STATUS"
    APPLICATION_STATUS = "APPLICATION_STATUS"
    PROGRESS_UPDATE = "PROGRESS_UPDATE"
    DUPLICATE = "DUPLICATE"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"

    # Session control
    AUTOMATION_PAUSED = "AUTOMATION_PAUSED"
    AUTOMATION_RESUMED = "AUTOMATION_RESUMED"
    AUTOMATION_STOPPED = "AUTOMATION_STOPPED"
    AUTOMATION_COMPLETED = "AUTOMATION_COMPLETED"


SUCCESS_COMPLETIONS = {
    MessageType.APPLICATION_SUCCESS,
    MessageType.APPLICATION_COMPLETED,
    MessageType.SEND_CV_TASK_DONE,
}
ERROR_COMPLETIONS = {MessageType.APPLICATION_ERROR, MessageType.SEND_CV_TASK_ERROR}
SKIP_COMPLETIONS = {MessageType.APPLICATION_SKIPPED, MessageType.SEND_CV_TASK_SKIP}
COMPLETION_MESSAGES = SUCCESS_COMPLETIONS | ERROR_COMPLETIONS | SKIP_COMPLETIONS


def make_message(message_type: str, data=None, **extra) -> dict:
    """Build a port message: {"type": ..., "data": ...} plus any extra keys"""
    message = {"type": message_type}
    if data is not None:
        message["data"] = data
    message.update(extra)
    return message
