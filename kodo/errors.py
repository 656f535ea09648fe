class KodoError(Exception):
    """Base class for errors raised by kodo itself."""


class TaskSetupError(KodoError):
    """A task could not be prepared; raised before any model call or log write."""


class ModelResolutionError(TaskSetupError):
    pass


class ToolResolutionError(TaskSetupError):
    pass


class PromptError(TaskSetupError):
    pass


class UnknownMessageError(TaskSetupError):
    def __init__(self, uuid: str):
        super().__init__(f"Message {uuid} is not part of this session's history")
        self.uuid = uuid


class UnknownSessionError(KodoError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InvalidApprovalModeError(KodoError):
    def __init__(self, mode: str):
        super().__init__(f"Approval mode '{mode}' cannot be set as a session override")
        self.mode = mode
