"""Session persistence errors."""


class SessionError(Exception):
    """Base class for session errors."""


class SessionNotFoundError(SessionError):
    def __init__(self, session_id: str):
        super().__init__(f"session not found: {session_id}")
        self.session_id = session_id


class SessionMismatchError(SessionError):
    """Raised when a session is resumed under a different model or system prompt."""


class SessionLockedError(SessionError):
    def __init__(self, session_id: str):
        super().__init__(f"session {session_id} is already open by another runner")
        self.session_id = session_id
