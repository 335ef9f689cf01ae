"""File-backed session persistence.

Each session is one JSON document, ``session_<id>.json``, under
``<workspace>/.loopwright/sessions/``. Writes go to a temporary file that is
then renamed over the target, so a crash never leaves a half-written session.

A session may be open in at most one runner at a time. ``acquire`` takes an
exclusive lock file next to the session; a second acquire of the same id
raises ``SessionLockedError`` until the holder releases it.
"""

import asyncio
import json
import os
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncIterator, Dict, List, Optional

import aiofiles
import aiofiles.os

from llm.message_types import Message
from utils import get_logger
from utils.runtime import get_sessions_dir

from .errors import SessionError, SessionLockedError, SessionMismatchError, SessionNotFoundError
from .serialization import deserialize_session, serialize_session, serialize_tool_call
from .types import (
    RunConfig,
    SessionInfo,
    SessionState,
    SessionStatus,
    ToolCallRecord,
    utc_now,
)

logger = get_logger(__name__)

_PREFIX = "session_"
_SUFFIX = ".json"


class SessionManager:
    """Create, persist, load and clean up sessions for one workspace."""

    def __init__(self, workspace_root: str, sessions_dir: Optional[str] = None):
        """Initialize the manager.

        Args:
            workspace_root: Workspace the sessions belong to
            sessions_dir: Override for the sessions directory
                (default: <workspace>/.loopwright/sessions/)
        """
        self.workspace_root = os.path.abspath(workspace_root)
        self.sessions_dir = sessions_dir or get_sessions_dir(self.workspace_root)
        self._write_lock = asyncio.Lock()
        self._held: Dict[str, str] = {}  # session_id -> lock file path

    async def _ensure_dir(self) -> None:
        await aiofiles.os.makedirs(self.sessions_dir, exist_ok=True)

    def _session_path(self, session_id: str) -> str:
        return os.path.join(self.sessions_dir, f"{_PREFIX}{session_id}{_SUFFIX}")

    def _lock_path(self, session_id: str) -> str:
        return os.path.join(self.sessions_dir, f"{_PREFIX}{session_id}.lock")

    async def create_session(
        self,
        system_prompt: str,
        model: str,
        command: str,
        config: RunConfig,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SessionState:
        """Create and persist a new running session.

        Args:
            system_prompt: System prompt of the run
            model: Model identifier of the run
            command: Originating use case (plan, generate, review, chat)
            config: Run policy
            metadata: Optional free-form metadata

        Returns:
            The new SessionState
        """
        session = SessionState(
            session_id=str(uuid.uuid4()),
            start_time=utc_now(),
            system_prompt=system_prompt,
            model=model,
            config=config,
            command=command,
            workspace_root=self.workspace_root,
            metadata=dict(metadata or {}),
        )
        await self.save_session(session)
        logger.info(f"Created session {session.session_id} ({command}, {model})")
        return session

    async def save_session(self, session: SessionState) -> None:
        """Overwrite the session file with the full current state."""
        await self._ensure_dir()
        path = self._session_path(session.session_id)
        tmp_path = path + ".tmp"
        content = json.dumps(serialize_session(session), indent=2, ensure_ascii=False)

        # Write to a temp file, then rename over the target
        async with self._write_lock:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(content)
            await asyncio.to_thread(os.replace, tmp_path, path)

        logger.debug(
            f"Saved session {session.session_id}: {len(session.messages)} messages, "
            f"{len(session.tool_calls)} tool calls, state={session.current_state.value}"
        )

    async def load_session(self, session_id: str) -> SessionState:
        """Load a session from disk.

        Raises:
            SessionNotFoundError: If no file exists for the id
            SessionError: If the file cannot be parsed
        """
        path = self._session_path(session_id)
        if not await aiofiles.os.path.exists(path):
            raise SessionNotFoundError(session_id)

        async with aiofiles.open(path, encoding="utf-8") as f:
            raw = await f.read()
        try:
            return deserialize_session(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise SessionError(f"session {session_id} is unreadable: {e}") from e

    async def list_sessions(self) -> List[str]:
        """List session ids found in the sessions directory."""
        if not await aiofiles.os.path.isdir(self.sessions_dir):
            return []
        ids = [
            name[len(_PREFIX) : -len(_SUFFIX)]
            for name in await aiofiles.os.listdir(self.sessions_dir)
            if name.startswith(_PREFIX) and name.endswith(_SUFFIX)
        ]
        return sorted(ids)

    async def get_session_info(self, session_id: str) -> SessionInfo:
        session = await self.load_session(session_id)
        return SessionInfo(
            session_id=session.session_id,
            start_time=session.start_time,
            end_time=session.end_time,
            model=session.model,
            command=session.command,
            current_state=session.current_state,
            tool_calls=len(session.tool_calls),
            messages=len(session.messages),
        )

    async def delete_session(self, session_id: str) -> None:
        """Remove a session file.

        Raises:
            SessionNotFoundError: If no file exists for the id
            SessionLockedError: If the session is currently open
        """
        path = self._session_path(session_id)
        if not await aiofiles.os.path.exists(path):
            raise SessionNotFoundError(session_id)
        # A lock file from any process means the session is open somewhere
        if session_id in self._held or await aiofiles.os.path.exists(self._lock_path(session_id)):
            raise SessionLockedError(session_id)
        await aiofiles.os.remove(path)
        logger.info(f"Deleted session {session_id}")

    def add_message(self, session: SessionState, message: Message) -> None:
        session.messages.append(message)

    def add_tool_call(self, session: SessionState, record: ToolCallRecord) -> None:
        session.tool_calls.append(record)

    def update_session_state(self, session: SessionState, state: SessionStatus) -> None:
        """Transition a session; terminal states stamp ``end_time``, running clears it."""
        session.current_state = SessionStatus(state)
        if session.current_state.is_terminal:
            session.end_time = utc_now()
        elif session.current_state == SessionStatus.RUNNING:
            session.end_time = None

    async def pause_session(self, session: SessionState) -> None:
        self.update_session_state(session, SessionStatus.PAUSED)
        await self.save_session(session)
        logger.info(f"Paused session {session.session_id}")

    async def resume_session(self, session_id: str, model: str, system_prompt: str) -> SessionState:
        """Load a session for continuation under the given model and system prompt.

        A paused session is switched back to running under the session lock.

        Raises:
            SessionNotFoundError: If the session does not exist
            SessionMismatchError: If the model or system prompt differs from the session's
            SessionLockedError: If a paused session is open elsewhere
        """
        session = await self.load_session(session_id)
        if session.model != model:
            raise SessionMismatchError(
                f"session model ({session.model}) does not match current model ({model})"
            )
        if session.system_prompt != system_prompt:
            raise SessionMismatchError("session system prompt does not match current system prompt")

        if session.current_state == SessionStatus.PAUSED:
            self.update_session_state(session, SessionStatus.RUNNING)
            if session_id in self._held:
                await self.save_session(session)
            else:
                async with self.open_session(session_id):
                    await self.save_session(session)
        logger.info(f"Resumed session {session_id} with {len(session.messages)} messages")
        return session

    async def get_tool_call_history(self, session_id: str) -> List[ToolCallRecord]:
        session = await self.load_session(session_id)
        return list(session.tool_calls)

    async def get_message_history(self, session_id: str) -> List[Message]:
        session = await self.load_session(session_id)
        return list(session.messages)

    async def cleanup_old_sessions(self, max_age: timedelta) -> int:
        """Delete sessions that started before ``now - max_age``.

        Unreadable or open sessions are skipped.

        Returns:
            Number of sessions deleted
        """
        cutoff = utc_now() - max_age
        deleted = 0
        for session_id in await self.list_sessions():
            try:
                session = await self.load_session(session_id)
            except SessionError as e:
                logger.warning(f"Skipping session {session_id} during cleanup: {e}")
                continue
            if session.start_time >= cutoff:
                continue
            try:
                await self.delete_session(session_id)
            except SessionLockedError:
                logger.warning(f"Skipping open session {session_id} during cleanup")
                continue
            deleted += 1

        logger.info(f"Cleaned up {deleted} sessions older than {max_age}")
        return deleted

    async def export_session_to_jsonl(self, session_id: str, output_path: str) -> int:
        """Write each tool call record of a session as one JSON line.

        Returns:
            Number of records written
        """
        session = await self.load_session(session_id)
        parent = os.path.dirname(os.path.abspath(output_path))
        await aiofiles.os.makedirs(parent, exist_ok=True)

        async with aiofiles.open(output_path, "w", encoding="utf-8") as f:
            for record in session.tool_calls:
                await f.write(json.dumps(serialize_tool_call(record), ensure_ascii=False) + "\n")

        logger.info(
            f"Exported {len(session.tool_calls)} tool calls of session {session_id} to {output_path}"
        )
        return len(session.tool_calls)

    async def acquire(self, session_id: str) -> None:
        """Take the single-writer lock for a session.

        Raises:
            SessionLockedError: If the session is already open
        """
        if session_id in self._held:
            raise SessionLockedError(session_id)
        await self._ensure_dir()
        # O_EXCL creation is the only atomic step; run it off the event loop
        lock_path = self._lock_path(session_id)
        if not await asyncio.to_thread(_create_lock_file, lock_path):
            raise SessionLockedError(session_id)
        self._held[session_id] = lock_path
        logger.debug(f"Acquired lock for session {session_id}")

    async def release(self, session_id: str) -> None:
        lock_path = self._held.pop(session_id, None)
        if lock_path is None:
            return
        if await aiofiles.os.path.exists(lock_path):
            await aiofiles.os.remove(lock_path)
        logger.debug(f"Released lock for session {session_id}")

    @asynccontextmanager
    async def open_session(self, session_id: str) -> AsyncIterator[None]:
        """Hold the single-writer lock for a session for the duration of the block."""
        await self.acquire(session_id)
        try:
            yield
        finally:
            await self.release(session_id)


def _create_lock_file(lock_path: str) -> bool:
    """Atomically create a lock file holding our pid.

    A lock left behind by a process that no longer exists is taken over.
    """
    for _ in range(2):
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            if not _is_stale(lock_path):
                return False
            try:
                os.remove(lock_path)
            except FileNotFoundError:
                pass
            continue
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        return True
    return False


def _is_stale(lock_path: str) -> bool:
    try:
        with open(lock_path, encoding="utf-8") as f:
            pid = int(f.read().strip() or "0")
    except (OSError, ValueError):
        return False
    if pid <= 0 or pid == os.getpid():
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    except PermissionError:
        return False
    return False
