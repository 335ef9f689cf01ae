"""JSON serialization for persisted session state.

The on-disk keys are stable; readers ignore keys they do not know.
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional

from llm.message_types import Message, ToolCallRequest

from .types import (
    RunConfig,
    SessionState,
    SessionStatus,
    ToolCallRecord,
    ToolCallResult,
)


def serialize_value(value: Any) -> Any:
    """Return ``value`` if it is JSON-serializable, otherwise its string form."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


def _dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def serialize_message(message: Message) -> Dict[str, Any]:
    """Serialize a Message to a JSON-serializable dict.

    Args:
        message: Message to serialize

    Returns:
        Serializable dict
    """
    result: Dict[str, Any] = {"role": message.role, "content": message.content}
    if message.tool_call is not None:
        result["tool_call"] = {
            "name": message.tool_call.name,
            "arguments": message.tool_call.arguments,
            "id": message.tool_call.id,
        }
    # Tool results are tied back to the call that produced them
    if message.tool_call_id:
        result["tool_call_id"] = message.tool_call_id
    if message.tool_name:
        result["name"] = message.tool_name
    return result


def deserialize_message(data: Dict[str, Any]) -> Message:
    """Deserialize a dict back to a Message.

    Args:
        data: Dict from serialize_message

    Returns:
        Message instance
    """
    tool_call = None
    if data.get("tool_call"):
        tc = data["tool_call"]
        tool_call = ToolCallRequest(
            name=tc.get("name", ""),
            arguments=tc.get("arguments", ""),
            id=tc.get("id", ""),
        )
    return Message(
        role=data["role"],
        content=data.get("content") or "",
        tool_call=tool_call,
        tool_call_id=data.get("tool_call_id"),
        tool_name=data.get("name"),
    )


def serialize_tool_call(record: ToolCallRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "timestamp": _dt(record.timestamp),
        "tool_name": record.tool_name,
        "parameters": serialize_value(record.parameters),
        "result": {
            "success": record.result.success,
            "data": serialize_value(record.result.data),
            "error": record.result.error,
        },
        "duration": record.duration,
        "success": record.success,
        "error": record.error,
        "iteration": record.iteration,
        "metadata": serialize_value(record.metadata),
    }


def deserialize_tool_call(data: Dict[str, Any]) -> ToolCallRecord:
    result = data.get("result") or {}
    return ToolCallRecord(
        id=data["id"],
        timestamp=_parse_dt(data["timestamp"]),
        tool_name=data["tool_name"],
        parameters=data.get("parameters") or {},
        result=ToolCallResult(
            success=result.get("success", False),
            data=result.get("data"),
            error=result.get("error", ""),
        ),
        duration=data.get("duration", 0.0),
        success=data.get("success", False),
        error=data.get("error", ""),
        iteration=data.get("iteration", 0),
        metadata=data.get("metadata") or {},
    )


def serialize_session(session: SessionState) -> Dict[str, Any]:
    return {
        "session_id": session.session_id,
        "start_time": _dt(session.start_time),
        "end_time": _dt(session.end_time),
        "system_prompt": session.system_prompt,
        "model": session.model,
        "config": session.config.to_dict(),
        "messages": [serialize_message(m) for m in session.messages],
        "tool_calls": [serialize_tool_call(r) for r in session.tool_calls],
        "current_state": session.current_state.value,
        "metadata": serialize_value(session.metadata),
        "workspace_root": session.workspace_root,
        "command": session.command,
    }


def deserialize_session(data: Dict[str, Any]) -> SessionState:
    return SessionState(
        session_id=data["session_id"],
        start_time=_parse_dt(data["start_time"]),
        end_time=_parse_dt(data.get("end_time")),
        system_prompt=data.get("system_prompt", ""),
        model=data.get("model", ""),
        config=RunConfig.from_dict(data.get("config") or {}),
        messages=[deserialize_message(m) for m in data.get("messages") or []],
        tool_calls=[deserialize_tool_call(r) for r in data.get("tool_calls") or []],
        current_state=SessionStatus(data.get("current_state", SessionStatus.RUNNING.value)),
        metadata=data.get("metadata") or {},
        workspace_root=data.get("workspace_root", ""),
        command=data.get("command", ""),
    )
