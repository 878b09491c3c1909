"""
Converters between domain objects and the datastore wire format.

The datastore speaks snake_case (`user_id`, `created_at`, ...) all the way
down, including inside JSON columns. Internally, job parameters are kept in
camelCase (`userId`). The translation is total and reversible for keys that
are already canonical on their side: camelCase keys start with a lowercase
letter and contain no underscores; snake_case keys contain no uppercase
letters and no leading underscore.
"""

import re
from typing import Any, Dict, Optional

from dateutil import parser as dateparser

from jobpoller.domain import Job, JobKind, JobStatus, Message, MessageRole, User

_UPPER = re.compile(r"([A-Z])")
_UNDERSCORE_LOWER = re.compile(r"_([a-z])")


def _camel_key(key: str) -> str:
    return _UNDERSCORE_LOWER.sub(lambda m: m.group(1).upper(), key)


def _snake_key(key: str) -> str:
    return _UPPER.sub(
        lambda m: m.group(1).lower() if m.start() == 0 else "_" + m.group(1).lower(),
        key)


def _convert_keys(obj: Any, convert) -> Any:
    if isinstance(obj, list):
        return [_convert_keys(v, convert) for v in obj]
    if isinstance(obj, dict):
        return {
            (convert(k) if isinstance(k, str) else k): _convert_keys(v, convert)
            for k, v in obj.items()
        }
    return obj


def camel_to_snake(obj: Any) -> Any:
    """
    Recursively convert dict keys from camelCase to snake_case.

    Example:
        {"someKey": 1, "nested": {"moreData": 2}}
        => {"some_key": 1, "nested": {"more_data": 2}}
    """
    return _convert_keys(obj, _snake_key)


def snake_to_camel(obj: Any) -> Any:
    """Recursively convert dict keys from snake_case to camelCase."""
    return _convert_keys(obj, _camel_key)


def _encode_time(value) -> Optional[str]:
    return value.isoformat() if value else None


def _decode_time(value):
    return dateparser.isoparse(value) if value else None


def encode_job(job: Job) -> Dict[str, Any]:
    """Convert a Job to its wire (row) representation."""
    return {
        "id": job.id,
        "type": job.kind.value,
        "status": job.status.value,
        "parameters": camel_to_snake(job.parameters),
        "user_id": job.user_id,
        "schedule": job.schedule,
        "created_at": _encode_time(job.created_at),
    }


def decode_job(row: Dict[str, Any]) -> Job:
    """
    Convert a wire row to a Job.

    Raises:
        ValueError: If the row's status or type is not a known value
    """
    return Job(
        id=row["id"],
        kind=JobKind(row["type"]),
        status=JobStatus(row["status"]),
        parameters=snake_to_camel(row.get("parameters") or {}),
        user_id=row.get("user_id"),
        schedule=row.get("schedule"),
        created_at=_decode_time(row.get("created_at")),
    )


def encode_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "messaging_handle": user.messaging_handle,
        "display_name": user.display_name,
    }


def decode_user(row: Dict[str, Any]) -> User:
    return User(
        id=row["id"],
        messaging_handle=row.get("messaging_handle"),
        display_name=row.get("display_name"),
    )


def encode_message(message: Message) -> Dict[str, Any]:
    return {
        "id": message.id,
        "user_id": message.user_id,
        "role": message.role.value,
        "content": camel_to_snake(message.content),
        "created_at": _encode_time(message.created_at),
    }


def decode_message(row: Dict[str, Any]) -> Message:
    return Message(
        id=row["id"],
        user_id=row["user_id"],
        role=MessageRole(row["role"]),
        content=snake_to_camel(row.get("content") or []),
        created_at=_decode_time(row.get("created_at")),
    )
