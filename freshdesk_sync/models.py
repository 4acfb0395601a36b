"""Freshdesk API payloads: agents, roles, groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from freshdesk_sync.errors import DecodeError


def _require_object(data: Any, kind: str) -> dict:
    if not isinstance(data, dict):
        raise DecodeError(f"expected a JSON object for {kind}, got {type(data).__name__}")
    return data


def _require_id(data: dict, kind: str) -> int:
    value = data.get("id")
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise DecodeError(f"{kind} is missing an integer id: {value!r}")
    if value <= 0:
        raise DecodeError(f"{kind} id must be positive: {value}")
    return value


def _int_list(data: dict, key: str, kind: str) -> list[int]:
    values = data.get(key) or []
    if not isinstance(values, list) or not all(
        isinstance(v, int) and not isinstance(v, bool) for v in values
    ):
        raise DecodeError(f"{kind}.{key} must be a list of integers: {values!r}")
    return list(values)


@dataclass(frozen=True)
class Contact:
    name: str = ""
    email: str = ""
    active: bool = False
    job_title: str = ""
    language: str = ""
    mobile: str = ""
    phone: str = ""
    time_zone: str = ""

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Contact":
        data = _require_object(data or {}, "contact")
        return cls(
            name=data.get("name") or "",
            email=data.get("email") or "",
            active=bool(data.get("active", False)),
            job_title=data.get("job_title") or "",
            language=data.get("language") or "",
            mobile=data.get("mobile") or "",
            phone=data.get("phone") or "",
            time_zone=data.get("time_zone") or "",
        )


@dataclass(frozen=True)
class Agent:
    """A Freshdesk agent, the principal of the directory."""

    id: int
    contact: Contact = field(default_factory=Contact)
    role_ids: list[int] = field(default_factory=list)
    group_ids: list[int] = field(default_factory=list)
    skill_ids: list[int] = field(default_factory=list)
    type: str = ""
    occasional: bool = False
    available: bool = False
    ticket_scope: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Agent":
        data = _require_object(data, "agent")
        return cls(
            id=_require_id(data, "agent"),
            contact=Contact.from_dict(data.get("contact")),
            role_ids=_int_list(data, "role_ids", "agent"),
            group_ids=_int_list(data, "group_ids", "agent"),
            skill_ids=_int_list(data, "skill_ids", "agent"),
            type=data.get("type") or "",
            occasional=bool(data.get("occasional", False)),
            available=bool(data.get("available", False)),
            ticket_scope=data.get("ticket_scope") or 0,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass(frozen=True)
class Role:
    id: int
    name: str = ""
    description: str = ""
    default: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "Role":
        data = _require_object(data, "role")
        return cls(
            id=_require_id(data, "role"),
            name=data.get("name") or "",
            description=data.get("description") or "",
            default=bool(data.get("default", False)),
        )


@dataclass(frozen=True)
class Group:
    id: int
    name: str = ""
    description: str = ""
    agent_ids: list[int] = field(default_factory=list)
    escalate_to: Optional[int] = None
    unassigned_for: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Group":
        data = _require_object(data, "group")
        return cls(
            id=_require_id(data, "group"),
            name=data.get("name") or "",
            description=data.get("description") or "",
            agent_ids=_int_list(data, "agent_ids", "group"),
            escalate_to=data.get("escalate_to"),
            unassigned_for=data.get("unassigned_for"),
        )
