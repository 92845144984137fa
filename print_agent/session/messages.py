from __future__ import annotations

"""
Wire contract between the agent and the backend session endpoint.

Every frame is one JSON object with a `type` and, depending on the type, an
`agent_key` (printer credential), an `order` (job payload, kept opaque
until dispatch), an `error` and a `job_id`. Unknown types decode fine so
newer backends can add messages without breaking older agents.
"""

import json
import logging
import time
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from print_agent.core.errors import MessageDecodeError

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    REGISTER = "register"
    REGISTERED = "registered"
    PING = "ping"
    PONG = "pong"
    PRINT_ORDER = "print_order"
    PRINTED = "printed"
    PRINT_FAILED = "print_failed"
    UNREGISTER = "unregister"


class SessionMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str
    credential: Optional[str] = Field(default=None, alias="agent_key")
    order: Optional[Any] = None
    error: Optional[str] = None
    job_id: Optional[str] = None
    timestamp: Optional[int] = None

    # Only `type` (and `order`, parsed later) matter on inbound frames; other
    # fields in an unexpected shape are dropped instead of failing the frame.
    @field_validator("credential", "error", "job_id", mode="before")
    @classmethod
    def _lenient_text(cls, v: Any) -> Optional[str]:
        if isinstance(v, bool) or not isinstance(v, (str, int, float)):
            return None
        return str(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _lenient_timestamp(cls, v: Any) -> Optional[int]:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        try:
            return int(v)
        except (OverflowError, ValueError):
            return None

    @property
    def kind(self) -> Optional[MessageType]:
        """The known message type, or None for types this agent does not understand."""
        try:
            return MessageType(self.type)
        except ValueError:
            return None

    def encode(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def decode(cls, frame: str | bytes) -> "SessionMessage":
        try:
            data = json.loads(frame)
        except (TypeError, ValueError) as e:
            raise MessageDecodeError(f"frame is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MessageDecodeError("frame is not a JSON object")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MessageDecodeError("frame does not match the message schema", {"errors": e.errors(include_url=False)}) from e

    # Constructors for the messages the agent sends

    @classmethod
    def registration(cls, credential: str) -> "SessionMessage":
        return cls(type=MessageType.REGISTER.value, credential=credential)

    @classmethod
    def pong(cls, credential: str) -> "SessionMessage":
        return cls(type=MessageType.PONG.value, credential=credential, timestamp=int(time.time() * 1000))

    @classmethod
    def printed(cls, credential: str, job_id: Optional[str] = None) -> "SessionMessage":
        return cls(type=MessageType.PRINTED.value, credential=credential, job_id=job_id)

    @classmethod
    def print_failed(cls, credential: str, error: str, job_id: Optional[str] = None) -> "SessionMessage":
        return cls(type=MessageType.PRINT_FAILED.value, credential=credential, error=error, job_id=job_id)


class Job(BaseModel):
    """
    One unit of printing work. Lives only for the duration of a dispatch.
    """

    model_config = ConfigDict(populate_by_name=True)

    job_id: Optional[str] = Field(default=None, alias="jobId")
    tenant_id: Optional[int] = Field(default=None, alias="tenantId")
    restaurant_id: Optional[int] = Field(default=None, alias="restaurantId")
    content: Any = None
    copies: int = 1
    category: Optional[str] = None
    template: Optional[str] = None

    @field_validator("job_id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return None if v is None else str(v)

    @field_validator("copies", mode="before")
    @classmethod
    def _at_least_one(cls, v: Any) -> int:
        try:
            return max(1, int(v))
        except (TypeError, ValueError):
            return 1

    @property
    def is_empty(self) -> bool:
        return self.content is None or (hasattr(self.content, "__len__") and len(self.content) == 0)


def _job_from_order(order: dict) -> Job:
    return Job(
        job_id=order.get("id"),
        tenant_id=order.get("tenantId"),
        restaurant_id=order.get("restaurantId"),
        content=order,
        copies=order.get("copies", 1),
        category=order.get("category"),
        template=order.get("template"),
    )


def jobs_from_payload(payload: Any) -> List[Job]:
    """
    Turn a print_order payload into jobs.

    Accepts the backend's order envelope
    ``{"success": true, "data": {"orders": [...]}}`` (one job per order), a
    job object (``{"jobId": ..., "content": ...}``) or a bare order object.
    An envelope without orders yields no jobs; orders inside an envelope
    that do not validate are skipped.

    Raises:
        MessageDecodeError if the payload matches none of these shapes.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise MessageDecodeError(f"order payload is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MessageDecodeError("order payload is not a JSON object")

    data = payload.get("data")
    if isinstance(data, dict) and "orders" in data:
        if not payload.get("success", True):
            return []
        orders = data.get("orders") or []
        if not isinstance(orders, list):
            raise MessageDecodeError("order envelope 'orders' is not a list")
        jobs = []
        for order in orders:
            if not isinstance(order, dict):
                continue
            try:
                jobs.append(_job_from_order(order))
            except ValidationError as e:
                logger.warning("Skipping invalid order %s: %s", order.get("id"), e.errors(include_url=False))
        return jobs

    try:
        if "content" in payload:
            return [Job.model_validate(payload)]
        return [_job_from_order(payload)]
    except ValidationError as e:
        raise MessageDecodeError("order payload is not a job", {"errors": e.errors(include_url=False)}) from e


__all__ = ["Job", "MessageType", "SessionMessage", "jobs_from_payload"]
