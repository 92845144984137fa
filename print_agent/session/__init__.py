"""
Backend session protocol: wire messages and the per-printer reconnecting client.
"""

from .messages import Job, MessageType, SessionMessage, jobs_from_payload

__all__ = ["Job", "MessageType", "SessionMessage", "jobs_from_payload"]
