import json

import pytest

from print_agent.core.errors import MessageDecodeError
from print_agent.session.messages import Job, MessageType, SessionMessage, jobs_from_payload


def test_decode_known_and_unknown_types():
    msg = SessionMessage.decode('{"type": "print_order", "agent_key": "k", "order": {"content": "hi"}}')
    assert msg.kind is MessageType.PRINT_ORDER
    assert msg.credential == "k"
    assert msg.order == {"content": "hi"}

    other = SessionMessage.decode(b'{"type": "firmware_update"}')
    assert other.kind is None
    assert other.type == "firmware_update"


@pytest.mark.parametrize("frame", ["not json", "[1, 2]", '{"agent_key": "k"}', '{"type": 5}'])
def test_decode_rejects_malformed_frames(frame):
    with pytest.raises(MessageDecodeError):
        SessionMessage.decode(frame)


def test_outbound_messages_use_wire_names():
    reg = json.loads(SessionMessage.registration("cred").encode())
    assert reg == {"type": "register", "agent_key": "cred"}

    pong = json.loads(SessionMessage.pong("cred").encode())
    assert pong["type"] == "pong"
    assert pong["agent_key"] == "cred"
    assert isinstance(pong["timestamp"], int)

    failed = json.loads(SessionMessage.print_failed("cred", "paper out", job_id="42").encode())
    assert failed == {"type": "print_failed", "agent_key": "cred", "error": "paper out", "job_id": "42"}

    printed = json.loads(SessionMessage.printed("cred").encode())
    assert printed == {"type": "printed", "agent_key": "cred"}


def test_job_copies_are_clamped():
    assert Job(content="x", copies=0).copies == 1
    assert Job(content="x", copies=-3).copies == 1
    assert Job(content="x", copies="2").copies == 2
    assert Job(content="x", copies="lots").copies == 1
    assert Job.model_validate({"jobId": 17, "content": "x"}).job_id == "17"


def test_order_envelope_becomes_one_job_per_order():
    payload = {
        "success": True,
        "data": {
            "orders": [
                {"id": 101, "restaurantId": 3, "orderPlates": []},
                {"id": 102, "restaurantId": 3, "copies": 2},
                "garbage",
            ]
        },
    }
    jobs = jobs_from_payload(json.dumps(payload))
    assert [j.job_id for j in jobs] == ["101", "102"]
    assert jobs[0].restaurant_id == 3
    assert jobs[0].content["id"] == 101
    assert jobs[1].copies == 2


def test_unsuccessful_or_empty_envelope_yields_no_jobs():
    assert jobs_from_payload({"success": False, "data": {"orders": [{"id": 1}]}}) == []
    assert jobs_from_payload({"success": True, "data": {"orders": []}}) == []


def test_invalid_order_in_envelope_is_skipped():
    payload = {"success": True, "data": {"orders": [{"id": 1, "tenantId": "abc"}, {"id": 2}]}}
    assert [j.job_id for j in jobs_from_payload(payload)] == ["2"]


def test_job_object_and_bare_order_payloads():
    job = jobs_from_payload({"jobId": "j1", "content": "Hello", "copies": 3, "template": "custom.j2"})[0]
    assert (job.job_id, job.content, job.copies, job.template) == ("j1", "Hello", 3, "custom.j2")

    bare = jobs_from_payload({"id": 9, "notes": "no onions"})[0]
    assert bare.job_id == "9"
    assert bare.content == {"id": 9, "notes": "no onions"}


@pytest.mark.parametrize("payload", [None, "[]", "{oops", 42])
def test_unusable_payloads_raise(payload):
    with pytest.raises(MessageDecodeError):
        jobs_from_payload(payload)


@pytest.mark.parametrize(
    "frame",
    [
        '{"type": "ping", "timestamp": "2024-01-01T00:00:00Z"}',
        '{"type": "ping", "timestamp": 1712345678.5}',
        '{"type": "ping", "timestamp": {"ms": 1}, "job_id": [1], "error": {"code": 3}}',
    ],
)
def test_odd_optional_fields_do_not_make_a_frame_malformed(frame):
    msg = SessionMessage.decode(frame)
    assert msg.kind is MessageType.PING
    assert msg.job_id is None and msg.error is None
    assert msg.timestamp in (None, 1712345678)


def test_numeric_job_id_is_kept_as_text():
    assert SessionMessage.decode('{"type": "printed", "job_id": 42}').job_id == "42"
