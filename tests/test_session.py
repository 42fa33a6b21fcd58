import pytest
from dataclasses import FrozenInstanceError

from saintvoice.session import CallSession, CustomerDetails, SessionSnapshot
from saintvoice.states import CallStatus


def test_new_session_starts_not_started():
    s = CallSession()
    assert s.status == CallStatus.NOT_STARTED
    assert s.operation_in_flight is False


def test_credentials_default_empty():
    s = CallSession()
    assert s.call_id == ""
    assert s.access_token == ""
    assert s.sample_rate == 0
    assert s.has_credentials is False


def test_has_credentials_needs_both_token_and_call_id():
    s = CallSession(access_token="tok")
    assert s.has_credentials is False
    s.call_id = "call_1"
    assert s.has_credentials is True


def test_clear_credentials():
    s = CallSession(call_id="call_1", access_token="tok", sample_rate=16000)
    s.clear_credentials()
    assert s.call_id == ""
    assert s.access_token == ""
    assert s.sample_rate == 0


def test_snapshot_is_frozen_copy():
    s = CallSession(status=CallStatus.ACTIVE, call_id="call_1")
    s.transcript = [{"role": "agent", "content": "Welcome"}]
    snap = s.snapshot()
    assert isinstance(snap, SessionSnapshot)
    assert snap.status == CallStatus.ACTIVE
    assert snap.call_id == "call_1"
    assert snap.transcript == ({"role": "agent", "content": "Welcome"},)

    s.transcript = []
    assert len(snap.transcript) == 1
    with pytest.raises(FrozenInstanceError):
        snap.status = CallStatus.INACTIVE


def test_customer_details_dynamic_variables():
    details = CustomerDetails(
        name="Ada Lovelace",
        dob="1815-12-10",
        email="ada@example.com",
        shipping_address="12 St James's Square, London",
    )
    assert details.to_dynamic_variables() == {
        "member_name": "Ada Lovelace",
        "email": "ada@example.com",
        "DOB": "1815-12-10",
        "shippingAddress": "12 St James's Square, London",
    }


def test_empty_customer_details_still_send_all_keys():
    assert set(CustomerDetails().to_dynamic_variables()) == {
        "member_name", "email", "DOB", "shippingAddress",
    }


class TestSnapshotViews:
    def test_button_busy_while_operation_in_flight(self):
        assert SessionSnapshot(CallStatus.INACTIVE, True, "").button_busy is True
        assert SessionSnapshot(CallStatus.STOPPING, False, "").button_busy is True
        assert SessionSnapshot(CallStatus.ACTIVE, False, "call_1").button_busy is False

    def test_transcript_text_and_latest_agent_line(self):
        s = CallSession(status=CallStatus.ACTIVE)
        s.transcript = [
            {"role": "agent", "content": "Welcome"},
            {"role": "user", "content": "Hello"},
        ]
        snap = s.snapshot()
        assert snap.transcript_text == "Consultant: Welcome\nYou: Hello"
        assert snap.latest_agent_line == "Welcome"

    def test_empty_transcript_views(self):
        snap = CallSession().snapshot()
        assert snap.transcript_text == ""
        assert snap.latest_agent_line == ""
