from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from web3funnel.events import (
    DeviceInfo,
    EventRecord,
    EventType,
    PageInfo,
    TransactionInfo,
    TransactionStatus,
    WalletType,
)


@pytest.mark.unit
class TestEventRecord:
    def test_payload_uses_camel_case_and_skips_unset_fields(self):
        record = EventRecord(
            event_type=EventType.WALLET_CONNECT,
            user_id="user-1",
            session_id="session-1",
            timestamp=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
            wallet_address="0xabc",
            wallet_type=WalletType.METAMASK,
            device_info=DeviceInfo(browser="Chrome", browser_version="120"),
        )

        payload = record.to_payload()

        assert payload["eventType"] == "wallet_connect"
        assert payload["userId"] == "user-1"
        assert payload["sessionId"] == "session-1"
        assert payload["walletType"] == "metamask"
        assert payload["deviceInfo"] == {"browser": "Chrome", "browserVersion": "120"}
        assert payload["timestamp"].startswith("2024-05-01T12:30:00")
        assert "page" not in payload
        assert "customData" not in payload

    def test_timestamp_defaults_to_capture_time(self):
        before = datetime.now(timezone.utc)
        record = EventRecord(event_type="page_view", user_id="u", session_id="s")

        assert before <= record.timestamp <= datetime.now(timezone.utc)

    def test_accepts_camel_case_input_and_ignores_unknown_fields(self):
        record = EventRecord.model_validate({
            "eventType": "custom_event",
            "userId": "u",
            "sessionId": "s",
            "customData": {"eventName": "signup"},
            "somethingElse": 1,
        })

        assert record.event_type is EventType.CUSTOM_EVENT
        assert record.custom_data == {"eventName": "signup"}

    def test_rejects_unknown_event_type(self):
        with pytest.raises(ValidationError):
            EventRecord(event_type="scroll", user_id="u", session_id="s")


@pytest.mark.unit
class TestSubRecords:
    def test_transaction_sender_travels_as_from(self):
        transaction = TransactionInfo.model_validate({
            "hash": "0x01",
            "from": "0xsender",
            "gasUsed": "21000",
            "status": "success",
        })

        assert transaction.from_ == "0xsender"
        assert transaction.status is TransactionStatus.SUCCESS
        assert transaction.to_payload() == {
            "hash": "0x01",
            "from": "0xsender",
            "gasUsed": "21000",
            "status": "success",
        }

    def test_page_info_payload(self):
        page = PageInfo(url="https://dapp.example/swap", title="Swap", path="/swap")

        assert page.to_payload() == {
            "url": "https://dapp.example/swap",
            "title": "Swap",
            "path": "/swap",
        }

    def test_to_payload_include(self):
        page = PageInfo(url="https://dapp.example/", title="Home", path="/")

        assert page.to_payload(include={"title"}) == {"title": "Home"}
