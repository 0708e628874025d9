"""Application tests for notification dispatch."""

from storefront.notifications.dispatch import send_email, send_sms
from storefront.order.order import OrderStatus


class TestChannelHelpers:
    def test_send_email_records_message(self, email):
        assert send_email("Test", "cust-001", "Hello", "Body") is True
        assert email.sent_emails[0]["to"] == "cust-001"
        assert email.sent_emails[0]["subject"] == "Hello"

    def test_failed_delivery_reported_not_raised(self, email, sms):
        email.configure(should_succeed=False)
        sms.configure(should_succeed=False)
        assert send_email("Test", "cust-001", "Hello", "Body") is False
        assert send_sms("Test", "+15550100", "Body") is False

    def test_adapter_exception_is_contained(self, email, monkeypatch):
        def explode(**kwargs):
            raise ConnectionError("SMTP down")

        monkeypatch.setattr(email, "send", explode)
        assert send_email("Test", "cust-001", "Hello", "Body") is False


class TestEventDrivenMessages:
    def test_low_stock_alert_goes_to_operations(self, stocked_shop, email, monkeypatch):
        monkeypatch.setenv("OPERATIONS_EMAIL", "ops@example.com")
        stocked_shop.place_order(lines=(("prod-001", "store-001", 6),))

        alerts = [e for e in email.sent_emails if e["subject"] == "Low stock: SKU-001"]
        assert len(alerts) == 1
        assert alerts[0]["to"] == "ops@example.com"
        assert "down to 4" in alerts[0]["body"]

    def test_no_alert_above_threshold(self, stocked_shop, email):
        stocked_shop.place_order(lines=(("prod-001", "store-001", 2),))
        assert not any(subject.startswith("Low stock") for subject in email.subjects())

    def test_no_sms_without_phone(self, stocked_shop, sms):
        placed = stocked_shop.place_order()
        stocked_shop.pay(placed)
        stocked_shop.advance(placed["order_id"], "packed", "shipped")
        assert sms.sent_messages == []

    def test_delivery_prompts_review_request(self, stocked_shop, email):
        placed = stocked_shop.place_order()
        stocked_shop.pay(placed)
        stocked_shop.advance(placed["order_id"], "packed", "shipped", "delivered")
        assert f"How was order {placed['order_number']}?" in email.subjects()

    def test_channel_outage_does_not_fail_the_order(self, stocked_shop, email):
        email.configure(should_succeed=False)
        placed = stocked_shop.place_order()

        assert stocked_shop.order(placed["order_id"]).status == OrderStatus.PENDING.value
        assert email.sent_emails == []
