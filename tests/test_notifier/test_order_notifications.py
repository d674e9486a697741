"""
Tests for the order notification dispatcher.

These tests verify the full "new order -> admin's devices" flow:
1. Every short-circuit sends nothing and writes nothing
2. The payload names the order and its total
3. Only permanently dead tokens are pruned
4. Redelivery and concurrent invocations leave a consistent token set
"""

import pytest

from notifier.event_bus import EventBus
from notifier.events import EventTypes, order_created
from notifier.order_notifications import (
    DispatchStatus,
    OrderNotificationDispatcher,
)
from shared.channels import (
    INTERNAL_ERROR,
    INVALID_REGISTRATION_TOKEN,
    REGISTRATION_TOKEN_NOT_REGISTERED,
    SERVER_UNAVAILABLE,
    PushChannel,
    PushChannelError,
)
from shared.config import Settings
from shared.data_store import DataStore
from shared.models import FcmSettings, Order, UserProfile, UserRecord


ORDER_DATA = {"totalPrice": 1234.5, "shippingInfo": {"name": "Ayesha Khan", "email": "a@example.com"}}


class RecordingStore(DataStore):
    """DataStore that counts token writes."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.token_writes: list[tuple[str, list[str]]] = []

    def remove_tokens(self, uid, tokens):
        tokens = list(tokens)
        self.token_writes.append((uid, tokens))
        super().remove_tokens(uid, tokens)


@pytest.fixture
def store(data_dir) -> RecordingStore:
    return RecordingStore(data_dir=data_dir)


@pytest.fixture
def dispatcher(event_bus, store, push_channel, settings) -> OrderNotificationDispatcher:
    return OrderNotificationDispatcher(
        event_bus=event_bus,
        data_store=store,
        push_channel=push_channel,
        settings=settings,
    )


def set_admin_settings(store: DataStore, uid: str, enabled: bool, tokens) -> None:
    store.put_profile(UserProfile(
        uid=uid,
        fcm_settings=FcmSettings(notifications_enabled=enabled, tokens=tokens),
    ))


class TestShortCircuits:
    """Each expected "nothing to do" case sends nothing and writes nothing."""

    def test_admin_not_found(self, store, push_channel, event_bus):
        dispatcher = OrderNotificationDispatcher(
            event_bus=event_bus,
            data_store=store,
            push_channel=push_channel,
            settings=Settings(admin_email="nobody@storefront.example"),
        )

        outcome = dispatcher.dispatch("order-123", ORDER_DATA)

        assert outcome.status == DispatchStatus.ADMIN_NOT_FOUND
        assert push_channel.get_sent_count() == 0
        assert store.token_writes == []

    def test_profile_not_found(self, store, push_channel, event_bus, profileless_uid):
        dispatcher = OrderNotificationDispatcher(
            event_bus=event_bus,
            data_store=store,
            push_channel=push_channel,
            settings=Settings(admin_email="bilal.ahmed@example.com"),
        )

        outcome = dispatcher.dispatch("order-123", ORDER_DATA)

        assert outcome.status == DispatchStatus.PROFILE_NOT_FOUND
        assert push_channel.get_sent_count() == 0
        assert store.token_writes == []

    def test_notifications_disabled(self, dispatcher, store, push_channel, admin_uid):
        set_admin_settings(store, admin_uid, enabled=False, tokens=["token-a"])

        outcome = dispatcher.dispatch("order-123", ORDER_DATA)

        assert outcome.status == DispatchStatus.NOTIFICATIONS_DISABLED
        assert push_channel.get_sent_count() == 0
        assert store.token_writes == []

    def test_empty_tokens(self, dispatcher, store, push_channel, admin_uid):
        set_admin_settings(store, admin_uid, enabled=True, tokens=[])

        outcome = dispatcher.dispatch("order-123", ORDER_DATA)

        assert outcome.status == DispatchStatus.NO_TOKENS
        assert push_channel.get_sent_count() == 0
        assert store.token_writes == []

    def test_missing_tokens_field(self, dispatcher, store, push_channel, admin_uid):
        store.put_profile(UserProfile.model_validate({
            "uid": admin_uid,
            "fcmSettings": {"notificationsEnabled": True, "tokens": None},
        }))

        outcome = dispatcher.dispatch("order-123", ORDER_DATA)

        assert outcome.status == DispatchStatus.NO_TOKENS
        assert push_channel.get_sent_count() == 0

    def test_profile_without_fcm_settings_is_disabled(self, dispatcher, store, push_channel, admin_uid):
        store.put_profile(UserProfile.model_validate({"uid": admin_uid}))

        outcome = dispatcher.dispatch("order-123", ORDER_DATA)

        assert outcome.status == DispatchStatus.NOTIFICATIONS_DISABLED
        assert push_channel.get_sent_count() == 0


class TestPayload:
    """Tests for the notification content."""

    def test_body_truncates_id_and_formats_price(self, dispatcher, push_channel):
        outcome = dispatcher.dispatch("abcdef1234567890", {"totalPrice": 1234.5})

        assert outcome.status == DispatchStatus.SENT
        message = push_channel.last_batch().message
        assert message.title == "New Order Received!"
        assert message.body == "Order #abcdef12 for PKR 1234.50 has been placed."

    def test_order_id_attached_for_deep_linking(self, dispatcher, push_channel, settings):
        dispatcher.dispatch("abcdef1234567890", ORDER_DATA)

        message = push_channel.last_batch().message
        assert message.data == {"orderId": "abcdef1234567890"}
        assert message.link == settings.notification_link

    def test_short_order_id_is_used_whole(self, dispatcher, push_channel):
        dispatcher.dispatch("abc", {"totalPrice": 5})

        assert push_channel.last_batch().message.body == "Order #abc for PKR 5.00 has been placed."

    def test_currency_comes_from_settings(self, store, push_channel, event_bus, admin_email):
        dispatcher = OrderNotificationDispatcher(
            event_bus=event_bus,
            data_store=store,
            push_channel=push_channel,
            settings=Settings(admin_email=admin_email, currency="USD"),
        )

        dispatcher.dispatch("abcdef1234567890", {"totalPrice": 19.999})

        assert push_channel.last_batch().message.body == "Order #abcdef12 for USD 20.00 has been placed."

    def test_single_multicast_to_all_tokens(self, dispatcher, push_channel, admin_tokens):
        dispatcher.dispatch("order-123", ORDER_DATA)

        assert push_channel.get_sent_count() == 1
        assert sorted(push_channel.last_batch().tokens) == sorted(admin_tokens)


class TestPruning:
    """Only permanently dead tokens leave the registry."""

    def test_prunes_invalid_and_unregistered_keeps_transient(
        self, dispatcher, store, push_channel, admin_uid
    ):
        set_admin_settings(store, admin_uid, enabled=True, tokens=["A", "B", "C"])
        push_channel.fail_token("A", INVALID_REGISTRATION_TOKEN)
        push_channel.fail_token("B", REGISTRATION_TOKEN_NOT_REGISTERED)
        push_channel.fail_token("C", INTERNAL_ERROR)

        outcome = dispatcher.dispatch("order-123", ORDER_DATA)

        assert outcome.status == DispatchStatus.SENT
        assert outcome.failure_count == 3
        assert outcome.pruned_tokens == ["A", "B"]
        assert store.get_profile(admin_uid).fcm_settings.tokens == ["C"]

    def test_prune_is_a_single_write(self, dispatcher, store, push_channel, admin_uid):
        set_admin_settings(store, admin_uid, enabled=True, tokens=["A", "B", "C"])
        push_channel.fail_token("A", INVALID_REGISTRATION_TOKEN)
        push_channel.fail_token("C", REGISTRATION_TOKEN_NOT_REGISTERED)

        dispatcher.dispatch("order-123", ORDER_DATA)

        assert store.token_writes == [(admin_uid, ["A", "C"])]

    def test_no_write_when_every_send_succeeds(self, dispatcher, store, push_channel, admin_tokens):
        outcome = dispatcher.dispatch("order-123", ORDER_DATA)

        assert outcome.success_count == len(admin_tokens)
        assert outcome.pruned_tokens == []
        assert store.token_writes == []

    def test_no_write_when_only_transient_failures(self, dispatcher, store, push_channel, admin_uid):
        set_admin_settings(store, admin_uid, enabled=True, tokens=["A", "B"])
        push_channel.fail_token("A", SERVER_UNAVAILABLE)

        outcome = dispatcher.dispatch("order-123", ORDER_DATA)

        assert outcome.failure_count == 1
        assert store.token_writes == []
        assert store.get_profile(admin_uid).fcm_settings.tokens == ["A", "B"]

    def test_flag_untouched_by_prune(self, dispatcher, store, push_channel, admin_uid):
        set_admin_settings(store, admin_uid, enabled=True, tokens=["A", "B"])
        push_channel.fail_token("A", INVALID_REGISTRATION_TOKEN)

        dispatcher.dispatch("order-123", ORDER_DATA)

        assert store.get_profile(admin_uid).fcm_settings.notifications_enabled is True


class TestRedelivery:
    """Running twice for the same order is safe."""

    def test_second_run_sends_again_and_converges(self, dispatcher, store, push_channel, admin_uid):
        set_admin_settings(store, admin_uid, enabled=True, tokens=["A", "B"])
        push_channel.fail_token("A", INVALID_REGISTRATION_TOKEN)

        dispatcher.dispatch("order-123", ORDER_DATA)
        after_first = store.get_profile(admin_uid).fcm_settings.tokens
        dispatcher.dispatch("order-123", ORDER_DATA)
        after_second = store.get_profile(admin_uid).fcm_settings.tokens

        assert after_first == after_second == ["B"]
        assert push_channel.get_sent_count() == 2

    def test_rerun_with_unchanged_profile(self, dispatcher, store, push_channel, admin_uid):
        set_admin_settings(store, admin_uid, enabled=True, tokens=["A", "B"])

        dispatcher.dispatch("order-123", ORDER_DATA)
        dispatcher.dispatch("order-123", ORDER_DATA)

        assert store.get_profile(admin_uid).fcm_settings.tokens == ["A", "B"]
        assert push_channel.get_sent_count() == 2
        assert store.token_writes == []


class SnapshotStore(DataStore):
    """Serves a scripted profile snapshot while writes hit the shared store."""

    def __init__(self, shared: DataStore, snapshot_tokens: list[str]):
        super().__init__(data_dir=shared.data_dir)
        self.shared = shared
        self.snapshot_tokens = snapshot_tokens

    def get_user_by_email(self, email):
        return self.shared.get_user_by_email(email)

    def get_profile(self, uid):
        return UserProfile(
            uid=uid,
            fcm_settings=FcmSettings(notifications_enabled=True, tokens=self.snapshot_tokens),
        )

    def remove_tokens(self, uid, tokens):
        self.shared.remove_tokens(uid, tokens)


class TestConcurrentPrunes:
    """Interleaved prunes from different invocations commute."""

    @pytest.mark.parametrize("first", ["one", "two"])
    def test_final_set_independent_of_write_order(self, data_dir, settings, admin_uid, first):
        shared = DataStore(data_dir=data_dir)
        set_admin_settings(shared, admin_uid, enabled=True, tokens=["A", "B", "C"])

        one = OrderNotificationDispatcher(
            event_bus=EventBus(),
            data_store=SnapshotStore(shared, ["A", "B"]),
            push_channel=PushChannel(token_errors={"A": INVALID_REGISTRATION_TOKEN}),
            settings=settings,
        )
        two = OrderNotificationDispatcher(
            event_bus=EventBus(),
            data_store=SnapshotStore(shared, ["B", "C"]),
            push_channel=PushChannel(token_errors={"C": REGISTRATION_TOKEN_NOT_REGISTERED}),
            settings=settings,
        )

        order = [one, two] if first == "one" else [two, one]
        for dispatcher in order:
            dispatcher.dispatch("order-123", ORDER_DATA)

        assert shared.get_profile(admin_uid).fcm_settings.tokens == ["B"]


class TestFailures:
    """Exceptions are logged and swallowed."""

    def test_provider_outage_is_swallowed(self, store, event_bus, settings, admin_uid, admin_tokens):
        push = PushChannel(fail_with=PushChannelError("503 Service Unavailable"))
        dispatcher = OrderNotificationDispatcher(
            event_bus=event_bus, data_store=store, push_channel=push, settings=settings,
        )

        outcome = dispatcher.dispatch("order-123", ORDER_DATA)

        assert outcome.status == DispatchStatus.FAILED
        assert "503" in outcome.error
        assert store.token_writes == []
        assert store.get_profile(admin_uid).fcm_settings.tokens == admin_tokens

    def test_lookup_error_is_swallowed(self, dispatcher, store, push_channel, monkeypatch):
        def boom(email):
            raise ConnectionError("identity service unreachable")

        monkeypatch.setattr(store, "get_user_by_email", boom)

        outcome = dispatcher.dispatch("order-123", ORDER_DATA)

        assert outcome.status == DispatchStatus.FAILED
        assert push_channel.get_sent_count() == 0

    def test_failure_logged_with_order_id(self, store, event_bus, settings, caplog):
        push = PushChannel(fail_with=PushChannelError("quota exceeded"))
        dispatcher = OrderNotificationDispatcher(
            event_bus=event_bus, data_store=store, push_channel=push, settings=settings,
        )

        import logging
        with caplog.at_level(logging.ERROR, logger="order_notifications"):
            dispatcher.dispatch("order-xyz-42", ORDER_DATA)

        assert any("order-xyz-42" in record.getMessage() for record in caplog.records)

    @pytest.mark.parametrize("order_data", [
        {"totalPrice": 1234.5, "shippingInfo": {"name": "Guest"}},
        {"totalPrice": 1234.5, "shippingInfo": None},
        {"totalPrice": 1234.5, "items": [{"name": "Gift card", "quantity": 0}]},
        {"totalPrice": 1234.5, "status": "Unknown", "createdAt": "yesterday"},
    ])
    def test_incomplete_order_document_still_notifies(self, dispatcher, push_channel, order_data):
        outcome = dispatcher.dispatch("abcdef1234567890", order_data)

        assert outcome.status == DispatchStatus.SENT
        assert push_channel.last_batch().message.body == "Order #abcdef12 for PKR 1234.50 has been placed."

    def test_malformed_order_data_is_swallowed(self, dispatcher, push_channel):
        outcome = dispatcher.dispatch("order-123", {"shippingInfo": {"name": "No Total"}})

        assert outcome.status == DispatchStatus.FAILED
        assert push_channel.get_sent_count() == 0


class TestTriggerSubscription:
    """The dispatcher runs off OrderCreated events."""

    def test_started_dispatcher_handles_order_created(
        self, dispatcher, event_bus, store, push_channel, shipped_order_id
    ):
        dispatcher.start()
        order = store.get_order(shipped_order_id)

        event_bus.publish(order_created(order))

        assert push_channel.get_sent_count() == 1
        assert "PKR 17998.00" in push_channel.last_batch().message.body
        dispatcher.stop()

    def test_not_started_receives_nothing(self, dispatcher, event_bus, push_channel):
        event_bus.publish(order_created(Order(id="order-123", total_price=10)))

        assert push_channel.get_sent_count() == 0

    def test_stop_unsubscribes(self, dispatcher, event_bus, push_channel):
        dispatcher.start()
        dispatcher.start()
        assert event_bus.get_subscriber_count(EventTypes.ORDER_CREATED) == 1
        dispatcher.stop()
        assert event_bus.get_subscriber_count(EventTypes.ORDER_CREATED) == 0

        event_bus.publish(order_created(Order(id="order-123", total_price=10)))

        assert push_channel.get_sent_count() == 0

    def test_failed_dispatch_does_not_trigger_redelivery(self, store, settings):
        bus = EventBus(max_deliveries=3)
        push = PushChannel(fail_with=PushChannelError("boom"))
        dispatcher = OrderNotificationDispatcher(
            event_bus=bus, data_store=store, push_channel=push, settings=settings,
        )
        dispatcher.start()
        calls = []
        original = push.send_multicast

        def counting(tokens, message):
            calls.append(tokens)
            return original(tokens, message)

        push.send_multicast = counting

        bus.publish(order_created(Order(id="order-123", total_price=10)))

        assert len(calls) == 1
        assert bus.get_dead_letters() == []

    def test_admin_identity_is_injected(self, data_dir, event_bus, push_channel):
        store = DataStore(data_dir=data_dir)
        store.add_user(UserRecord(uid="other-admin", email="owner@elsewhere.example"))
        store.put_profile(UserProfile(
            uid="other-admin",
            fcm_settings=FcmSettings(notifications_enabled=True, tokens=["token-other"]),
        ))
        dispatcher = OrderNotificationDispatcher(
            event_bus=event_bus,
            data_store=store,
            push_channel=push_channel,
            settings=Settings(admin_email="owner@elsewhere.example"),
        )

        dispatcher.dispatch("order-123", ORDER_DATA)

        assert push_channel.last_batch().tokens == ["token-other"]
