"""Tests для SessionIdentityProvider і LoggingNotifier."""

from unittest.mock import Mock

import pytest

from cryptodesk.infrastructure.identity import SessionIdentityProvider
from cryptodesk.infrastructure.notifications import LoggingNotifier, Notification


class TestSessionIdentityProvider:
    def test_login_logout_notify_transitions(self):
        # Arrange
        identity = SessionIdentityProvider()
        listener = Mock()
        identity.subscribe(listener)

        # Act
        identity.login("user-1")
        identity.login("user-2")
        identity.logout()

        # Assert
        assert [c.args for c in listener.call_args_list] == [
            (None, "user-1"),
            ("user-1", "user-2"),
            ("user-2", None),
        ]
        assert identity.current_user_id is None

    def test_same_user_is_not_a_transition(self):
        identity = SessionIdentityProvider("user-1")
        listener = Mock()
        identity.subscribe(listener)

        identity.login("user-1")

        listener.assert_not_called()

    def test_unsubscribe(self):
        identity = SessionIdentityProvider()
        listener = Mock()
        unsubscribe = identity.subscribe(listener)

        unsubscribe()
        unsubscribe()
        identity.login("user-1")

        listener.assert_not_called()

    def test_empty_user_id_rejected(self):
        with pytest.raises(ValueError):
            SessionIdentityProvider().login("")


class TestLoggingNotifier:
    def test_records_history(self):
        notifier = LoggingNotifier()

        notifier.success("Order Placed", "Your order has been submitted.")
        notifier.error("Order Failed", "Failed to place order. Please try again.")

        assert notifier.history == [
            Notification("success", "Order Placed", "Your order has been submitted."),
            Notification("error", "Order Failed", "Failed to place order. Please try again."),
        ]

    def test_history_is_bounded(self):
        notifier = LoggingNotifier(max_history=2)

        for i in range(5):
            notifier.success(f"t{i}", "m")

        assert [n.title for n in notifier.history] == ["t3", "t4"]
