"""
Unit tests for pipeline value types.

Tests cover:
- BalanceDelta.from_detail() lamport scaling, absolute value, empty lists
- AlertMessage.from_delta() text and explorer link
"""

from core.types import AlertMessage, BalanceDelta, TransactionDetail


class TestBalanceDelta:
    def test_scaled_to_sol(self) -> None:
        delta = BalanceDelta.from_detail(
            TransactionDetail("sig", (1_000_000_000,), (800_000_000,))
        )
        assert delta.amount == 0.2
        assert delta.pre_amount == 1.0
        assert delta.post_amount == 0.8

    def test_incoming_transfer_is_positive(self) -> None:
        delta = BalanceDelta.from_detail(
            TransactionDetail("sig", (800_000_000,), (1_000_000_000,))
        )
        assert delta.amount == 0.2

    def test_empty_balances(self) -> None:
        assert BalanceDelta.from_detail(TransactionDetail("sig", (), (1,))) is None
        assert BalanceDelta.from_detail(TransactionDetail("sig", (1,), ())) is None


class TestAlertMessage:
    def test_format(self) -> None:
        delta = BalanceDelta("5abc", 1234.5678, 2000.0, 765.4322)
        message = AlertMessage.from_delta(delta, "https://solscan.io/tx/")

        assert message.link == "https://solscan.io/tx/5abc"
        assert "<b>Amount:</b> 1234.57 SOL" in message.text
        assert '<a href="https://solscan.io/tx/5abc">' in message.text
        assert "Balance change: 2000.00 -> 765.43" in message.text
