from dataclasses import dataclass, field
from typing import Optional, Tuple

LAMPORTS_PER_SOL = 1_000_000_000

@dataclass(frozen=True)
class LogEvent:
    signature: str
    failed: bool
    raw_log_lines: Tuple[str, ...] = field(default_factory=tuple)

@dataclass(frozen=True)
class TransactionDetail:
    signature: str
    pre_balances: Tuple[int, ...]
    post_balances: Tuple[int, ...]

@dataclass(frozen=True)
class BalanceDelta:
    signature: str
    amount: float
    pre_amount: float
    post_amount: float

    @classmethod
    def from_detail(cls, detail: TransactionDetail) -> Optional['BalanceDelta']:
        """Delta of the first account, or None when there is nothing to compare"""
        if not detail.pre_balances or not detail.post_balances:
            return None

        pre_lamports = detail.pre_balances[0]
        post_lamports = detail.post_balances[0]
        return cls(
            signature=detail.signature,
            amount=abs(pre_lamports - post_lamports) / LAMPORTS_PER_SOL,
            pre_amount=pre_lamports / LAMPORTS_PER_SOL,
            post_amount=post_lamports / LAMPORTS_PER_SOL,
        )

@dataclass(frozen=True)
class AlertMessage:
    text: str
    link: str

    @classmethod
    def from_delta(cls, delta: BalanceDelta, explorer_url: str) -> 'AlertMessage':
        link = f"{explorer_url}{delta.signature}"
        text = (
            "🐋 <b>Whale Alert!</b>\n\n"
            f"💰 <b>Amount:</b> {delta.amount:.2f} SOL\n"
            f"🔗 <a href=\"{link}\">View transaction</a>\n"
            f"📉 Balance change: {delta.pre_amount:.2f} -> {delta.post_amount:.2f}"
        )
        return cls(text=text, link=link)
