"""Position sizing and reward/risk — pure math, no I/O.

Converts an account balance, a risk percentage and entry / stop / target
prices into a position size and reward ratio.
"""

import math
from dataclasses import dataclass

from marketpulse.errors import InvalidInput

EXCELLENT_REWARD_RATIO = 2.0
ACCEPTABLE_REWARD_RATIO = 1.5


@dataclass(frozen=True)
class RiskCalculation:
    """Derived sizing for one trade plan.  Recomputed on demand."""

    account_balance: float
    risk_percentage: float
    entry_price: float
    stop_loss: float
    target_price: float
    pip_value: float
    position_size: float
    risk_amount: float
    reward_ratio: float

    @property
    def assessment(self) -> str:
        return classify_reward_ratio(self.reward_ratio)

    @property
    def potential_profit(self) -> float:
        return self.position_size * abs(self.target_price - self.entry_price)


def classify_reward_ratio(reward_ratio: float) -> str:
    """``"excellent"`` at ≥ 2, ``"acceptable"`` at ≥ 1.5, else ``"poor"``."""
    if reward_ratio >= EXCELLENT_REWARD_RATIO:
        return "excellent"
    if reward_ratio >= ACCEPTABLE_REWARD_RATIO:
        return "acceptable"
    return "poor"


def calculate_risk(
    account_balance: float,
    risk_percentage: float,
    entry_price: float,
    stop_loss: float,
    target_price: float,
) -> RiskCalculation:
    """Size a position from the stop distance.

    Formula::

        risk_amount   = balance × (risk_pct / 100)
        pip_value     = |entry − stop|
        position_size = risk_amount / pip_value
        reward_ratio  = |target − entry| / pip_value

    Args:
        account_balance: Account balance (e.g. 10_000.0).
        risk_percentage: Percentage of balance to risk (e.g. 2.0 for 2 %).
        entry_price: Planned entry.
        stop_loss: Stop-loss price.
        target_price: Take-profit price.

    Raises:
        InvalidInput: If balance or risk is non-positive, any price is not
            finite, or entry equals stop (no stop distance to size from).
    """
    if not account_balance > 0:
        raise InvalidInput(f"account_balance must be positive, got {account_balance}")
    if not risk_percentage > 0:
        raise InvalidInput(f"risk_percentage must be positive, got {risk_percentage}")
    for name, value in (
        ("entry_price", entry_price),
        ("stop_loss", stop_loss),
        ("target_price", target_price),
    ):
        if not math.isfinite(value):
            raise InvalidInput(f"{name} must be finite, got {value}")

    pip_value = abs(entry_price - stop_loss)
    if pip_value == 0:
        raise InvalidInput(
            f"entry_price and stop_loss must differ, both are {entry_price}"
        )

    risk_amount = account_balance * (risk_percentage / 100.0)
    return RiskCalculation(
        account_balance=account_balance,
        risk_percentage=risk_percentage,
        entry_price=entry_price,
        stop_loss=stop_loss,
        target_price=target_price,
        pip_value=pip_value,
        position_size=risk_amount / pip_value,
        risk_amount=risk_amount,
        reward_ratio=abs(target_price - entry_price) / pip_value,
    )
