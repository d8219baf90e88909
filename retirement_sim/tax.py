"""Pro-rata capital gains taxation of withdrawals."""

from dataclasses import dataclass


@dataclass(frozen=True)
class WithdrawalResult:
    value: float
    basis: float
    tax: float
    net: float
    gain_ratio: float


def gain_ratio(value: float, basis: float) -> float:
    """Share of value that is unrealized gain, in [0, 1]. Zero for an empty portfolio."""
    if value <= 0:
        return 0.0
    return max(value - basis, 0) / value


def apply_withdrawal(value: float, basis: float, gross: float, tax_rate: float) -> WithdrawalResult:
    """Sell `gross` out of a portfolio and tax the gain portion of the sale.

    Each unit sold carries the portfolio's current gain ratio, so
    taxable = gross × gain_ratio and the remainder reduces cost basis.
    Value and basis are floored at zero.
    """
    ratio = gain_ratio(value, basis)
    taxable_gain = gross * ratio
    tax = taxable_gain * tax_rate
    principal_portion = gross - taxable_gain
    return WithdrawalResult(
        value=max(value - gross, 0.0),
        basis=max(basis - principal_portion, 0.0),
        tax=tax,
        net=gross - tax,
        gain_ratio=ratio,
    )
