"""
Derived finance values -- gross profit, margin and slippage.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Every derivation is null-propagating: an unavailable input makes the
derived value unavailable instead of treating it as zero.
"""

from decimal import ROUND_FLOOR, Decimal

from kpi_kernel.db.types import PERCENT_DECIMAL_PLACES, round_money
from kpi_kernel.domain.types import FinanceKpis

_TEN_THOUSAND = Decimal(10000)
_HUNDRED = Decimal(100)
_HALF = Decimal("0.5")


def gross_profit(revenue: Decimal | None, cogs: Decimal | None) -> Decimal | None:
    if revenue is None or cogs is None:
        return None
    return revenue - cogs


def gross_margin_pct(
    profit: Decimal | None, revenue: Decimal | None
) -> Decimal | None:
    """
    ``round(profit / revenue * 10000) / 100`` -- a percentage with two
    decimal places, or None when revenue is missing or not positive.

    Half basis points round toward positive infinity, so -1250.5 bp is
    -12.50 and 1250.5 bp is 12.51.
    """
    if profit is None or revenue is None or revenue <= 0:
        return None
    basis_points = (profit / revenue * _TEN_THOUSAND + _HALF).quantize(
        Decimal(1), rounding=ROUND_FLOOR
    )
    return round_money(basis_points / _HUNDRED, PERCENT_DECIMAL_PLACES)


def slippage(
    estimate_revenue: Decimal | None,
    estimate_cogs: Decimal | None,
    profit: Decimal | None,
) -> Decimal | None:
    """Estimated minus actual gross profit; negative is a shortfall."""
    if estimate_revenue is None or estimate_cogs is None or profit is None:
        return None
    return (estimate_revenue - estimate_cogs) - profit


def derive_finance(
    revenue: Decimal | None = None,
    cogs: Decimal | None = None,
    change_order_amount: Decimal | None = None,
    holdback_amount: Decimal | None = None,
    ar_total: Decimal | None = None,
    ap_total: Decimal | None = None,
    estimate_revenue: Decimal | None = None,
    estimate_cogs: Decimal | None = None,
) -> FinanceKpis:
    """Assemble FinanceKpis from raw ledger sums."""
    profit = gross_profit(revenue, cogs)
    return FinanceKpis(
        revenue=revenue,
        cogs=cogs,
        gross_profit=profit,
        gross_margin_pct=gross_margin_pct(profit, revenue),
        change_order_amount=change_order_amount,
        holdback_amount=holdback_amount,
        ar_total=ar_total,
        ap_total=ap_total,
        estimate_revenue=estimate_revenue,
        estimate_cogs=estimate_cogs,
        slippage=slippage(estimate_revenue, estimate_cogs, profit),
    )
