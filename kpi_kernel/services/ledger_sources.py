"""
Ledger sources -- typed adapters over deployment-specific ledger relations.

Responsibility:
    Each finance metric (revenue, cost of goods, AR, ...) is read from one
    of several candidate relations whose names differ by deployment.  A
    ``LedgerSource`` binds one metric's query shape to one candidate
    relation; the FinanceEnricher tries them in priority order.

Architecture position:
    Kernel > Services.  Ledger relations are owned by other systems; they
    are described here with lightweight ``table()`` constructs, never
    mapped or created.

Invariants enforced:
    - Ledger relations store integer cents; sums are returned in currency
      units (``money_from_cents``).
    - Every probe runs in its own SAVEPOINT so that a missing relation on
      PostgreSQL does not abort the surrounding transaction.
    - A relation that exists but has no matching rows sums to 0.

Failure modes:
    - SchemaAbsenceError: the relation or a referenced column is missing.
    - Any other DBAPIError propagates (transient errors are retried by the
      worker at the unit-of-work level).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import ClassVar, Mapping, Sequence

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    String,
    and_,
    column,
    func,
    or_,
    select,
    table,
)
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from sqlalchemy.sql.expression import TableClause
from sqlalchemy.types import TypeEngine

from kpi_kernel.db.errors import is_schema_absence
from kpi_kernel.db.types import money_from_cents
from kpi_kernel.domain.types import DayWindow
from kpi_kernel.exceptions import SchemaAbsenceError

COGS_KINDS = ("materials", "cogs", "subcontract", "labour")
OPEN_AR_STATUSES = ("sent", "partial", "overdue")
OPEN_AP_STATUSES = ("entered", "partial", "overdue")
APPROVED_STATUS = "approved"

_KEY_COLUMNS: tuple[tuple[str, TypeEngine], ...] = (
    ("owner_id", String()),
    ("job_no", BigInteger()),
)


class LedgerSource(ABC):
    """
    One metric read from one candidate relation.

    Subclasses declare the columns they need and the metric-specific
    filters; the owner/job filter and the SUM are shared.
    """

    metric: ClassVar[str]
    value_column: ClassVar[str]
    columns: ClassVar[tuple[tuple[str, TypeEngine], ...]]

    def __init__(self, relation: str, schema: str | None = None):
        self.relation = relation
        self.schema = schema

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.relation}" if self.schema else self.relation

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.qualified_name}>"

    def table(self) -> TableClause:
        cols = [column(name, type_) for name, type_ in _KEY_COLUMNS + self.columns]
        return table(self.relation, *cols, schema=self.schema)

    @abstractmethod
    def filters(self, t: TableClause, window: DayWindow) -> list:
        """Metric-specific WHERE clauses."""

    def statement(self, owner_id: str, job_no: int, window: DayWindow):
        t = self.table()
        return select(func.coalesce(func.sum(t.c[self.value_column]), 0)).where(
            t.c.owner_id == owner_id,
            t.c.job_no == job_no,
            *self.filters(t, window),
        )

    def sum(
        self,
        session: Session,
        owner_id: str,
        job_no: int,
        window: DayWindow,
    ) -> Decimal | None:
        """
        Sum of the metric in currency units.

        Raises:
            SchemaAbsenceError: Relation or column missing in this deployment.
        """
        stmt = self.statement(owner_id, job_no, window)
        try:
            with session.begin_nested():
                cents = session.execute(stmt).scalar()
        except DBAPIError as exc:
            if is_schema_absence(exc):
                raise SchemaAbsenceError(
                    self.qualified_name, str(getattr(exc, "orig", exc))
                ) from exc
            raise
        return money_from_cents(cents if cents is not None else 0)


def _within_day(expr, window: DayWindow):
    return and_(expr >= window.start, expr < window.end)


class RevenueSource(LedgerSource):
    """Revenue that occurred within the local day."""

    metric = "revenue"
    value_column = "amount_cents"
    columns = (
        ("amount_cents", BigInteger()),
        ("occurred_at", DateTime(timezone=True)),
    )

    def filters(self, t, window):
        return [_within_day(t.c.occurred_at, window)]


class CogsSource(LedgerSource):
    """Cost-of-goods expenses that occurred within the local day."""

    metric = "cogs"
    value_column = "amount_cents"
    columns = (
        ("amount_cents", BigInteger()),
        ("occurred_at", DateTime(timezone=True)),
        ("kind", String()),
    )

    def filters(self, t, window):
        return [
            _within_day(t.c.occurred_at, window),
            or_(t.c.kind.is_(None), t.c.kind.in_(COGS_KINDS)),
        ]


class ChangeOrderSource(LedgerSource):
    """Approved change-order deltas dated by approval, else creation."""

    metric = "change_order_amount"
    value_column = "delta_cents"
    columns = (
        ("delta_cents", BigInteger()),
        ("status", String()),
        ("approved_at", DateTime(timezone=True)),
        ("created_at", DateTime(timezone=True)),
    )

    def filters(self, t, window):
        return [
            t.c.status == APPROVED_STATUS,
            _within_day(func.coalesce(t.c.approved_at, t.c.created_at), window),
        ]


class HoldbackSource(LedgerSource):
    """Invoice retainage issued by the end of the day and not yet released."""

    metric = "holdback_amount"
    value_column = "retainage_amount_cents"
    columns = (
        ("retainage_amount_cents", BigInteger()),
        ("issue_date", Date()),
        ("created_at", DateTime(timezone=True)),
        ("released_at", DateTime(timezone=True)),
    )

    def filters(self, t, window):
        return [
            or_(
                t.c.issue_date <= window.day,
                and_(t.c.issue_date.is_(None), t.c.created_at < window.end),
            ),
            or_(t.c.released_at.is_(None), t.c.released_at >= window.end),
        ]


class ReceivablesSource(LedgerSource):
    """Outstanding AR; a balance, so not day-filtered."""

    metric = "ar_total"
    value_column = "remaining_cents"
    columns = (("remaining_cents", BigInteger()), ("status", String()))

    def filters(self, t, window):
        return [t.c.status.in_(OPEN_AR_STATUSES)]


class PayablesSource(LedgerSource):
    """Outstanding AP; a balance, so not day-filtered."""

    metric = "ap_total"
    value_column = "remaining_cents"
    columns = (("remaining_cents", BigInteger()), ("status", String()))

    def filters(self, t, window):
        return [t.c.status.in_(OPEN_AP_STATUSES)]


class EstimateRevenueSource(LedgerSource):
    """Estimated revenue of estimates still valid on the day."""

    metric = "estimate_revenue"
    value_column = "amount_cents"
    columns = (("amount_cents", BigInteger()), ("valid_until", Date()))

    def filters(self, t, window):
        return [or_(t.c.valid_until.is_(None), t.c.valid_until >= window.day)]


class EstimateCostSource(EstimateRevenueSource):
    """Estimated cost of estimates still valid on the day."""

    metric = "estimate_cogs"
    value_column = "cost_cents"
    columns = (("cost_cents", BigInteger()), ("valid_until", Date()))


# Deployments name their ledger relations differently; first match wins
DEFAULT_LEDGER_CANDIDATES: dict[str, tuple[str, ...]] = {
    "revenue": ("revenues", "cash_in", "receipts", "revenue_entries"),
    "expenses": ("expenses", "cash_out", "expense_entries"),
    "invoices": ("invoices", "invoice_entries"),
    "bills": ("bills", "bill_entries", "payables"),
    "change_orders": ("change_orders", "change_order_entries"),
    "estimates": ("estimates", "quote_entries"),
}

# metric -> (adapter class, ledger family holding its relations)
METRIC_SOURCES: dict[str, tuple[type[LedgerSource], str]] = {
    "revenue": (RevenueSource, "revenue"),
    "cogs": (CogsSource, "expenses"),
    "change_order_amount": (ChangeOrderSource, "change_orders"),
    "holdback_amount": (HoldbackSource, "invoices"),
    "ar_total": (ReceivablesSource, "invoices"),
    "ap_total": (PayablesSource, "bills"),
    "estimate_revenue": (EstimateRevenueSource, "estimates"),
    "estimate_cogs": (EstimateCostSource, "estimates"),
}


def build_ledger_sources(
    relations: Mapping[str, Sequence[str]] | None = None,
    schema: str | None = None,
) -> dict[str, tuple[LedgerSource, ...]]:
    """
    Adapters per metric, in priority order.

    Args:
        relations: Candidate relation names per ledger family (``revenue``,
            ``expenses``, ``invoices``, ``bills``, ``change_orders``,
            ``estimates``).  Missing families fall back to
            DEFAULT_LEDGER_CANDIDATES.
        schema: Schema qualifying every relation; None uses the search path.
    """
    relations = {**DEFAULT_LEDGER_CANDIDATES, **(relations or {})}
    return {
        metric: tuple(
            source_cls(relation, schema=schema) for relation in relations[family]
        )
        for metric, (source_cls, family) in METRIC_SOURCES.items()
    }
