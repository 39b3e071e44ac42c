"""
FinanceEnricher -- finance KPIs for one (owner, job, day).

Responsibility:
    Compute revenue, cost of goods, change orders, holdback, AR, AP and
    estimates from whichever ledger relations this deployment has, then
    derive gross profit, margin and slippage.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - Each metric is independent: a missing or failing relation degrades
      only that metric to None, never the whole computation.
    - Adapters are tried in priority order; the first that resolves without
      error wins, even if it sums to 0.
    - A relation found absent is not probed again by the same enricher.

Failure modes:
    - Transient store errors propagate so the caller can retry the group.
      Any other store error from a relation (type mismatch, permission,
      overflow) is logged and the next candidate is tried.
"""

from decimal import Decimal
from typing import Mapping, Sequence

from sqlalchemy.exc import DBAPIError

from kpi_kernel.db.errors import is_transient
from kpi_kernel.domain.finance import derive_finance
from kpi_kernel.domain.types import DayWindow, FinanceKpis
from kpi_kernel.exceptions import SchemaAbsenceError
from kpi_kernel.logging_config import get_logger
from kpi_kernel.services.base import BaseService
from kpi_kernel.services.ledger_sources import LedgerSource, build_ledger_sources

logger = get_logger("services.finance_enricher")


class FinanceEnricher(BaseService):
    """
    Contract:
        ``enrich`` never raises for a missing or unreadable ledger relation;
        only transient store errors escape.

    Usage:
        enricher = FinanceEnricher(session, relations=config.ledger.as_mapping())
        kpis = enricher.enrich(owner_id, job_no, window)
    """

    def __init__(
        self,
        session,
        relations: Mapping[str, Sequence[str]] | None = None,
        schema: str | None = None,
        sources: Mapping[str, tuple[LedgerSource, ...]] | None = None,
        clock=None,
    ):
        super().__init__(session, clock)
        if sources is None:
            sources = build_ledger_sources(relations, schema)
        self._sources = dict(sources)
        self._absent: set[tuple[str, str]] = set()

    def metric(
        self,
        metric: str,
        owner_id: str,
        job_no: int,
        window: DayWindow,
    ) -> Decimal | None:
        """First sum for ``metric`` that resolves; None if every source is absent or fails."""
        for source in self._sources.get(metric, ()):
            marker = (type(source).__name__, source.qualified_name)
            if marker in self._absent:
                continue
            try:
                return source.sum(self.session, owner_id, job_no, window)
            except SchemaAbsenceError as exc:
                self._absent.add(marker)
                logger.debug(
                    "ledger_source_absent",
                    extra={
                        "metric": metric,
                        "relation": exc.relation,
                        "reason": exc.reason,
                    },
                )
            except DBAPIError as exc:
                if is_transient(exc):
                    raise
                # The adapter's savepoint has already rolled back
                logger.warning(
                    "ledger_source_failed",
                    extra={
                        "metric": metric,
                        "relation": source.qualified_name,
                        "reason": str(getattr(exc, "orig", exc)),
                    },
                )
        logger.debug("ledger_metric_unavailable", extra={"metric": metric})
        return None

    def enrich(self, owner_id: str, job_no: int, window: DayWindow) -> FinanceKpis:
        def get(metric: str) -> Decimal | None:
            return self.metric(metric, owner_id, job_no, window)

        kpis = derive_finance(
            revenue=get("revenue"),
            cogs=get("cogs"),
            change_order_amount=get("change_order_amount"),
            holdback_amount=get("holdback_amount"),
            ar_total=get("ar_total"),
            ap_total=get("ap_total"),
            estimate_revenue=get("estimate_revenue"),
            estimate_cogs=get("estimate_cogs"),
        )
        logger.debug(
            "finance_enriched",
            extra={
                "owner_id": owner_id,
                "job_no": job_no,
                "day": window.day,
                "unavailable": sorted(
                    k for k, v in kpis.as_fields().items() if v is None
                ),
            },
        )
        return kpis
