"""
KPI kernel: per-job, per-day labour and finance KPIs recomputed from raw
clock events and deployment-specific ledger relations.
"""

__version__ = "0.1.0"
