"""
Business logic services for the fleet health core.

Modules:
    - payroll_calendar: Payroll week windows and pay date mapping
    - thresholds: Contract normalization and per-contract threshold lookup
    - enrichment: Stub forward-fill and "latest wins" reducers
    - driver_flags: Driver flag rules
    - drop_risk: Weighted driver drop-risk score
    - retention: Dispatcher retention attribution and team retention
    - tenure: Median driver tenure per dispatcher
    - dispatcher_metrics: Raw compliance inputs per dispatcher
    - compliance: Peer-normalized compliance score
    - aggregates: Driver and dispatcher aggregates per window
    - kpi: Team header KPIs and trends
    - fleet_health: Engine facade with the aggregate cache
    - ingestion: pandas adapters for raw exports
    - stats: Shared statistical helpers
"""
