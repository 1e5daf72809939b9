"""
Fleet Health Analytics Package.

Scoring and attribution core for the trucking-dispatch fleet health dashboard.
Derives per-driver flags and drop-risk scores, per-dispatcher retention, tenure
and compliance scores, and team-level KPIs over rolling payroll-week windows.

Subpackages:
    - core: Configuration via pydantic-settings
    - models: Pydantic schemas and enums for pay stubs, loads and results
    - services: Payroll calendar, flag engine, retention, tenure, compliance,
      KPI aggregation and the cached engine facade

Rendering, settings persistence and raw data fetching live outside this package;
callers hand in an in-memory snapshot and read back computed aggregates.
"""

__version__ = "1.0.0"
