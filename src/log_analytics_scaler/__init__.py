"""
Azure Log Analytics scaler.

Scales a workload on the scalar result of a Log Analytics (KQL) query.

Modules:
    config      - Metadata parsing, YAML / environment configuration
    query       - Query execution with a single expired-token retry
    validation  - Query result decoding and schema checks
    scaler      - LogAnalyticsScaler: is_active / get_metric_spec / get_metrics
"""

__version__ = "1.0.0"
