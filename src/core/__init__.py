"""
Core library: reusable, scaler-agnostic components.

Modules:
    auth     - Azure AD / managed identity tokens, shared token store
    errors   - Error classification and exception hierarchy
    http     - Async HTTP request helper (aiohttp)
    logging  - Structured JSON logging with context propagation
    metrics  - Prometheus instrumentation

Design Principles:
    - No knowledge of query semantics or scaling decisions
    - All modules are independently testable
    - Async-first
"""

__version__ = "1.0.0"
