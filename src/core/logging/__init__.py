"""
Structured logging module.

Provides JSON logging with context propagation.

Import directly from sub-modules:
    from core.logging.setup import setup_logging, generate_cycle_id
    from core.logging.utilities import get_logger, log_with_context, LoggedClass
    from core.logging.context import set_log_context
"""
