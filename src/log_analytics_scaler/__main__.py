"""
Run one scaler evaluation from the command line.

Usage:
    # Configuration from LA_* environment variables
    python -m log_analytics_scaler

    # Configuration from YAML
    python -m log_analytics_scaler --config scaler.yaml

    # Machine-readable output
    python -m log_analytics_scaler --config scaler.yaml --json

Exit codes:
    0  evaluation succeeded
    1  configuration, auth, query or validation error
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from prometheus_client import start_http_server

from core.errors.exceptions import ScalerError
from core.logging.context import set_log_context
from core.logging.setup import generate_cycle_id, setup_logging
from core.logging.utilities import get_logger, log_exception
from log_analytics_scaler.config import ScalerConfig, load_config
from log_analytics_scaler.scaler import LogAnalyticsScaler

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="log_analytics_scaler",
        description="Evaluate an Azure Log Analytics scaler once",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Environment configuration (LA_WORKSPACE_ID, LA_QUERY, LA_THRESHOLD, ...)
    python -m log_analytics_scaler

    # YAML configuration with JSON output
    python -m log_analytics_scaler --config scaler.yaml --json
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML config (default: read LA_* environment variables)",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: from LOG_DIR env var, console only if unset)",
    )

    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Expose Prometheus metrics on this port while running",
    )

    return parser.parse_args(argv)


async def probe(config: ScalerConfig) -> Dict[str, Any]:
    """Run is_active, get_metric_spec and get_metrics against one scaler."""
    async with LogAnalyticsScaler(config) as scaler:
        active = await scaler.is_active()
        specs = await scaler.get_metric_spec()
        values = await scaler.get_metrics(scaler.metric_name)

    return {
        "scaledObject": config.name,
        "namespace": config.namespace,
        "active": active,
        "metricSpecs": [spec.to_dict() for spec in specs],
        "metrics": [value.to_dict() for value in values],
    }


def format_result(result: Dict[str, Any]) -> str:
    lines = [
        f"{result['namespace']}/{result['scaledObject']}: active={result['active']}",
    ]
    for spec in result["metricSpecs"]:
        metric = spec["external"]["metric"]["name"]
        target = spec["external"]["target"]["averageValue"]
        lines.append(f"  spec   {metric} target={target}")
    for value in result["metrics"]:
        lines.append(f"  value  {value['metricName']}={value['value']} at {value['timestamp']}")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    global logger
    args = parse_args(argv)

    log_dir_str = args.log_dir or os.getenv("LOG_DIR")
    setup_logging(
        name="log_analytics_scaler",
        log_dir=Path(log_dir_str) if log_dir_str else None,
        console_level=getattr(logging, args.log_level),
    )
    logger = get_logger(__name__)
    set_log_context(cycle_id=generate_cycle_id())

    try:
        config = load_config(args.config) if args.config else ScalerConfig.from_env()
    except ScalerError as e:
        log_exception(logger, e, "Configuration error", include_traceback=False)
        return 1

    set_log_context(scaled_object=config.name, namespace=config.namespace)

    if args.metrics_port:
        logger.info(f"Starting metrics server on port {args.metrics_port}")
        start_http_server(args.metrics_port)

    try:
        result = asyncio.run(probe(config))
    except ScalerError as e:
        log_exception(logger, e, "Scaler evaluation failed", include_traceback=False)
        return 1

    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print(format_result(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
