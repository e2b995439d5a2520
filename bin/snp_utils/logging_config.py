#!/usr/bin/env python3
"""
Logging Configuration for the SNP Lookup Engine

This module configures logging for command-line runs and collects run
metrics (stage timings, throughput, resource usage).

Features:
- Verbose / quiet / default log levels, overridable from the environment
- All log output on stderr, leaving stdout free for lookup results
- Optional detailed log file
- Stage, performance and resource-usage metrics, summarized into the
  statistics JSON
"""

import logging
import os
import sys
import time
from pathlib import Path
from typing import Dict, Optional, Union

import psutil

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

ENVIRONMENT_VARIABLES = {
    'GET_SNP_RS_LOG_LEVEL': 'Set logging level (DEBUG, INFO, WARNING, ERROR)',
    'GET_SNP_RS_LOG_DIR': 'Directory for a detailed log file',
}


def setup_logging(verbose: bool = False, quiet: bool = False,
                  log_dir: Optional[Path] = None, name: str = "get_snp_rs") -> logging.Logger:
    """
    Configure the root logger for a command-line run.

    Args:
        verbose: Log at DEBUG level
        quiet: Only log warnings and errors
        log_dir: Directory for a detailed DEBUG log file (optional)
        name: Base name for the log file

    Returns:
        The root logger
    """
    if verbose:
        log_level = logging.DEBUG
    elif quiet:
        log_level = logging.WARNING
    else:
        env_level = os.environ.get('GET_SNP_RS_LOG_LEVEL', 'INFO')
        log_level = getattr(logging, env_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
        force=True  # Override any existing configuration
    )
    root = logging.getLogger()

    if log_dir is None and os.environ.get('GET_SNP_RS_LOG_DIR'):
        log_dir = Path(os.environ['GET_SNP_RS_LOG_DIR'])

    if log_dir:
        try:
            log_dir = Path(log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"{name}_{int(time.time())}.log"
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt=DATE_FORMAT))
            root.addHandler(file_handler)
            root.setLevel(logging.DEBUG)
            for handler in root.handlers:
                if handler is not file_handler:
                    handler.setLevel(log_level)
            root.info(f"Detailed logging to: {log_file}")
        except OSError as e:
            root.warning(f"Could not set up file logging: {e}")

    return root


class RunMetricsLogger:
    """
    Collects stage timings, throughput and resource usage for one run.

    Every recorded value is also logged immediately, so the metrics appear
    in the run log even when no metrics report is saved.
    """

    def __init__(self, name: str = "get_snp_rs", logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(name)
        self.start_time = time.time()
        self.metrics = {
            'run_start_date': time.strftime(DATE_FORMAT, time.localtime(self.start_time)),
            'counters': {},
            'timers': {},
            'gauges': {},
            'stages': [],
        }
        self._stage_starts: Dict[str, float] = {}

    def log_metric(self, metric_name: str, value: Union[int, float],
                   metric_type: str = "gauge", unit: str = "") -> None:
        """
        Record a metric.

        Args:
            metric_name: Name of the metric
            value: Metric value
            metric_type: Type of metric (counter, gauge, timer)
            unit: Unit of measurement
        """
        metric_data = {'value': value, 'unit': unit, 'timestamp': time.time()}

        if metric_type == "counter":
            self.metrics['counters'][metric_name] = metric_data
        elif metric_type == "timer":
            self.metrics['timers'][metric_name] = metric_data
        else:
            self.metrics['gauges'][metric_name] = metric_data

        self.logger.debug(f"METRIC: {metric_name}={value}{unit} [{metric_type}]")

    def log_stage(self, stage_name: str, status: str = "START") -> None:
        """
        Log a processing stage transition.

        Args:
            stage_name: Name of the stage (e.g. DETECTING, SCHEDULING)
            status: START, COMPLETE or FAILED
        """
        now = time.time()
        elapsed = now - self.start_time
        record = {'stage': stage_name, 'status': status, 'elapsed_time': elapsed}

        if status == "START":
            self._stage_starts[stage_name] = now
        elif stage_name in self._stage_starts:
            record['duration'] = now - self._stage_starts.pop(stage_name)
            self.log_metric(f"{stage_name.lower()}_duration", record['duration'], "timer", "s")

        self.metrics['stages'].append(record)
        self.logger.info(f"STAGE: {stage_name} - {status} (elapsed: {elapsed:.2f}s)")

    def log_performance(self, operation: str, duration: float, items_processed: int = 0) -> None:
        """Log duration and rate of an operation."""
        rate = items_processed / duration if duration > 0 and items_processed > 0 else 0

        self.logger.info(f"PERFORMANCE: {operation} - duration: {duration:.2f}s, "
                         f"items: {items_processed}, rate: {rate:.0f}/s")

        self.log_metric(f"{operation}_duration", duration, "timer", "s")
        if items_processed > 0:
            self.log_metric(f"{operation}_items", items_processed, "counter")
            self.log_metric(f"{operation}_rate", rate, "gauge", "/s")

    def log_resource_usage(self, context: str) -> Dict:
        """
        Log current process memory and CPU usage.

        Returns:
            Dictionary with resource usage data
        """
        resource_data = {'context': context, 'timestamp': time.time()}

        try:
            process = psutil.Process()
            memory_mb = process.memory_info().rss / 1024 / 1024
            cpu_percent = process.cpu_percent()
            resource_data['memory_mb'] = memory_mb
            resource_data['cpu_percent'] = cpu_percent

            self.logger.debug(f"RESOURCES: {context} - memory: {memory_mb:.1f}MB, cpu: {cpu_percent:.1f}%")

            self.log_metric(f"memory_usage_mb_{context}", memory_mb, "gauge", "MB")
            self.log_metric(f"cpu_usage_percent_{context}", cpu_percent, "gauge", "%")
        except psutil.Error as e:
            resource_data['error'] = str(e)
            self.logger.warning(f"RESOURCES: {context} - failed to get resource usage: {e}")

        return resource_data

    def get_metrics_summary(self) -> Dict:
        total_elapsed = time.time() - self.start_time
        return {
            'run_info': {
                'name': self.name,
                'start_time': self.start_time,
                'total_elapsed_seconds': total_elapsed,
            },
            'metrics': self.metrics,
        }

