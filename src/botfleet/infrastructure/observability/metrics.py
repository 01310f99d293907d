"""Prometheus metrics configuration."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
)


# Application info
APP_INFO = Info("botfleet", "Bot gateway provisioner application info")
APP_INFO.info({
    "version": "1.0.0",
    "service": "botfleet-provisioner",
})

# Provisioning run metrics
PROVISIONING_RUNS_TOTAL = Counter(
    "botfleet_provisioning_runs_total",
    "Total number of provisioning runs by outcome",
    ["backend_kind", "status"],  # status: completed, error, timeout
)

PROVISIONING_DURATION = Histogram(
    "botfleet_provisioning_duration_seconds",
    "Time from run start to terminal state",
    ["backend_kind", "status"],
    buckets=[10, 30, 60, 120, 300, 600, 900],
)

ACTIVE_PROVISIONING_RUNS = Gauge(
    "botfleet_active_provisioning_runs",
    "Number of provisioning runs still in progress",
)

PROVISIONING_STEP_DURATION = Histogram(
    "botfleet_provisioning_step_duration_seconds",
    "Time a provisioning step spent in progress",
    ["step_id", "status"],
    buckets=[1, 5, 10, 30, 60, 120, 300],
)

# Backend adapter metrics
TARGET_OPERATIONS_TOTAL = Counter(
    "botfleet_target_operations_total",
    "Total deployment target operations",
    ["backend_kind", "operation", "result"],  # result: success/failure
)

TARGET_OPERATION_DURATION = Histogram(
    "botfleet_target_operation_duration_seconds",
    "Deployment target operation duration",
    ["backend_kind", "operation"],
    buckets=[0.5, 1, 5, 10, 30, 60, 120],
)

CLI_COMMANDS_TOTAL = Counter(
    "botfleet_cli_commands_total",
    "Total external CLI invocations",
    ["service", "result"],  # result: success, failure, timeout
)

# Worker metrics
WORKER_INSTANCES_IN_PROGRESS = Gauge(
    "botfleet_worker_instances_in_progress",
    "Number of instances currently being provisioned by workers",
    ["worker_id"],
)

# Push channel metrics
PROGRESS_SUBSCRIBERS = Gauge(
    "botfleet_progress_subscribers",
    "Number of open provisioning event subscriptions",
)

# API metrics
API_REQUESTS_TOTAL = Counter(
    "botfleet_api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status_code"],
)

API_REQUEST_DURATION = Histogram(
    "botfleet_api_request_duration_seconds",
    "API request duration",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
