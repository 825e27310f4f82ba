"""Prometheus metrics for extension admission."""
from prometheus_client import Counter, Histogram

ADMISSIONS_TOTAL = Counter(
    "extension_loader_admissions_total", "Extension admission attempts by outcome", ["type", "result"]
)
ADMISSION_DURATION = Histogram(
    "extension_loader_admission_duration_seconds", "Full admission duration in seconds", ["type"]
)
RETRIES_TOTAL = Counter(
    "extension_loader_retries_total", "Retries scheduled by the retry orchestrator"
)
SAFETY_PROBE_DURATION = Histogram(
    "extension_loader_safety_probe_duration_seconds", "Safety trial call duration in seconds"
)
