"""Alert service and the periodic scheduler that drives it."""

from .alerts import AlertService, build_service, parse_pull_request_url
from .scheduler import Scheduler

__all__ = ["AlertService", "Scheduler", "build_service", "parse_pull_request_url"]
