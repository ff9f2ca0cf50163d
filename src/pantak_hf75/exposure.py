"""
Exposure runner: pre-flight checks and emission start from a session config.

Building blocks for bench scripts and system-integration code::

    from pantak_hf75 import PantakHF75
    from pantak_hf75.config import load_config
    from pantak_hf75.exposure import run_exposure

    config = load_config("config/session.yaml")
    with PantakHF75(config.port, trace_enabled=config.trace) as hf:
        report = run_exposure(hf, config)
        print(report.summary)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .config import SessionConfig
from .controller import PantakHF75
from .exceptions import PantakError

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    """Outcome of a single pre-flight check."""

    name: str
    success: bool
    message: str


@dataclass
class PreflightReport:
    """Aggregate outcome of :func:`preflight` / :func:`run_exposure`."""

    results: list[CheckResult] = field(default_factory=list)
    emitting: bool = False
    sent_ma: float | None = None

    @property
    def all_ok(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def summary(self) -> str:
        passed = sum(1 for r in self.results if r.success)
        total = len(self.results)
        return f"{passed}/{total} checks {'OK' if self.all_ok else 'FAILED'}"


def check_warmup(driver: PantakHF75, override: bool = False) -> CheckResult:
    """Check the warm-up flag, optionally overriding it when not set."""
    try:
        if driver.is_warmed_up():
            return CheckResult("warmup", True, "warmed up")
        if override:
            driver.override_warmup()
            logger.warning("Warm-up not complete; override sent")
            return CheckResult("warmup", True, "warm-up overridden")
    except PantakError as exc:
        logger.error("Warm-up query failed: %s", exc)
        return CheckResult("warmup", False, f"query failed: {exc}")

    msg = "warm-up required"
    logger.warning(msg)
    return CheckResult("warmup", False, msg)


def check_interlocks(driver: PantakHF75) -> CheckResult:
    """Check that no interlock reports a fault."""
    try:
        status = driver.get_interlocks()
    except PantakError as exc:
        logger.error("Interlock query failed: %s", exc)
        return CheckResult("interlocks", False, f"query failed: {exc}")

    if status.any_fault:
        msg = f"interlocks in fault: {status.text}"
        logger.warning(msg)
        return CheckResult("interlocks", False, msg)
    return CheckResult("interlocks", True, "all clear")


def preflight(driver: PantakHF75, override_warmup: bool = False) -> PreflightReport:
    """Run every pre-flight check against a connected driver."""
    report = PreflightReport()
    report.results.append(check_warmup(driver, override=override_warmup))
    report.results.append(check_interlocks(driver))
    logger.info("Pre-flight: %s", report.summary)
    return report


def run_exposure(driver: PantakHF75, config: SessionConfig) -> PreflightReport:
    """Run pre-flight and, if it passes, start emission at the configured settings.

    Nothing is emitted when a check fails or the config has no
    ``exposure`` section.  Errors from :meth:`PantakHF75.start_emitting`
    propagate to the caller.
    """
    report = preflight(driver, override_warmup=config.override_warmup)
    if not report.all_ok:
        logger.warning("Exposure not started: %s", report.summary)
        return report
    if config.exposure is None:
        logger.info("No exposure configured; pre-flight only")
        return report

    settings = config.exposure
    report.sent_ma = driver.start_emitting(settings.kv, settings.ma)
    report.emitting = True
    logger.info("Emitting at %.1f kV / %.1f mA", settings.kv, report.sent_ma)
    return report
