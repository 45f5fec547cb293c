"""
Reconciliation Scheduler - periodic overdue sweep

Runs LoanOrchestrator.reconcile_overdue on a fixed interval from a
background thread. The orchestrator does not care who triggers the sweep;
cron can call scripts/reconcile.py instead.
"""
import logging
import threading
from typing import Optional
from circulation.configs import RECONCILE_INTERVAL_SECONDS
from circulation.schemas.reconciliation import ReconciliationReport

logger = logging.getLogger(__name__)


class ReconciliationScheduler:

    def __init__(self, orchestrator, interval: float = RECONCILE_INTERVAL_SECONDS):
        self.orchestrator = orchestrator
        self.interval = interval
        self.running = False
        self.last_report: Optional[ReconciliationReport] = None
        self._stopped: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start the sweep thread; the first sweep runs immediately."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.running = True
        # one event per run, so a thread still finishing an old sweep stays stopped
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stopped,), name="overdue-sweep", daemon=True)
        self._thread.start()
        logger.info(f"Overdue sweep scheduled every {self.interval} seconds")

    def stop(self, timeout: Optional[float] = None):
        if not self.running:
            return

        self.running = False
        self._stopped.set()
        if self._thread:
            self._thread.join(timeout)
        logger.info("Overdue sweep scheduler stopped")

    def run_once(self, now=None) -> ReconciliationReport:
        report = self.orchestrator.reconcile_overdue(now)
        self.last_report = report
        for failure in report.failures:
            logger.error(f"Loan {failure.loan_id} needs attention: {failure.error}: {failure.message}")
        return report

    def _run(self, stopped: threading.Event):
        while True:
            try:
                self.run_once()
            except Exception as e:
                # a failed sweep must not kill the thread, the next interval retries
                logger.exception(f"Overdue sweep failed: {e}")
            if stopped.wait(self.interval):
                break
