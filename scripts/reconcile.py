"""
Reconcile README

Runs a single overdue sweep against the configured database:

1. Finds every open loan whose due time has passed
2. Marks it OVERDUE if it isn't already
3. Recomputes and persists its fine

Meant to be triggered by cron (or any other scheduler) once a day. Exits
non-zero when any loan could not be reconciled so the failure is noticed.
"""

import argparse
import datetime
import logging
import sys
from circulation.configs import DB_URI, LOG_LEVEL
from circulation.core import db
from circulation.core.orchestrator import LoanOrchestrator

logger = logging.getLogger(__name__)


def reconcile(uri=DB_URI, now=None):
    engine = db.make_engine(uri)
    db.init(engine)
    orchestrator = LoanOrchestrator.from_session_factory(db.make_session_factory(engine))
    return orchestrator.reconcile_overdue(now)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Mark overdue loans and refresh their fines")
    parser.add_argument("--db", help="Database URI", default=DB_URI)
    parser.add_argument("--now", type=datetime.datetime.fromisoformat,
                        help="Reconcile as of this ISO timestamp (UTC)", default=None)
    args = parser.parse_args()
    logging.basicConfig(level=LOG_LEVEL.upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    report = reconcile(args.db, args.now)
    print(f"Checked: {report.checked}")
    print(f"  Marked overdue: {report.transitioned}")
    print(f"  Fines updated: {report.fined}")
    print(f"  Skipped: {report.skipped}")
    print(f"  Failed: {len(report.failures)}")
    for failure in report.failures:
        print(f"    - loan {failure.loan_id}: {failure.error}: {failure.message}")
    sys.exit(1 if report.failures else 0)
