"""
Deactivation rules for the maintenance sweep.

Two rules, each idempotent and independent of the other's order:

- Expiry: an active key whose out_of_date is before `now` becomes inactive.
- Inactivity: an active key whose owning account has no last_login, or a
  last_login older than the inactivity window, becomes inactive. Keys without
  an owning account are not touched by this rule.

The sweep is a pure function of store state and `now`. The dashboard runs it
before every listing; scripts/run_maintenance.py runs it on its own.
"""

from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy.orm import Session

from apikeys.expiry import inactivity_cutoff
from apikeys.repository import ApiKeyRepository


@dataclass
class MaintenanceReport:
    """Number of keys each rule deactivated in one sweep."""
    expired: int = 0
    idle: int = 0

    @property
    def total(self) -> int:
        return self.expired + self.idle


def apply_deactivation_rules(db: Session, now: datetime, inactivity_days: int) -> MaintenanceReport:
    """Run both rules inside the caller's transaction."""
    expired = ApiKeyRepository.deactivate_expired(db, now)
    idle = ApiKeyRepository.deactivate_idle(db, inactivity_cutoff(now, inactivity_days))
    # Bulk updates bypass the identity map
    db.expire_all()

    report = MaintenanceReport(expired=expired, idle=idle)
    if report.total:
        logger.info(f"[SWEEP] Deactivated {expired} expired and {idle} idle key(s)")
    else:
        logger.debug("[SWEEP] Nothing to deactivate")
    return report
