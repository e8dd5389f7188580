from boxoffice.workers.base import PeriodicWorker
from boxoffice.workers.expiration_sweeper import ExpirationSweeper
from boxoffice.workers.lock_scheduler import LockRunResult, LockScheduler, SessionLockResult

__all__ = [
    "PeriodicWorker",
    "ExpirationSweeper",
    "LockScheduler",
    "LockRunResult",
    "SessionLockResult",
]
