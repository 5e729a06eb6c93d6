"""
Фоновые воркеры.
"""

from ev_platform.worker.base import BaseWorker
from ev_platform.worker.sync_recovery import CitySyncRecoveryWorker

__all__ = ["BaseWorker", "CitySyncRecoveryWorker"]
