"""arq worker settings module.

Import path for arq CLI: arq hibilog.workers.settings.WorkerSettings
"""

from __future__ import annotations

from hibilog.workers.hunger_check import WorkerSettings

__all__ = ["WorkerSettings"]
