"""Per-user AppData document: models, storage and derived values."""

from lifeos.appdata.models import AppData, Goal, JobApplication, Loan, ResumeData
from lifeos.appdata.repository import (
    AppDataCorruptError,
    AppDataRepository,
    AppDataStore,
    get_store,
)

__all__ = [
    "AppData",
    "AppDataCorruptError",
    "AppDataRepository",
    "AppDataStore",
    "Goal",
    "JobApplication",
    "Loan",
    "ResumeData",
    "get_store",
]
