"""Database models for the learning buddy."""

from lernbuddy.models.base import Base, get_db, get_session_factory, init_db, AsyncSessionLocal
from lernbuddy.models.profile import Profile, UserInterest
from lernbuddy.models.competency import Competency, CompetencyProgress
from lernbuddy.models.assessment import SubjectAssessment
from lernbuddy.models.session import LearningSession
from lernbuddy.models.task import TaskPackage, TaskItem

__all__ = [
    "Base",
    "get_db",
    "get_session_factory",
    "init_db",
    "AsyncSessionLocal",
    "Profile",
    "UserInterest",
    "Competency",
    "CompetencyProgress",
    "SubjectAssessment",
    "LearningSession",
    "TaskPackage",
    "TaskItem",
]
