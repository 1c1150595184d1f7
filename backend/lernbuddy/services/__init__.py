"""Services for the learning buddy."""

from lernbuddy.services.base import BaseAnalyzer
from lernbuddy.services.competency_selector import CompetencySelection, CompetencySelector
from lernbuddy.services.engagement_tracker import (
    EngagementTracker,
    classify_engagement,
    push_sample,
)
from lernbuddy.services.llm_gateway import (
    GatewayError,
    GatewayRequestError,
    GatewayStream,
    GatewayUnavailableError,
    LLMGatewayClient,
    QuotaExhaustedError,
    RateLimitedError,
)
from lernbuddy.services.progress_updater import (
    ProgressUpdate,
    ProgressUpdater,
    apply_progress,
    should_complete_task,
    should_track_progress,
)
from lernbuddy.services.task_simplifier import (
    SimplifiedTask,
    TaskSimplificationError,
    TaskSimplifier,
)
from lernbuddy.services.weakness_classifier import (
    KeywordWeaknessClassifier,
    ModelWeaknessClassifier,
    WeaknessClassifier,
    get_weakness_classifier,
)

__all__ = [
    # Base classes
    "BaseAnalyzer",
    # Chat turn pipeline
    "EngagementTracker",
    "classify_engagement",
    "push_sample",
    "CompetencySelection",
    "CompetencySelector",
    "ProgressUpdate",
    "ProgressUpdater",
    "apply_progress",
    "should_complete_task",
    "should_track_progress",
    # Weakness detection
    "WeaknessClassifier",
    "KeywordWeaknessClassifier",
    "ModelWeaknessClassifier",
    "get_weakness_classifier",
    # LLM gateway
    "LLMGatewayClient",
    "GatewayStream",
    "GatewayError",
    "GatewayRequestError",
    "GatewayUnavailableError",
    "QuotaExhaustedError",
    "RateLimitedError",
    # Tasks
    "SimplifiedTask",
    "TaskSimplificationError",
    "TaskSimplifier",
]
