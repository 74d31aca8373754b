"""Quiz and examination attempt engine."""

from .models import Attempt, AttemptState
from .scoring import ScoreResult, is_correct, score_answers, validate_answer
from .service import AttemptOverview, AttemptPolicy, AttemptService
from .state_machine import AttemptStateMachine


__all__ = [
    "Attempt",
    "AttemptOverview",
    "AttemptPolicy",
    "AttemptService",
    "AttemptState",
    "AttemptStateMachine",
    "ScoreResult",
    "is_correct",
    "score_answers",
    "validate_answer",
]
