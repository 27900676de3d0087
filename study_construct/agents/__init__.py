"""AI agents for quiz generation."""

from .approval import ApprovalGate, auto_approve
from .extractor import DocumentExtractor
from .generator import build_fallback_questions, plan_generation_tasks, run_generation_task
from .recovery import parse_questions, recover_questions
from .researcher import ResearchAgent, compute_focus

__all__ = [
    "ApprovalGate",
    "auto_approve",
    "DocumentExtractor",
    "build_fallback_questions",
    "plan_generation_tasks",
    "run_generation_task",
    "parse_questions",
    "recover_questions",
    "ResearchAgent",
    "compute_focus",
]
