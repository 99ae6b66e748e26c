"""Eligibility evaluation."""

from lifecycle_spine.evaluation.engine import Decision, EvaluationEngine, EvaluationReport, Explanation

__all__ = ["Decision", "EvaluationEngine", "EvaluationReport", "Explanation"]
