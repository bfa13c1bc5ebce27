"""Personalization engine for ShopRec.

This module contains the behavioral event store, the profile builder that
aggregates events into category affinities and view statistics, the heuristic
scoring engine, the section assembler and the feedback/metrics sink.
"""

from src.personalization.service import PersonalizationService

__all__ = ["PersonalizationService"]
