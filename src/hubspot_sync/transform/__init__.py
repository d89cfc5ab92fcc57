"""Normalization and dead-letter routing."""

from hubspot_sync.transform.dead_letter import DeadLetterRouter, DeadLetterSink, InMemoryDeadLetterSink
from hubspot_sync.transform.normalizer import (
    NormalizationResult,
    normalize,
    normalize_company,
    normalize_contact,
    normalize_deal,
)
from hubspot_sync.transform.stage import TransformStage

__all__ = [
    "DeadLetterRouter",
    "DeadLetterSink",
    "InMemoryDeadLetterSink",
    "NormalizationResult",
    "TransformStage",
    "normalize",
    "normalize_company",
    "normalize_contact",
    "normalize_deal",
]
