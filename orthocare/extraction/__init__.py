"""Transcript-to-form field extraction."""

from .field_extractor import FieldExtractor, FieldRules, parse_patient_transcription

__all__ = [
    "FieldExtractor",
    "FieldRules",
    "parse_patient_transcription",
]
