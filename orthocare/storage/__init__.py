"""Patient record storage."""

from .patient_store import PatientRecordStore, JsonPatientStore, sort_by_clinical_date

__all__ = [
    "PatientRecordStore",
    "JsonPatientStore",
    "sort_by_clinical_date",
]
