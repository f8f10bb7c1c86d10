"""Patient record, intake form and extraction models."""

from collections.abc import Mapping
import datetime as dt
from typing import Any, Dict, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Fields the intake form exposes, in display order. Names match the keys
# produced by the field extractor.
FORM_FIELDS = (
    "patientName",
    "age",
    "diagnosis",
    "procedure",
    "hospital",
    "expectations",
    "followUpParameters",
    "kWireRemoval",
    "splintChangeRemoval",
    "typeAndSutureRemoval",
    "followUpFirst",
    "followUpSecond",
    "followUpThird",
)

FIELD_LABELS = {
    "patientName": "Patient name",
    "age": "Age",
    "diagnosis": "Diagnosis",
    "procedure": "Procedure",
    "hospital": "Hospital",
    "expectations": "Expectations",
    "followUpParameters": "Follow-up parameters",
    "kWireRemoval": "K-wire removal",
    "splintChangeRemoval": "Splint change/removal",
    "typeAndSutureRemoval": "Type and suture removal",
    "followUpFirst": "First follow-up",
    "followUpSecond": "Second follow-up",
    "followUpThird": "Third follow-up",
}


class ExtractedFields(Mapping):
    """Immutable sparse mapping of form field name to extracted value.

    Fields that were not recognized are absent; an empty string is never stored.
    """

    def __init__(self, values: Optional[Dict[str, str]] = None):
        self._values = {k: v for k, v in (values or {}).items() if v}

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ExtractedFields({self._values!r})"


class PlannedFollowUps(BaseModel):
    model_config = ConfigDict(extra="ignore")

    first: Optional[str] = None
    second: Optional[str] = None
    third: Optional[str] = None


class PatientRecord(BaseModel):
    """A patient as persisted by a PatientRecordStore.

    Serialized documents use camelCase keys, keep age as a string and the
    clinical date as YYYY-MM-DD.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    patient_name: str
    age: int = Field(ge=0, lt=150)
    date: Optional[dt.date] = None
    diagnosis: str
    procedure: Optional[str] = None
    hospital: str
    expectations: Optional[str] = None
    follow_up_parameters: Optional[str] = None
    k_wire_removal: Optional[str] = None
    splint_change_removal: Optional[str] = None
    type_and_suture_removal: Optional[str] = None
    planned_follow_ups: Optional[PlannedFollowUps] = None
    created_at: Optional[dt.datetime] = None

    @field_validator("patient_name", "diagnosis", "hospital")
    @classmethod
    def _required_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("This field is required")
        return value

    @field_validator("age", mode="before")
    @classmethod
    def _parse_age(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return value

    def to_document(self) -> Dict[str, Any]:
        """Document body for storage, without the id."""
        doc = self.model_dump(by_alias=True, exclude_none=True, exclude={"id"}, mode="json")
        doc["age"] = str(self.age)
        return doc

    @classmethod
    def from_document(cls, record_id: str, doc: Dict[str, Any]) -> "PatientRecord":
        data = {**doc, "id": record_id}
        # Stored age is text; unparseable values read back as 0
        age = str(data.get("age", "")).strip()
        data["age"] = int(age) if age.isdigit() else 0
        return cls.model_validate(data)

    def searchable_text(self) -> str:
        """Lower-cased text of every field the search covers."""
        parts = [
            self.patient_name,
            self.diagnosis,
            self.procedure,
            self.hospital,
            str(self.age),
            self.expectations,
            self.follow_up_parameters,
            self.k_wire_removal,
            self.splint_change_removal,
            self.type_and_suture_removal,
        ]
        return "\n".join(p.lower() for p in parts if p)


class PatientForm:
    """Mutable intake form state owned by the UI layer.

    Dictation only ever proposes values through ``apply``; reading values back
    and validating them is left to ``to_record``.
    """

    def __init__(self, values: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = {name: "" for name in FORM_FIELDS}
        for name, value in (values or {}).items():
            self.apply(name, value)

    def apply(self, name: str, value: str) -> None:
        if name not in self.values:
            raise KeyError(f"Unknown form field: {name}")
        self.values[name] = value

    def get(self, name: str) -> str:
        return self.values[name]

    def reset(self) -> None:
        for name in self.values:
            self.values[name] = ""

    def to_record(self, record_date: Optional[dt.date] = None) -> PatientRecord:
        """Validate the form into a create input (raises pydantic.ValidationError)."""
        v = {k: (val.strip() or None) for k, val in self.values.items()}
        follow_ups = None
        if v["followUpFirst"] or v["followUpSecond"] or v["followUpThird"]:
            follow_ups = PlannedFollowUps(
                first=v["followUpFirst"],
                second=v["followUpSecond"],
                third=v["followUpThird"],
            )
        return PatientRecord(
            patient_name=v["patientName"] or "",
            age=v["age"],
            date=record_date,
            diagnosis=v["diagnosis"] or "",
            procedure=v["procedure"],
            hospital=v["hospital"] or "",
            expectations=v["expectations"],
            follow_up_parameters=v["followUpParameters"],
            k_wire_removal=v["kWireRemoval"],
            splint_change_removal=v["splintChangeRemoval"],
            type_and_suture_removal=v["typeAndSutureRemoval"],
            planned_follow_ups=follow_ups,
        )
