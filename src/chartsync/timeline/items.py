"""
Timeline Items

Display units of the patient timeline. Each item carries the timestamp it
is sorted by, both parsed and as the original FHIR dateTime string.
"""

from typing import List, Literal, Optional, Union
from datetime import datetime

from pydantic import BaseModel, Field

from chartsync.fhir.types import Resource


class ObservationEntry(BaseModel):
    type: Literal["observation"] = "observation"
    observation: Resource


class ObservationGroupEntry(BaseModel):
    type: Literal["observation-group"] = "observation-group"
    title: str
    title_full: str = ""
    observations: List[Resource] = Field(default_factory=list)
    report: Optional[Resource] = None


class ProgressNoteEntry(BaseModel):
    type: Literal["progress-note"] = "progress-note"
    document: Resource


class MedicationAdministrationEntry(BaseModel):
    type: Literal["medication-administration"] = "medication-administration"
    meds: List[Resource] = Field(default_factory=list)


TimelineEntry = Union[
    ObservationEntry,
    ObservationGroupEntry,
    ProgressNoteEntry,
    MedicationAdministrationEntry,
]


def parse_fhir_datetime(value: str) -> datetime:
    """
    Parse a FHIR date or dateTime, keeping the wall-clock time as written.
    Partial dates (`2024`, `2024-01`) are taken as the first day.

    Raises:
        ValueError: the value is not a FHIR date/dateTime
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    if len(text) == 4:
        text += "-01-01"
    elif len(text) == 7:
        text += "-01"
    return datetime.fromisoformat(text)


class TimelineItem(BaseModel):
    """One row of the timeline."""
    id: str
    date_time: datetime
    date_time_string: str
    item: TimelineEntry = Field(discriminator="type")

    @classmethod
    def at(cls, id: str, date_time_string: str, item: TimelineEntry) -> "TimelineItem":
        return cls(
            id=id,
            date_time=parse_fhir_datetime(date_time_string),
            date_time_string=date_time_string,
            item=item,
        )

    @property
    def date_key(self) -> str:
        """`YYYYMMDD` of the item's own calendar date."""
        return f"{self.date_time.year}{self.date_time.month:02d}{self.date_time.day:02d}"

    def resources(self) -> List[Resource]:
        """Resources shown by this item."""
        entry = self.item
        if isinstance(entry, ObservationEntry):
            return [entry.observation]
        if isinstance(entry, ObservationGroupEntry):
            return ([entry.report] if entry.report else []) + list(entry.observations)
        if isinstance(entry, ProgressNoteEntry):
            return [entry.document]
        return list(entry.meds)
