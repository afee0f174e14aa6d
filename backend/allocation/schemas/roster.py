from __future__ import annotations

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PrivateAttr, field_validator, model_validator

from allocation.core.config import get_settings
from allocation.core.exceptions import ResourceNotFoundError
from allocation.schemas.allocation import BatchMode


TRUTHY_VALUES = {"true", "1", "yes", "y"}


def normalize_id(value: str) -> str:
    return str(value).strip()


def normalize_code(value: str) -> str:
    return normalize_id(value).upper()


def require_key(value: str, label: str) -> str:
    if not value:
        raise ValueError(f"{label} cannot be blank")
    return value


def normalize_codes(value: str | list[str] | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    seen: set[str] = set()
    normalized_codes: list[str] = []
    for item in value:
        code = normalize_code(item)
        if not code:
            continue
        if len(code) > 50:
            raise ValueError("Subject code length cannot exceed 50 characters")
        if code in seen:
            continue
        seen.add(code)
        normalized_codes.append(code)
    return normalized_codes


def _default_max_hours() -> int:
    return get_settings().default_teacher_max_hours


class RoomType(str, Enum):
    classroom = "Classroom"
    lab = "Lab"


class Teacher(BaseModel):
    model_config = ConfigDict(frozen=True)

    mis_id: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr | None = None
    designation: str = Field(default="Professor", min_length=1, max_length=200)
    subject_preferences: list[str] = Field(default_factory=list, max_length=100)
    max_hours: int = Field(default_factory=_default_max_hours, ge=1, le=200)
    shift: str = "Morning"
    preferred_shift: str = "General"

    @field_validator("mis_id")
    @classmethod
    def strip_mis_id(cls, value: str) -> str:
        return require_key(normalize_id(value), "mis_id")

    @field_validator("subject_preferences", mode="before")
    @classmethod
    def normalize_subject_preferences(cls, value: str | list[str] | None) -> list[str]:
        return normalize_codes(value)

    def prefers(self, subject_code: str) -> bool:
        return normalize_code(subject_code) in self.subject_preferences


class Subject(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    department: str = "CSE"
    semester: int = Field(default=3, ge=1, le=20)
    weekly_load: str = "3,1"
    requires_lab: bool = False
    total_hours: int = Field(default=4, ge=1, le=100)

    @field_validator("code")
    @classmethod
    def normalize_subject_code(cls, value: str) -> str:
        return require_key(normalize_code(value), "Subject code")

    @field_validator("requires_lab", mode="before")
    @classmethod
    def parse_requires_lab(cls, value: object) -> bool:
        # Spreadsheet exports deliver this flag as text, numbers or blanks.
        if value is None or value == "":
            return False
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        return str(value).strip().lower() in TRUTHY_VALUES

    @property
    def default_mode(self) -> BatchMode:
        return BatchMode.separate if self.requires_lab else BatchMode.combined


class Room(BaseModel):
    model_config = ConfigDict(frozen=True)

    room_id: str = Field(min_length=1, max_length=100)
    room_no: str = ""
    name: str = ""
    capacity: int = Field(ge=1, le=1000)
    room_type: RoomType = RoomType.classroom
    equipment: str = "Projector"

    @model_validator(mode="before")
    @classmethod
    def fill_room_labels(cls, data: object) -> object:
        if isinstance(data, dict) and data.get("room_id"):
            data = dict(data)
            data.setdefault("room_no", data["room_id"])
            data.setdefault("name", data.get("room_no") or data["room_id"])
        return data

    @field_validator("room_id")
    @classmethod
    def strip_room_id(cls, value: str) -> str:
        return require_key(normalize_id(value), "room_id")

    @property
    def is_lab(self) -> bool:
        return self.room_type == RoomType.lab

    @property
    def equipment_list(self) -> list[str]:
        return [item.strip() for item in self.equipment.split(",") if item.strip()]


class Division(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, max_length=100)
    semester: int = Field(ge=1, le=20)
    strength: int = Field(ge=1, le=1000)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return require_key(" ".join(value.split()), "Division name")

    @property
    def letter(self) -> str:
        # "Division A" -> "A"
        parts = self.name.split()
        return parts[1] if len(parts) > 1 else parts[0]


class SubBatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    students: int


class Batch(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    division: str
    semester: int
    strength: int
    sub_batches: tuple[SubBatch, SubBatch]

    @classmethod
    def from_division(cls, division: Division, department: str = "CSE") -> "Batch":
        letter = division.letter
        return cls(
            key=f"{letter}-{division.semester}",
            name=f"{department}-{letter} Semester {division.semester}",
            division=letter,
            semester=division.semester,
            strength=division.strength,
            sub_batches=(
                SubBatch(id=f"{letter}1", name=f"Batch {letter}1", students=math.ceil(division.strength / 2)),
                SubBatch(id=f"{letter}2", name=f"Batch {letter}2", students=division.strength // 2),
            ),
        )

    @property
    def largest_sub_batch(self) -> int:
        return max(item.students for item in self.sub_batches)


class Roster(BaseModel):
    """Read-only snapshot of one planning session's inputs.

    List order is significant: the allocators use it to break ties.
    """

    teachers: list[Teacher] = Field(default_factory=list)
    subjects: list[Subject] = Field(default_factory=list)
    rooms: list[Room] = Field(default_factory=list)
    divisions: list[Division] = Field(default_factory=list)
    department: str = Field(default_factory=lambda: get_settings().default_department)

    _teachers_by_id: dict[str, Teacher] = PrivateAttr(default_factory=dict)
    _subjects_by_code: dict[str, Subject] = PrivateAttr(default_factory=dict)
    _rooms_by_id: dict[str, Room] = PrivateAttr(default_factory=dict)
    _batches: list[Batch] = PrivateAttr(default_factory=list)
    _batches_by_key: dict[str, Batch] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def validate_unique_keys(self) -> "Roster":
        for label, keys in (
            ("teacher mis_id", [item.mis_id for item in self.teachers]),
            ("subject code", [item.code for item in self.subjects]),
            ("room id", [item.room_id for item in self.rooms]),
            ("batch key", [Batch.from_division(item).key for item in self.divisions]),
        ):
            seen: set[str] = set()
            for key in keys:
                if key in seen:
                    raise ValueError(f"Duplicate {label}: {key}")
                seen.add(key)
        return self

    def model_post_init(self, context: object) -> None:
        self._teachers_by_id = {item.mis_id: item for item in self.teachers}
        self._subjects_by_code = {item.code: item for item in self.subjects}
        self._rooms_by_id = {item.room_id: item for item in self.rooms}
        self._batches = [Batch.from_division(item, self.department) for item in self.divisions]
        self._batches_by_key = {item.key: item for item in self._batches}

    @property
    def batches(self) -> list[Batch]:
        return list(self._batches)

    def teacher(self, teacher_id: str) -> Teacher:
        teacher = self._teachers_by_id.get(normalize_id(teacher_id))
        if teacher is None:
            raise ResourceNotFoundError("Teacher", teacher_id)
        return teacher

    def subject(self, subject_code: str) -> Subject:
        subject = self._subjects_by_code.get(normalize_code(subject_code))
        if subject is None:
            raise ResourceNotFoundError("Subject", subject_code)
        return subject

    def room(self, room_id: str) -> Room:
        key = normalize_id(room_id)
        room = self._rooms_by_id.get(key)
        if room is None:
            # Operators usually pick rooms by their door number.
            room = next((item for item in self.rooms if item.room_no == key), None)
        if room is None:
            raise ResourceNotFoundError("Room", room_id)
        return room

    def batch(self, batch_key: str) -> Batch:
        batch = self._batches_by_key.get(normalize_id(batch_key))
        if batch is None:
            raise ResourceNotFoundError("Batch", batch_key)
        return batch
