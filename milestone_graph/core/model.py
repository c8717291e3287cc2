from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal, Optional, Union


SUBTASK_COMPLETE = "Complete"

DateFormat = Literal["DD/MM/YY", "MM/DD/YY"]


@dataclass(frozen=True)
class Auto:
    """Position comes from the level layout."""


@dataclass(frozen=True)
class Manual:
    """User-set position; wins over the level layout until reset."""

    x: float
    y: float


Placement = Union[Auto, Manual]

AUTO = Auto()


@dataclass(frozen=True)
class Subtask:
    id: str
    name: str
    description: str = ""
    assigned_to: str = ""
    notes: str = ""
    status: str = "Not started"
    link: Optional[str] = None
    completed_at: Optional[int] = None  # epoch ms

    @property
    def is_complete(self) -> bool:
        return self.status == SUBTASK_COMPLETE


@dataclass(frozen=True)
class Milestone:
    id: str
    name: str
    estimated_duration: int = 0  # days
    depends_on: tuple[str, ...] = ()
    placement: Placement = AUTO
    completed_at: Optional[int] = None  # epoch ms
    subtasks: tuple[Subtask, ...] = ()

    @property
    def is_complete(self) -> bool:
        return bool(self.subtasks) and all(s.is_complete for s in self.subtasks)


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    start_date: date
    milestones: tuple[Milestone, ...] = ()
    company: str = ""
    type: str = ""
    created_at: int = 0  # epoch ms
    updated_at: int = 0  # epoch ms

    # Financials in $K; carried through untouched.
    cash_requirement: Optional[float] = None
    debt_requirement: Optional[float] = None
    value_at_completion: Optional[float] = None
    profit: Optional[float] = None

    def milestones_by_id(self) -> dict[str, Milestone]:
        return {m.id: m for m in self.milestones}


DEFAULT_PROJECT_TYPES: tuple[str, ...] = (
    "Subdivision",
    "Greenfield Development",
    "Commercial",
    "Residential",
    "Other",
    "Build",
    "Brownfield development",
    "Flip",
)
DEFAULT_COMPANIES: tuple[str, ...] = ("MyBuild", "LandmarX", "HealX")
DEFAULT_PEOPLE: tuple[str, ...] = ("Jorian", "Kiera", "Beau", "Other")
DEFAULT_STATUSES: tuple[str, ...] = ("Started", "Held", "Complete", "Not started")
DEFAULT_DATE_FORMAT: DateFormat = "DD/MM/YY"


@dataclass(frozen=True)
class AppSettings:
    project_types: tuple[str, ...] = DEFAULT_PROJECT_TYPES
    companies: tuple[str, ...] = DEFAULT_COMPANIES
    people: tuple[str, ...] = DEFAULT_PEOPLE
    statuses: tuple[str, ...] = DEFAULT_STATUSES
    date_format: DateFormat = DEFAULT_DATE_FORMAT


@dataclass(frozen=True)
class Snapshot:
    projects: tuple[Project, ...] = ()
    settings: AppSettings = field(default_factory=AppSettings)

    def get_project(self, project_id: str) -> Optional[Project]:
        for p in self.projects:
            if p.id == project_id:
                return p
        return None
