"""
galley/models/scheduling.py

Staff roster shapes for ai-scheduling-optimizer.
"""

from datetime import date
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Field

from galley.models.common import CamelModel

Number = Union[int, float]


class TimeSlot(CamelModel):
    day: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    shift_type: Optional[str] = None


class StaffPreferences(CamelModel):
    preferred_shifts: List[str] = []
    max_hours_per_week: Number = 40
    days_off: List[str] = []


class StaffPerformance(CamelModel):
    rating: Number = 3
    efficiency: Number = 1
    reliability: Number = 1


class StaffMember(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    role: str = "staff"
    hourly_rate: Number = Field(gt=0)
    availability: List[TimeSlot] = []
    skills: List[str] = []
    preferences: StaffPreferences = Field(default_factory=StaffPreferences)
    performance: StaffPerformance = Field(default_factory=StaffPerformance)


class RequiredCoverage(CamelModel):
    breakfast: int = Field(default=2, ge=0)
    lunch: int = Field(default=2, ge=0)
    dinner: int = Field(default=2, ge=0)
    closing: int = Field(default=2, ge=0)


class ScheduleConstraints(CamelModel):
    min_staff_per_shift: Dict[str, int] = {}
    max_consecutive_days: int = 6
    min_rest_hours: Number = 8
    budget_limit: Optional[Number] = None
    required_coverage: RequiredCoverage = Field(default_factory=RequiredCoverage)


class ScheduleRequest(CamelModel):
    current_schedule: List[StaffMember] = Field(min_length=1)
    constraints: ScheduleConstraints = Field(default_factory=ScheduleConstraints)
    business_data: Dict[str, Any] = {}
    optimization_type: Literal["cost", "coverage", "satisfaction", "balanced"] = "balanced"
    week_start: Optional[date] = None
