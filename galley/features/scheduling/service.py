"""
galley/features/scheduling/service.py

Weekly staff scheduling.

Shifts are filled greedily, day by day, from the staff who are available,
not on a day off and still under their weekly hours. Who goes first
depends on the optimization goal. The model writes the narrative; the
roster, costs and conflicts are computed here.
"""

import json
import math
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from galley.features.ai.client import GenerationConfig
from galley.features.ai.orchestrator import AITask, run_task
from galley.models.scheduling import ScheduleRequest, StaffMember

DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
SHIFTS = ("breakfast", "lunch", "dinner", "closing")
PEAK_DAYS = ("Friday", "Saturday")

SHIFT_TIMES: Dict[str, Tuple[str, str, int]] = {
    "breakfast": ("06:00", "11:00", 5),
    "lunch": ("11:00", "16:00", 5),
    "dinner": ("16:00", "22:00", 6),
    "closing": ("22:00", "24:00", 2),
}
BASE_REVENUE = {"breakfast": 500, "lunch": 800, "dinner": 1200, "closing": 300}

TARGET_LABOR_RATIO = 0.30


def week_dates(start: Optional[date]) -> Dict[str, date]:
    """Monday-based dates for the week being planned (next Monday by default)."""
    if start is None:
        today = date.today()
        start = today + timedelta(days=(7 - today.weekday()) % 7 or 7)
    monday = start - timedelta(days=start.weekday())
    return {day: monday + timedelta(days=offset) for offset, day in enumerate(DAYS)}


def required_staff(shift: str, day: str, req: ScheduleRequest) -> int:
    base = getattr(req.constraints.required_coverage, shift)
    multiplier = 1.5 if day in PEAK_DAYS else 1
    return math.ceil(base * multiplier)


def shift_revenue(shift: str, day: str) -> float:
    return BASE_REVENUE[shift] * (1.8 if day in PEAK_DAYS else 1)


def shift_priority(shift: str, day: str) -> str:
    if shift == "dinner" and day in PEAK_DAYS:
        return "high"
    if shift in ("lunch", "dinner"):
        return "medium"
    return "low"


def _value_score(staff: StaffMember) -> float:
    return staff.performance.rating * staff.performance.efficiency / staff.hourly_rate


def _prefers(staff: StaffMember, shift: str) -> bool:
    return shift in (s.lower() for s in staff.preferences.preferred_shifts)


def _rank_key(optimization_type: str, shift: str) -> Callable[[StaffMember], tuple]:
    if optimization_type == "cost":
        return lambda staff: (staff.hourly_rate, -_value_score(staff))
    if optimization_type == "coverage":
        return lambda staff: (-staff.performance.reliability, -_value_score(staff))
    if optimization_type == "satisfaction":
        return lambda staff: (not _prefers(staff, shift), -_value_score(staff))
    return lambda staff: (-_value_score(staff),)


def is_available(staff: StaffMember, day: str, shift: str) -> bool:
    if day.lower() in (d.lower() for d in staff.preferences.days_off):
        return False
    for slot in staff.availability:
        if slot.day.lower() != day.lower():
            continue
        if slot.shift_type is None or slot.shift_type.lower() == shift:
            return True
    return False


def _reason(staff: StaffMember, shift: str, optimization_type: str) -> str:
    if _prefers(staff, shift):
        return f"Prefers {shift} shifts; strong {staff.role} fit"
    if optimization_type == "cost":
        return f"Lowest-cost available {staff.role} for {shift}"
    return f"Optimal {staff.role} for {shift} shift based on performance and availability"


def build_roster(req: ScheduleRequest) -> Tuple[List[dict], List[dict]]:
    """Return (assignments, unfilled slots)."""
    dates = week_dates(req.week_start)
    hours_worked = {staff.id: 0.0 for staff in req.current_schedule}
    schedule, unfilled = [], []

    for day in DAYS:
        for shift in SHIFTS:
            start, end, hours = SHIFT_TIMES[shift]
            needed = required_staff(shift, day, req)
            candidates = [
                staff
                for staff in req.current_schedule
                if is_available(staff, day, shift)
                and hours_worked[staff.id] + hours <= staff.preferences.max_hours_per_week
            ]
            candidates.sort(key=_rank_key(req.optimization_type, shift))
            assigned = candidates[:needed]
            for staff in assigned:
                hours_worked[staff.id] += hours
                schedule.append(
                    {
                        "staffId": staff.id,
                        "staffName": staff.name,
                        "role": staff.role,
                        "date": dates[day].isoformat(),
                        "day": day,
                        "startTime": start,
                        "endTime": end,
                        "shiftType": shift,
                        "hours": hours,
                        "estimatedRevenue": shift_revenue(shift, day),
                        "cost": round(staff.hourly_rate * hours, 2),
                        "priority": shift_priority(shift, day),
                        "preferred": _prefers(staff, shift),
                        "reasonAssigned": _reason(staff, shift, req.optimization_type),
                    }
                )
            if len(assigned) < needed:
                unfilled.append(
                    {
                        "day": day,
                        "shiftType": shift,
                        "required": needed,
                        "assigned": len(assigned),
                        "priority": shift_priority(shift, day),
                    }
                )
    return schedule, unfilled


def find_conflicts(req: ScheduleRequest, unfilled: List[dict], total_cost: float) -> List[dict]:
    conflicts = [
        {
            "type": "understaffed",
            "severity": "critical" if gap["priority"] == "high" else "warning",
            "description": f"{gap['day']} {gap['shiftType']} has {gap['assigned']} of {gap['required']} staff",
            "affectedShifts": [f"{gap['day']} {gap['shiftType']}"],
            "suggestions": ["Hire additional staff for this shift", "Offer overtime incentives"],
        }
        for gap in unfilled
    ]
    budget = req.constraints.budget_limit
    if budget is not None and total_cost > budget:
        conflicts.append(
            {
                "type": "budget",
                "severity": "critical",
                "description": f"Labor cost ${total_cost:,.2f} exceeds the ${budget:,.2f} budget",
                "affectedShifts": [],
                "suggestions": ["Use the cost-optimized alternative", "Trim low-priority shifts"],
            }
        )
    return conflicts


def schedule_metrics(req: ScheduleRequest, schedule: List[dict], unfilled: List[dict]) -> dict:
    total_cost = round(sum(shift["cost"] for shift in schedule), 2)
    required = sum(required_staff(shift, day, req) for day in DAYS for shift in SHIFTS)
    revenue = sum(shift_revenue(shift, day) for day in DAYS for shift in SHIFTS)
    staff = {member.id: member for member in req.current_schedule}
    # staff with no stated preference are content with any shift
    preferred = [s for s in schedule if s["preferred"] or not staff[s["staffId"]].preferences.preferred_shifts]
    labor_ratio = total_cost / revenue if revenue else 0.0
    return {
        "totalCost": total_cost,
        "coverageScore": round(len(schedule) / required * 100, 1) if required else 100.0,
        "satisfactionScore": round(len(preferred) / len(schedule) * 100, 1) if schedule else 0.0,
        "efficiencyScore": round(max(0.0, 100 - max(0.0, labor_ratio - TARGET_LABOR_RATIO) * 100), 1),
        "laborCostRatio": round(labor_ratio, 3),
        "conflicts": find_conflicts(req, unfilled, total_cost),
    }


def schedule_recommendations(metrics: dict, unfilled: List[dict]) -> List[str]:
    recommendations = []
    if unfilled:
        worst = {gap["shiftType"] for gap in unfilled}
        recommendations.append("Recruit or cross-train staff for " + ", ".join(sorted(worst)) + " shifts")
    if metrics["laborCostRatio"] > TARGET_LABOR_RATIO:
        recommendations.append("Labor cost is above 30% of projected revenue; review low-priority shifts")
    if metrics["satisfactionScore"] < 70:
        recommendations.append("Match more assignments to staff shift preferences to protect retention")
    if not recommendations:
        recommendations.append("The roster covers every shift within budget; keep it as the weekly baseline")
    return recommendations


def alternatives(schedule: List[dict]) -> dict:
    by_cost = sorted(schedule, key=lambda shift: shift["cost"])
    return {
        "costOptimized": by_cost[: int(len(schedule) * 0.8)],
        "coverageOptimized": list(schedule),
        "balancedOptimized": [shift for shift in schedule if shift["priority"] != "low"],
    }


def optimize_roster(req: ScheduleRequest) -> dict:
    schedule, unfilled = build_roster(req)
    metrics = schedule_metrics(req, schedule, unfilled)
    return {
        "schedule": schedule,
        "metrics": metrics,
        "recommendations": schedule_recommendations(metrics, unfilled),
        "alternatives": alternatives(schedule),
    }


def build_schedule_prompt(req: ScheduleRequest) -> str:
    staff = [member.model_dump(by_alias=True) for member in req.current_schedule]
    return f"""As an expert restaurant operations manager and scheduling specialist, analyze and optimize this staff schedule.

CURRENT STAFF DATA:
{json.dumps(staff, indent=2)}

SCHEDULING CONSTRAINTS:
{json.dumps(req.constraints.model_dump(by_alias=True), indent=2)}

BUSINESS METRICS:
{json.dumps(req.business_data, indent=2, default=str)}

OPTIMIZATION TYPE: {req.optimization_type}

Cover staffing gaps and overlaps, shift assignments by skill and performance, labor cost
against revenue, staff satisfaction, cost/coverage/balanced alternatives and how to resolve
conflicts. Consider peak hours, labor law and break requirements, and backup coverage."""


def fallback_schedule_analysis(req: ScheduleRequest) -> str:
    roster = optimize_roster(req)
    metrics = roster["metrics"]
    return (
        f"Scheduled {len(roster['schedule'])} shifts at ${metrics['totalCost']:,.2f} "
        f"with {metrics['coverageScore']}% coverage. " + " ".join(roster["recommendations"])
    )


SCHEDULE_TASK = AITask(
    name="scheduling.optimize",
    build_prompt=build_schedule_prompt,
    fallback=fallback_schedule_analysis,
    config=GenerationConfig(temperature=0.4, top_k=40, top_p=0.8, max_output_tokens=4096),
    model_tier="pro",
)


async def optimize_schedule(req: ScheduleRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(SCHEDULE_TASK, req, client, user_id=user_id)
    return outcome.envelope(
        optimizedSchedule=optimize_roster(req),
        optimizationType=req.optimization_type,
        aiAnalysis=outcome.data,
    )
