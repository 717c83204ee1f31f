"""Checklist optimization, live suggestions and completion analysis."""

import json

from galley.features.ai.client import GenerationConfig
from galley.features.ai.orchestrator import AITask, run_task
from galley.models.operations import ChecklistRequest, ChecklistResult

_SECTIONS = {
    "optimize": (
        "Analyze this restaurant checklist and provide optimization suggestions.",
        [
            "priorityRecommendations: items that should be reprioritized with new priority levels",
            "sequenceOptimization: recommended order of tasks for maximum efficiency",
            "timeEstimates: improved time estimates based on restaurant best practices",
            "additionalTasks: suggested tasks that might be missing from this checklist",
            "efficiencyTips: specific tips to complete tasks faster or better",
        ],
        "Focus on restaurant operational efficiency, safety and compliance.",
    ),
    "suggest": (
        "Based on this restaurant checklist progress, provide helpful suggestions.",
        [
            "immediateActions: what should be done right now based on incomplete high-priority tasks",
            "riskAlerts: potential risks from incomplete tasks",
            "resourceAllocation: how to best allocate staff and time",
            "qualityChecks: important quality checkpoints to add",
            "suggestions: general helpful tips for the current situation",
        ],
        "Focus on food safety, service quality and operational efficiency.",
    ),
    "analyze": (
        "Analyze this restaurant checklist completion and provide insights.",
        [
            "completionInsights: analysis of completion patterns and efficiency",
            "performanceMetrics: key metrics about the checklist execution",
            "bottlenecks: identified bottlenecks or problem areas",
            "recommendations: recommendations for improvement",
            "compliance: assessment of safety and compliance status",
        ],
        "Focus on operational performance and continuous improvement.",
    ),
}


def build_checklist_prompt(req: ChecklistRequest) -> str:
    intro, keys, focus = _SECTIONS[req.request_type]
    items = json.dumps([item.model_dump(by_alias=True) for item in req.items], indent=2)
    key_lines = "\n".join(f"- {k}" for k in keys)
    return f"""{intro}

Checklist items:
{items}

Context: {req.context}

Respond with a JSON object containing:
{key_lines}

{focus}"""


def fallback_checklist(req: ChecklistRequest) -> dict:
    completed = sum(1 for item in req.items if item.completed)
    urgent = sum(1 for item in req.items if not item.completed and item.priority == "high")
    return {
        "immediateActions": [f"Focus on {urgent} high-priority tasks first"]
        if urgent
        else ["Continue with remaining tasks at steady pace"],
        "suggestions": [
            f"{completed}/{len(req.items)} tasks completed - good progress!",
            "Maintain food safety standards throughout all tasks",
            "Communicate any delays to the team immediately",
        ],
    }


CHECKLIST_TASK = AITask(
    name="checklist.optimize",
    build_prompt=build_checklist_prompt,
    schema=ChecklistResult,
    fallback=fallback_checklist,
    config=GenerationConfig(temperature=0.4, top_k=1, top_p=1.0, max_output_tokens=1536),
)


async def optimize_checklist(req: ChecklistRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(CHECKLIST_TASK, req, client, user_id=user_id)
    result = {k: v for k, v in outcome.data.items() if v is not None}
    return outcome.envelope(result=result, requestType=req.request_type)
