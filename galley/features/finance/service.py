"""Cash drawer analysis."""

import json
from collections import Counter
from typing import Dict

from galley.features.ai.client import GenerationConfig
from galley.features.ai.orchestrator import AITask, run_task
from galley.models.operations import CashAnalysis, CashAnalysisRequest

NEGATIVE_FLOW_ALERT = -100.0


def cash_totals(req: CashAnalysisRequest) -> Dict[str, float]:
    total_in = sum(t.amount for t in req.transactions if t.type == "in")
    total_out = sum(t.amount for t in req.transactions if t.type == "out")
    return {"total_in": total_in, "total_out": total_out, "net": total_in - total_out}


def most_common_reason(req: CashAnalysisRequest) -> str:
    reasons = Counter(t.reason for t in req.transactions if t.reason)
    if not reasons:
        return "N/A"
    return reasons.most_common(1)[0][0]


def build_cash_prompt(req: CashAnalysisRequest) -> str:
    totals = cash_totals(req)
    summary = [
        {"type": t.type, "amount": t.amount, "reason": t.reason, "server": t.server_name, "time": t.timestamp}
        for t in req.transactions
    ]
    return f"""Analyze these cash drawer transactions and provide insights:

Current Balance: ${req.current_balance:.2f}
Total Cash In: ${totals['total_in']:.2f}
Total Cash Out: ${totals['total_out']:.2f}
Net Cash Flow: ${totals['net']:.2f}

Transactions:
{json.dumps(summary, indent=2)}

Please provide:
1. Cash flow status (positive/negative and by how much)
2. Key patterns or concerns
3. Recommendations for cash management
4. Any red flags or unusual activity

Format your response as JSON with these fields:
- status: "positive" | "negative" | "balanced"
- netAmount: number
- summary: string (2-3 sentences)
- patterns: string array
- recommendations: string array
- alerts: string array"""


def fallback_cash_analysis(req: CashAnalysisRequest) -> dict:
    totals = cash_totals(req)
    net = totals["net"]
    direction = "positive" if net >= 0 else "negative"
    return {
        "status": direction,
        "netAmount": round(net, 2),
        "summary": f"Cash flow is {direction} with a net of ${abs(net):.2f}. "
        f"{len(req.transactions)} transactions processed.",
        "patterns": [
            f"Total cash in: ${totals['total_in']:.2f}",
            f"Total cash out: ${totals['total_out']:.2f}",
            f"Most common reason: {most_common_reason(req)}",
        ],
        "recommendations": [
            "Monitor cash outflow - you're paying out more than receiving" if net < 0 else "Cash flow looks healthy",
            "Track server tip-outs and settlements carefully",
        ],
        "alerts": ["High negative cash flow detected"] if net < NEGATIVE_FLOW_ALERT else [],
    }


CASH_TASK = AITask(
    name="cash.analyze",
    build_prompt=build_cash_prompt,
    schema=CashAnalysis,
    fallback=fallback_cash_analysis,
    config=GenerationConfig(temperature=0.3, top_p=0.8, max_output_tokens=1000),
)


async def analyze_cash(req: CashAnalysisRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(CASH_TASK, req, client, user_id=user_id)
    return outcome.envelope(**outcome.data)
