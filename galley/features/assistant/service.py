"""Operations assistant personas and the app-modification advisor."""

from datetime import datetime, timezone

from galley.features.ai.client import GenerationConfig, text_part
from galley.features.ai.orchestrator import AITask, run_task
from galley.models.assistant import AppModifierRequest, AssistantRequest

DEFAULT_PERSONA = "problem-solver"

PERSONAS = {
    "training-coach": "You are an expert restaurant training and learning coach. Help with staff training, onboarding, "
    "skill development and effective training programs.",
    "problem-solver": "You are a restaurant operations problem-solving expert. Help solve operational challenges with "
    "step-by-step solutions, best practices and proven strategies for restaurant management.",
    "compliance-guide": "You are a restaurant compliance and safety expert. Provide guidance on health codes, safety "
    "protocols, regulatory compliance, HACCP, food safety and legal requirements for restaurants.",
    "leadership-mentor": "You are a restaurant leadership and management mentor. Help with management techniques, team "
    "building, employee motivation and positive workplace culture.",
    "procedure-builder": "You are a restaurant operations procedure specialist. Help create and optimize standard "
    "operating procedures, workflows and checklists.",
    "knowledge-base": "You are a comprehensive restaurant industry knowledge expert. Provide information on best "
    "practices, industry standards, guides and proven methodologies in restaurant management.",
    "performance-coach": "You are a restaurant performance and HR coach. Help with employee performance management, "
    "feedback systems, improvement plans and high-performing teams.",
    "crisis-manager": "You are a restaurant crisis management expert. Help handle difficult situations, customer "
    "complaints, emergency protocols and conflict resolution.",
    "research-assistant": "You are a restaurant industry research specialist. Provide industry trends, competitor "
    "analysis, market insights and data-driven recommendations.",
    "troubleshooter": "You are a restaurant equipment and systems troubleshooting expert. Help with equipment issues, "
    "POS systems, technical problems and maintenance.",
    "transcription": "You are an AI assistant that helps create realistic meeting transcripts with multiple speakers "
    "discussing restaurant operations, planning and decision-making.",
    "action-items": "You are an AI assistant specialized in extracting action items from meeting transcripts. Always "
    'respond with a JSON array in this exact format: [{"task": "description", "assignee": "person name or null", '
    '"dueDate": "date string or null", "priority": "low|medium|high", "completed": false}]',
}

_GUIDANCE = """Always provide:
1. Practical, actionable advice
2. Specific steps when possible
3. Industry best practices
4. Safety considerations when relevant
5. Cost-effective solutions

Keep responses concise but comprehensive."""


def system_prompt_for(assistant_type: str) -> str:
    return f"{PERSONAS.get(assistant_type, PERSONAS[DEFAULT_PERSONA])}\n\n{_GUIDANCE}"


def build_assistant_prompt(req: AssistantRequest):
    parts = [text_part(system_prompt_for(req.assistant_type))]
    if req.conversation_history:
        transcript = "\n".join(
            f"{'User' if turn.role == 'user' else 'Assistant'}: {turn.content}"
            for turn in req.conversation_history
        )
        parts.append(text_part(f"Conversation so far:\n{transcript}"))
    parts.append(text_part(f"User: {req.message}"))
    return parts


ASSISTANT_TASK = AITask(
    name="assistant.chat",
    build_prompt=build_assistant_prompt,
    config=GenerationConfig(temperature=0.7, top_k=40, top_p=0.8, max_output_tokens=1024),
)


async def ask_assistant(req: AssistantRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(ASSISTANT_TASK, req, client, user_id=user_id)
    return outcome.envelope(response=outcome.data, assistantType=req.assistant_type)


APP_FEATURES = (
    "Dashboard with stats and quick actions",
    "Staff scheduling and management",
    "Inventory tracking (bar inventory, store lists)",
    "Recipe management and prep lists",
    "Order management",
    "Forms and checklists",
    "Calendar and reminders",
    "Training modules",
    "Communications and video calls",
    "Document management",
    "Customer management",
    "Finance dashboard",
    "HACCP compliance",
    "Table management and reservations",
)


def build_modifier_prompt(req: AppModifierRequest):
    features = "\n".join(f"- {feature}" for feature in APP_FEATURES)
    system = f"""You are an AI assistant for a restaurant management app. The app has these main features:
{features}

When users ask to add or modify features, be specific about:
1. What component or page would need to be created or modified
2. What database tables might be needed
3. Step-by-step guidance for implementation
4. Best practices for restaurant operations"""
    request = f"User Request: {req.request}"
    if req.context:
        request = f"Context: {req.context}\n\n{request}"
    return [text_part(system), text_part(request)]


APP_MODIFIER_TASK = AITask(
    name="assistant.app_modifier",
    build_prompt=build_modifier_prompt,
    config=GenerationConfig(temperature=0.8, max_output_tokens=2048),
)


async def suggest_modification(req: AppModifierRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(APP_MODIFIER_TASK, req, client, user_id=user_id)
    return outcome.envelope(suggestion=outcome.data, timestamp=datetime.now(timezone.utc).isoformat())
