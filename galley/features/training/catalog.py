"""
galley/features/training/catalog.py

Seeds the shared course catalog from the model.

Two generators write new courses with their lessons:

ai-comprehensive-training-generator
    five categories of eight course titles each; callers may narrow the
    run with selectedCategories or category.
ai-web-training-content
    one category key per run, five courses each, every one with a stated
    focus.

Each course is one model call. A course whose answer is unusable is
reported and skipped, and the run goes on. Both endpoints also have a
research action that returns free text about training videos.
"""

import asyncio
import uuid
from typing import Any, Dict, List, Tuple

from sqlalchemy import insert

from galley.core.config import settings
from galley.core.database import courses, get_db_session, lessons
from galley.core.errors import ModelOutputError, UpstreamModelError, ValidationError
from galley.core.logging import log_event
from galley.features.ai.client import GenerationConfig
from galley.features.ai.orchestrator import AITask, run_task
from galley.features.training.service import lesson_rows
from galley.models.training import CatalogPlan, CatalogRequest, WebCatalogRequest

COMPREHENSIVE_CATALOG: Dict[str, List[str]] = {
    "POS System Training": [
        "Complete System Setup and Configuration",
        "Order Management Mastery",
        "Payment Processing Excellence",
        "Inventory Integration",
        "Reporting and Analytics",
        "Advanced Features and Customization",
        "Troubleshooting Common Issues",
        "Staff Training and Onboarding",
    ],
    "Food Safety & Compliance": [
        "Food Safety Fundamentals",
        "Temperature Control and Monitoring",
        "Cross-Contamination Prevention",
        "Personal Hygiene Standards",
        "Cleaning and Sanitization",
        "Foodborne Illness Prevention",
        "HACCP Implementation",
        "Health Department Compliance",
    ],
    "Culinary Skills Development": [
        "Knife Skills and Food Prep",
        "Cooking Methods and Techniques",
        "Sauce Making and Flavor Building",
        "Baking and Pastry Fundamentals",
        "Plating and Presentation",
        "Menu Development and Costing",
        "International Cuisine Techniques",
        "Advanced Culinary Arts",
    ],
    "Restaurant Management": [
        "Leadership and Team Building",
        "Staff Scheduling Optimization",
        "Cost Control and P&L Management",
        "Customer Service Excellence",
        "Conflict Resolution",
        "Performance Management",
        "Marketing and Promotions",
        "Operations Management",
    ],
    "Customer Service Excellence": [
        "Guest Relations Fundamentals",
        "Effective Communication Skills",
        "Upselling and Cross-selling Techniques",
        "Handling Difficult Customers",
        "Phone and Online Ordering",
        "Creating Memorable Experiences",
        "Cultural Sensitivity Training",
        "Service Recovery Strategies",
    ],
}

WEB_CATALOG: Dict[str, Tuple[str, List[Tuple[str, str]]]] = {
    "pos-training": (
        "POS System Training",
        [
            ("Toast POS Complete Training", "Toast system operations, payment processing, menu management"),
            ("Square POS Mastery", "Square Register, inventory, customer management"),
            ("Clover POS Fundamentals", "Clover Station setup, reporting, staff management"),
            ("Aloha POS Operations", "NCR Aloha system, kitchen management, reporting"),
            ("TouchBistro Training", "iPad POS system, table management, analytics"),
        ],
    ),
    "food-safety": (
        "Food Safety & Compliance",
        [
            ("ServSafe Manager Certification", "Food safety principles, HACCP, certification prep"),
            ("HACCP Implementation", "Critical control points, monitoring procedures, documentation"),
            ("Allergen Management", "Food allergies, cross-contamination prevention, labeling"),
            ("Sanitation Procedures", "Cleaning protocols, sanitizing, equipment maintenance"),
            ("Temperature Control", "Cold chain management, cooking temperatures, storage"),
        ],
    ),
    "culinary-skills": (
        "Culinary Arts & Techniques",
        [
            ("Knife Skills Mastery", "Proper cutting techniques, knife maintenance, safety"),
            ("Cooking Methods & Techniques", "Sauteing, grilling, roasting, braising fundamentals"),
            ("Sauce Making Fundamentals", "Mother sauces, emulsification, flavor development"),
            ("Baking & Pastry Basics", "Bread making, pastry techniques, dessert preparation"),
            ("Plating & Presentation", "Visual appeal, garnishing, portion control"),
        ],
    ),
    "management": (
        "Restaurant Management",
        [
            ("Leadership in Hospitality", "Team management, communication, conflict resolution"),
            ("Cost Control & Profitability", "Food costing, labor management, profit optimization"),
            ("Inventory Management", "Stock control, ordering systems, waste reduction"),
            ("Staff Scheduling", "Labor optimization, shift planning, coverage management"),
            ("Customer Service Excellence", "Service standards, complaint handling, guest satisfaction"),
        ],
    ),
    "customer-service": (
        "Customer Service & Hospitality",
        [
            ("Professional Service Standards", "Greeting guests, order taking, service flow"),
            ("Wine & Beverage Service", "Wine knowledge, proper service, upselling techniques"),
            ("Handling Difficult Situations", "Complaint resolution, de-escalation, recovery"),
            ("Upselling & Revenue Growth", "Suggestive selling, menu knowledge, sales techniques"),
            ("Table Service Excellence", "Fine dining service, etiquette, timing"),
        ],
    ),
}


# ---------------------------------------------------------------------------
# prompts and tasks
# ---------------------------------------------------------------------------

def build_catalog_course_prompt(entry: Dict[str, Any]) -> str:
    pos_line = f"\n6. Name {entry['pos_system']} tools where a POS system comes up" if entry.get("pos_system") else ""
    return f"""Create comprehensive training content for "{entry['title']}" in the {entry['category']} category.

Requirements:
1. 8-12 detailed lessons with practical exercises
2. Real-world restaurant scenarios and case studies
3. Assessment questions and practical assignments
4. Certification criteria and downloadable checklists
5. Related training videos where you know of real ones{pos_line}

Respond with JSON only:
{{
  "course": {{
    "title": "{entry['title']}",
    "description": "Detailed course description",
    "category": "{entry['category']}",
    "difficulty_level": "beginner|intermediate|advanced",
    "duration_hours": 8,
    "instructor_name": "Professional instructor name",
    "tags": ["tag"]
  }},
  "lessons": [
    {{
      "title": "Lesson Title",
      "description": "Lesson description",
      "duration_minutes": 30,
      "order_index": 1,
      "content": {{
        "learning_objectives": ["objective"],
        "theory_sections": [{{"heading": "Section", "content": "Explanation", "key_points": ["point"]}}],
        "practical_exercises": [{{"title": "Exercise", "instructions": "Steps", "materials_needed": ["item"], "estimated_time": "15 minutes"}}],
        "real_world_scenarios": [{{"scenario": "Situation", "challenge": "Problem", "solution_approach": "How to handle it"}}],
        "assessment_questions": [{{"question": "Question", "type": "multiple_choice", "options": ["A", "B", "C", "D"], "correct_answer": "B", "explanation": "Why"}}],
        "resources": [{{"title": "Resource", "type": "video|pdf|checklist|template", "url": "https://...", "description": "What it provides"}}]
      }}
    }}
  ]
}}

Make the content practical, industry-standard and immediately applicable."""


def build_web_course_prompt(entry: Dict[str, Any]) -> str:
    return f"""Create a comprehensive restaurant industry training course for "{entry['title']}".

Requirements:
- 8-12 detailed lessons of 15-30 minutes with practical, actionable content
- Real-world scenarios, practical exercises and assessments
- Focus on: {entry['focus']}
- Industry best practices and current standards

Respond with JSON only:
{{
  "course": {{
    "title": "{entry['title']}",
    "description": "Detailed course description",
    "category": "{entry['category']}",
    "difficulty_level": "beginner|intermediate|advanced",
    "duration_hours": 6,
    "instructor_name": "Industry Professional Name",
    "tags": ["tag"]
  }},
  "lessons": [
    {{
      "title": "Lesson title",
      "content": "Comprehensive lesson content with practical information",
      "duration_minutes": 20,
      "lesson_order": 1,
      "video_url": "https://www.youtube.com/watch?v=...",
      "resources": ["resource"],
      "quiz_questions": [{{"question": "Question", "options": ["A", "B", "C", "D"], "correct_answer": "A"}}]
    }}
  ]
}}"""


CATALOG_COURSE_TASK = AITask(
    name="training.catalog_course",
    build_prompt=build_catalog_course_prompt,
    schema=CatalogPlan,
    config=GenerationConfig(temperature=0.7, top_k=40, top_p=0.95, max_output_tokens=4000),
)

WEB_COURSE_TASK = AITask(
    name="training.web_course",
    build_prompt=build_web_course_prompt,
    schema=CatalogPlan,
    config=GenerationConfig(temperature=0.4, top_k=40, top_p=0.95, max_output_tokens=4000),
)

VIDEO_RESEARCH_PROMPT = """Compile real training video resources for restaurant and POS training.

Cover POS systems (Toast, Square, Clover tutorials), food safety (ServSafe, HACCP), culinary skills,
restaurant management and customer service. For each category list 10-15 videos from
industry-recognized trainers and channels, with their YouTube URLs. Format the answer as JSON."""

SEARCH_STRATEGY_PROMPT = """Write web search queries that find real restaurant training videos on YouTube and training platforms.

Cover POS systems (Toast, Square, Clover tutorials), food safety (ServSafe, HACCP, health department),
culinary skills, restaurant management and customer service. For each category give 5-10 specific
queries that target professional, educational content, with channel names and video types.
Format the answer as JSON."""

VIDEO_RESEARCH_TASK = AITask(
    name="training.video_research",
    build_prompt=lambda req: VIDEO_RESEARCH_PROMPT,
    config=GenerationConfig(temperature=0.3, top_k=40, top_p=0.95, max_output_tokens=3000),
)

SEARCH_STRATEGY_TASK = AITask(
    name="training.video_search",
    build_prompt=lambda req: SEARCH_STRATEGY_PROMPT,
    config=GenerationConfig(temperature=0.3, top_k=40, top_p=0.95, max_output_tokens=2000),
)


# ---------------------------------------------------------------------------
# storage
# ---------------------------------------------------------------------------

def store_catalog_course(plan: Dict[str, Any], category: str) -> Dict[str, Any]:
    """Insert the course and its lessons in one unit of work."""
    course = plan["course"]
    course_id = str(uuid.uuid4())
    row = {
        "id": course_id,
        "title": course["title"],
        "description": course["description"] or None,
        "category": category,
        "difficulty_level": course["difficultyLevel"],
        "duration_hours": course["durationHours"],
        "instructor_name": course["instructorName"],
    }
    with get_db_session() as session:
        session.execute(insert(courses).values(**row))
        session.execute(insert(lessons), lesson_rows(course_id, plan))
    return {
        "id": course_id,
        "title": row["title"],
        "category": category,
        "difficultyLevel": row["difficulty_level"],
        "durationHours": row["duration_hours"],
        "tags": course["tags"],
    }


def _succeeded(results: List[Dict[str, Any]]) -> int:
    return sum(1 for r in results if r["status"] == "success")


async def _generate_courses(task: AITask, entries: List[Dict[str, Any]], client) -> List[Dict[str, Any]]:
    results = []
    for position, entry in enumerate(entries):
        if position and settings.CATALOG_PACING_SECONDS > 0:
            await asyncio.sleep(settings.CATALOG_PACING_SECONDS)
        try:
            outcome = await run_task(task, entry, client, strict=True)
        except (UpstreamModelError, ModelOutputError) as exc:
            results.append({"courseTitle": entry["title"], "status": "error", "error": exc.message})
            continue
        stored = store_catalog_course(outcome.data, entry["category"])
        results.append({"course": stored, "lessonsCount": len(outcome.data["lessons"]), "status": "success"})

    log_event(
        "info",
        "training.catalog_complete",
        event_type="training.catalog_complete",
        extra={"task": task.name, "requested": len(entries), "generated": _succeeded(results)},
    )
    return results


# ---------------------------------------------------------------------------
# ai-comprehensive-training-generator
# ---------------------------------------------------------------------------

def selected_categories(req: CatalogRequest) -> List[str]:
    """Catalog names to run, matched case-insensitively; none selected means all."""
    wanted = req.selected_categories or ([req.category] if req.category else [])
    if not wanted:
        return list(COMPREHENSIVE_CATALOG)
    by_lower = {name.lower(): name for name in COMPREHENSIVE_CATALOG}
    unknown = [name for name in wanted if name.strip().lower() not in by_lower]
    if unknown:
        raise ValidationError(f"Unknown training category: {', '.join(unknown)}")
    return list(dict.fromkeys(by_lower[name.strip().lower()] for name in wanted))


async def generate_comprehensive_catalog(req: CatalogRequest, client) -> dict:
    if req.action == "generate_video_content":
        outcome = await run_task(VIDEO_RESEARCH_TASK, req, client)
        return {"success": True, "videoContent": outcome.data, "message": "Video content research completed"}

    categories = selected_categories(req)
    entries = [
        {"title": title, "category": name, "pos_system": req.pos_system}
        for name in categories
        for title in COMPREHENSIVE_CATALOG[name]
    ]
    results = await _generate_courses(CATALOG_COURSE_TASK, entries, client)
    return {
        "success": True,
        "message": f"Generated {_succeeded(results)} courses successfully",
        "results": results,
        "categoriesProcessed": categories,
    }


# ---------------------------------------------------------------------------
# ai-web-training-content
# ---------------------------------------------------------------------------

async def generate_web_catalog(req: WebCatalogRequest, client) -> dict:
    if req.action == "search_real_videos":
        outcome = await run_task(SEARCH_STRATEGY_TASK, req, client)
        return {"success": True, "searchStrategies": outcome.data, "message": "Video search strategies generated"}

    key = req.category if req.category in WEB_CATALOG else "pos-training"
    name, templates = WEB_CATALOG[key]
    entries = [{"title": title, "category": key, "focus": focus} for title, focus in templates]
    results = await _generate_courses(WEB_COURSE_TASK, entries, client)
    return {
        "success": True,
        "message": f"Generated {_succeeded(results)} of {len(entries)} courses for {name}",
        "category": name,
        "results": results,
    }
