"""
galley/features/training/service.py

Staff training features.

Handles:
- Assessments and personalized learning paths (with fallbacks)
- Course and lesson authoring (strict: a bad answer is an error)
- The training coach (free text)
- Lesson generation for stored courses, one course or all empty ones
- The long-form training curriculum for a stored course
"""

import json
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import func, insert, select

from galley.core.database import courses, get_db_session, lessons
from galley.core.errors import ModelOutputError, NotFoundError, UpstreamModelError
from galley.core.logging import log_event
from galley.features.ai.client import GenerationConfig, text_part
from galley.features.ai.orchestrator import AITask, run_task
from galley.models.training import (
    Assessment,
    AssessmentRequest,
    AuthoredCourse,
    AuthoredLesson,
    CoachRequest,
    CourseContentRequest,
    CourseCreateRequest,
    CourseRecord,
    LearningPath,
    LearningPathRequest,
    LessonPlan,
)

COACH_APOLOGY = "I apologize, but I cannot provide a response right now. Please try again."


# ---------------------------------------------------------------------------
# assessments
# ---------------------------------------------------------------------------

def build_assessment_prompt(req: AssessmentRequest) -> str:
    return f"""You are an expert educational assessment designer specializing in culinary arts and restaurant management training.

Generate a {req.assessment_type} based on the lesson content below, at {req.difficulty} level.

Requirements:
- 5-8 questions that test understanding and application
- Mix multiple choice, scenario-based and practical application questions
- Detailed explanations for correct answers
- Realistic restaurant scenarios where applicable

Respond with JSON:
{{
  "questions": [
    {{
      "id": 1,
      "type": "multiple_choice",
      "question": "Question text",
      "options": ["A) Option 1", "B) Option 2", "C) Option 3", "D) Option 4"],
      "correct": 0,
      "explanation": "Why this is correct",
      "difficulty": "{req.difficulty}",
      "points": 10
    }}
  ],
  "totalPoints": 80,
  "passingScore": 70,
  "timeLimit": 15
}}

Lesson Content: {req.lesson_content}"""


def fallback_assessment(req: AssessmentRequest) -> dict:
    return {
        "questions": [
            {
                "id": 1,
                "type": "multiple_choice",
                "question": "What is the most important aspect of food safety in restaurant operations?",
                "options": [
                    "A) Temperature control and monitoring",
                    "B) Cleaning schedules",
                    "C) Staff uniforms",
                    "D) Menu design",
                ],
                "correct": 0,
                "explanation": "Temperature control is critical for preventing foodborne illness "
                "and ensuring food safety compliance.",
                "difficulty": req.difficulty,
                "points": 20,
            }
        ],
        "totalPoints": 20,
        "passingScore": 70,
        "timeLimit": 5,
    }


ASSESSMENT_TASK = AITask(
    name="training.assessment",
    build_prompt=build_assessment_prompt,
    schema=Assessment,
    fallback=fallback_assessment,
    config=GenerationConfig(temperature=0.3, top_k=20, top_p=0.8, max_output_tokens=2048),
)


async def generate_assessment(req: AssessmentRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(ASSESSMENT_TASK, req, client, user_id=user_id)
    return outcome.envelope(**outcome.data)


# ---------------------------------------------------------------------------
# learning paths
# ---------------------------------------------------------------------------

def build_learning_path_prompt(req: LearningPathRequest) -> str:
    profile = req.user_profile
    average = req.performance_data.get("averageScore", "N/A")
    return f"""You are an expert learning path designer for culinary and restaurant management education.

User Profile:
- Experience Level: {profile.experience}
- Role: {profile.role}
- Interests: {', '.join(profile.interests) or 'general restaurant operations'}
- Goals: {req.goals or 'improve overall restaurant skills'}

Completed Courses: {len(req.completed_courses)} courses
Performance Data: Average score {average}%

Generate a personalized learning path with immediate next steps (1-2 courses), short-term goals (3-6 months),
long-term objectives (6-12 months), a skill gap analysis and career progression recommendations.

Format as JSON:
{{
  "personalizedMessage": "Welcome message tailored to the user",
  "skillGaps": ["skill1", "skill2"],
  "immediatePath": [
    {{"courseTitle": "Course Name", "priority": "high|medium|low", "reason": "Why", "estimatedDuration": "X hours", "skillsGained": ["skill1"]}}
  ],
  "shortTermGoals": [],
  "longTermGoals": [],
  "careerProgression": {{"currentLevel": "", "nextLevel": "", "requiredSkills": [], "timeframe": "X months"}}
}}"""


def fallback_learning_path(req: LearningPathRequest) -> dict:
    return {
        "personalizedMessage": "Welcome to your personalized learning journey! Based on your profile, we've created "
        "a custom path to help you excel in restaurant operations.",
        "skillGaps": ["Food Safety Compliance", "POS System Mastery", "Team Leadership"],
        "immediatePath": [
            {
                "courseTitle": "Food Safety Fundamentals",
                "priority": "high",
                "reason": "Essential foundation for all restaurant operations",
                "estimatedDuration": "3 hours",
                "skillsGained": ["HACCP Knowledge", "Temperature Control", "Sanitation Procedures"],
            }
        ],
        "shortTermGoals": [
            {
                "courseTitle": "POS System Training",
                "priority": "medium",
                "reason": "Master technology essential for daily operations",
                "estimatedDuration": "4 hours",
                "skillsGained": ["Payment Processing", "Inventory Management", "Customer Service"],
            }
        ],
        "longTermGoals": [
            {
                "courseTitle": "Restaurant Management Excellence",
                "priority": "medium",
                "reason": "Develop leadership and operational management skills",
                "estimatedDuration": "8 hours",
                "skillsGained": ["Team Leadership", "Cost Control", "Strategic Planning"],
            }
        ],
        "careerProgression": {
            "currentLevel": "Staff Member",
            "nextLevel": "Shift Supervisor",
            "requiredSkills": ["Leadership", "Food Safety Certification", "POS Proficiency"],
            "timeframe": "6-9 months",
        },
    }


LEARNING_PATH_TASK = AITask(
    name="training.learning_path",
    build_prompt=build_learning_path_prompt,
    schema=LearningPath,
    fallback=fallback_learning_path,
    config=GenerationConfig(temperature=0.7, top_k=40, top_p=0.9, max_output_tokens=1536),
)


async def build_learning_path(req: LearningPathRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(LEARNING_PATH_TASK, req, client, user_id=user_id)
    return outcome.envelope(**outcome.data)


# ---------------------------------------------------------------------------
# course authoring
# ---------------------------------------------------------------------------

_LESSON_BODY = """{
      "video_url": "https://www.youtube.com/watch?v=example",
      "key_points": ["point1", "point2", "point3"],
      "practical_tips": ["tip1", "tip2"],
      "recipes": [{"name": "Recipe Name", "ingredients": ["ingredient1"], "instructions": ["step1"]}],
      "practical_exercise": "Exercise description",
      "transcript": "Full lesson transcript...",
      "resources": [{"title": "Resource Title", "url": "https://example.com", "type": "pdf | video | article"}],
      "quiz": [{"question": "Question text?", "options": ["option1", "option2", "option3", "option4"], "correct": 0}]
    }"""


def _authoring_system_prompt(req: CourseCreateRequest) -> str:
    if req.content_type == "course":
        return f"""You are an expert culinary instructor and course designer. Create a restaurant training course based on the user's prompt.

Return a JSON object with this exact structure:
{{
  "course": {{
    "title": "Course Title",
    "description": "Detailed course description",
    "category": "culinary-arts | pos-systems | safety-compliance | management",
    "difficulty_level": "beginner | intermediate | advanced",
    "duration_hours": 2,
    "instructor_name": "AI Chef Instructor",
    "tags": ["tag1", "tag2"]
  }},
  "lessons": [
    {{"title": "Lesson Title", "description": "Lesson description", "order_index": 1, "duration_minutes": 30,
     "content": {_LESSON_BODY}}}
  ]
}}

Create {req.duration or 1:g} hours of content with appropriate lessons. Make it practical, engaging and industry-relevant."""
    return f"""You are an expert culinary instructor. Create a detailed lesson based on the user's prompt.

Return a JSON object with this exact structure:
{{
  "lesson": {{
    "title": "Lesson Title",
    "description": "Lesson description",
    "duration_minutes": 30,
    "content": {_LESSON_BODY}
  }}
}}

Make it practical, detailed and engaging for restaurant staff."""


def build_authoring_prompt(req: CourseCreateRequest):
    lines = [req.prompt]
    if req.difficulty:
        lines.append(f"Difficulty level: {req.difficulty}")
    if req.duration:
        lines.append(f"Duration: {req.duration:g} hours")
    if req.existing_content:
        lines.append(f"Existing content to reference: {json.dumps(req.existing_content)}")
    lines.append("Create professional, practical content suitable for restaurant training, "
                 "with practical exercises and comprehensive quizzes.")
    return [text_part(_authoring_system_prompt(req)), text_part("\n".join(lines))]


_AUTHORING_CONFIG = GenerationConfig(temperature=0.7, top_k=1, top_p=1.0, max_output_tokens=8192)

COURSE_AUTHORING_TASK = AITask(
    name="training.course",
    build_prompt=build_authoring_prompt,
    schema=AuthoredCourse,
    config=_AUTHORING_CONFIG,
)

LESSON_AUTHORING_TASK = AITask(
    name="training.lesson",
    build_prompt=build_authoring_prompt,
    schema=AuthoredLesson,
    config=_AUTHORING_CONFIG,
)


async def create_course_content(req: CourseCreateRequest, client, *, user_id=None) -> dict:
    """No fallback: an unusable answer is a 502, never placeholder content."""
    task = COURSE_AUTHORING_TASK if req.content_type == "course" else LESSON_AUTHORING_TASK
    outcome = await run_task(task, req, client, strict=True, user_id=user_id)
    return outcome.envelope(
        content=outcome.data,
        contentType=req.content_type,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


# ---------------------------------------------------------------------------
# coach
# ---------------------------------------------------------------------------

def build_coach_prompt(req: CoachRequest):
    system = f"""You are an expert culinary training coach specializing in restaurant operations and POS systems.
Your role is to give personalized guidance, answer questions about cooking techniques, food safety and
restaurant management, offer practical tips, and adapt explanations to the user's skill level.

Context: {req.context or 'General training session'}

Keep responses helpful, encouraging and professional."""
    return [text_part(system), text_part(f"User question: {req.prompt}")]


COACH_TASK = AITask(
    name="training.coach",
    build_prompt=build_coach_prompt,
    fallback=lambda req: COACH_APOLOGY,
    config=GenerationConfig(temperature=0.7, top_k=40, top_p=0.95, max_output_tokens=1024),
)


async def coach(req: CoachRequest, client, *, user_id=None) -> dict:
    outcome = await run_task(COACH_TASK, req, client, user_id=user_id)
    return outcome.envelope(response=outcome.data, timestamp=datetime.now(timezone.utc).isoformat())


# ---------------------------------------------------------------------------
# stored lessons
# ---------------------------------------------------------------------------

LESSON_WRITER_SYSTEM = (
    "You are an expert training content creator. Create comprehensive, practical training lessons. "
    "Return only valid JSON without any markdown formatting or code blocks."
)


def lesson_count_for(course: CourseRecord) -> int:
    return max(1, math.ceil((course.duration_hours or 2) * 1.5))


def build_course_lessons_prompt(course: CourseRecord):
    hours = course.duration_hours or 2
    count = lesson_count_for(course)
    minutes = round(hours * 60 / count)
    user = f"""Create a comprehensive training course for "{course.title}" in the {course.category or 'general'} category.

Course Description: {course.description or course.title}
Difficulty Level: {course.difficulty_level or 'beginner'}
Target Duration: {hours:g} hours
Instructor: {course.instructor_name or 'Training Team'}

Generate {count} detailed lessons (about {minutes} minutes each) with progressive difficulty.

Return a JSON object with this exact structure:
{{
  "lessons": [
    {{
      "title": "Lesson Title",
      "description": "Lesson description",
      "duration_minutes": {minutes},
      "order_index": 1,
      "content": {{
        "learning_objectives": ["Objective 1", "Objective 2", "Objective 3"],
        "theory": "Detailed theory content",
        "practical_steps": ["Step 1", "Step 2"],
        "key_points": ["Point 1", "Point 2"],
        "resources": ["Resource 1"]
      }}
    }}
  ]
}}"""
    return [text_part(LESSON_WRITER_SYSTEM), text_part(user)]


COURSE_LESSONS_TASK = AITask(
    name="training.course_lessons",
    build_prompt=build_course_lessons_prompt,
    schema=LessonPlan,
    config=GenerationConfig(temperature=0.7, max_output_tokens=4000),
    model_tier="chat",
)

BATCH_LESSONS_TASK = AITask(
    name="training.batch_lessons",
    build_prompt=build_course_lessons_prompt,
    schema=LessonPlan,
    config=GenerationConfig(temperature=0.7, top_k=1, top_p=1.0, max_output_tokens=8192),
)


def build_training_content_prompt(course: CourseRecord):
    user = f"""You are an expert curriculum designer and trainer. Create a comprehensive training course for "{course.title}".

Course Details:
- Category: {course.category or 'general'}
- Description: {course.description or course.title}
- Difficulty: {course.difficulty_level or 'beginner'}
- Duration: {course.duration_hours or 2:g} hours
- Instructor: {course.instructor_name or 'Training Team'}

Create 6-8 progressive lessons that take a learner from beginner to proficient. Each lesson must include
learning objectives, theory, practical tips, step-by-step instructions, common mistakes, a practice
exercise and knowledge check questions.

Return only JSON in this exact structure:
{{
  "lessons": [
    {{
      "title": "Lesson 1: Foundation and Setup",
      "description": "Learn the fundamentals and get started",
      "duration_minutes": 45,
      "order_index": 1,
      "content": {{
        "learning_objectives": ["Objective"],
        "key_points": ["Key point"],
        "theory": "Why things work the way they do",
        "practical_tips": ["Tip"],
        "step_by_step": ["Step 1: first action"],
        "common_mistakes": ["Mistake and how to avoid it"],
        "practical_exercise": "A hands-on exercise with clear instructions",
        "quiz": [{{"question": "Question", "options": ["A", "B", "C", "D"], "correct": 1, "explanation": "Why"}}],
        "resources": ["Reference"]
      }}
    }}
  ]
}}"""
    return [text_part(LESSON_WRITER_SYSTEM), text_part(user)]


TRAINING_CONTENT_TASK = AITask(
    name="training.content",
    build_prompt=build_training_content_prompt,
    schema=LessonPlan,
    config=GenerationConfig(temperature=0.7, max_output_tokens=4000),
    model_tier="chat",
)



def _lesson_dict(row) -> Dict[str, Any]:
    return {
        "id": row.id,
        "courseId": row.course_id,
        "title": row.title,
        "description": row.description,
        "content": row.content,
        "durationMinutes": row.duration_minutes,
        "orderIndex": row.order_index,
    }


def get_course(course_id: str) -> CourseRecord:
    with get_db_session() as session:
        row = session.execute(select(courses).where(courses.c.id == course_id)).first()
    if row is None:
        raise NotFoundError(f"Course not found: {course_id}")
    return CourseRecord.model_validate(dict(row._mapping))


def list_lessons(course_id: str) -> List[Dict[str, Any]]:
    with get_db_session() as session:
        rows = session.execute(
            select(lessons).where(lessons.c.course_id == course_id).order_by(lessons.c.order_index)
        ).all()
    return [_lesson_dict(row) for row in rows]


def lesson_rows(course_id: str, plan: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Stored rows for a validated lesson plan; order falls back to list position."""
    rows = []
    for index, lesson in enumerate(plan["lessons"], start=1):
        rows.append(
            {
                "id": str(uuid.uuid4()),
                "course_id": course_id,
                "title": lesson["title"],
                "description": lesson.get("description") or None,
                "content": lesson.get("content") or {},
                "duration_minutes": lesson.get("durationMinutes") or 30,
                "order_index": lesson.get("orderIndex") or index,
            }
        )
    return rows


def save_lessons(course_id: str, plan: Dict[str, Any]) -> List[Dict[str, Any]]:
    with get_db_session() as session:
        session.execute(insert(lessons), lesson_rows(course_id, plan))
    return list_lessons(course_id)


async def _fill_empty_course(task: AITask, req: CourseContentRequest, client, user_id, message: str) -> dict:
    """Create lessons for a course that has none; otherwise report the existing ones."""
    course = get_course(req.course_id)
    existing = list_lessons(course.id)
    if existing:
        return {
            "success": True,
            "message": "Course already has content",
            "lessonsCount": len(existing),
            "lessons": existing,
        }

    outcome = await run_task(task, course, client, user_id=user_id)
    saved = save_lessons(course.id, outcome.data)
    log_event(
        "info",
        "training.lessons_generated",
        user_id=user_id,
        event_type="training.lessons_generated",
        extra={"course_id": course.id, "count": len(saved), "task": task.name},
    )
    return outcome.envelope(message=message, lessonsGenerated=len(saved), lessons=saved)


async def generate_course_lessons(req: CourseContentRequest, client, *, user_id=None) -> dict:
    return await _fill_empty_course(
        COURSE_LESSONS_TASK, req, client, user_id, "Course content generated successfully"
    )


async def generate_training_content(req: CourseContentRequest, client, *, user_id=None) -> dict:
    """The long-form curriculum: 6-8 lessons, each with theory, steps and a quiz."""
    return await _fill_empty_course(
        TRAINING_CONTENT_TASK, req, client, user_id, "Training content generated successfully"
    )


def courses_without_lessons() -> List[CourseRecord]:
    lesson_counts = (
        select(lessons.c.course_id, func.count(lessons.c.id).label("n"))
        .group_by(lessons.c.course_id)
        .subquery()
    )
    with get_db_session() as session:
        rows = session.execute(
            select(courses)
            .outerjoin(lesson_counts, lesson_counts.c.course_id == courses.c.id)
            .where(lesson_counts.c.n.is_(None))
            .order_by(courses.c.created_at)
        ).all()
    return [CourseRecord.model_validate(dict(row._mapping)) for row in rows]


async def auto_generate_lessons(client) -> dict:
    """Fill every empty course. One course failing does not stop the batch."""
    pending = courses_without_lessons()
    generated = 0
    errors: List[str] = []

    for course in pending:
        try:
            outcome = await run_task(BATCH_LESSONS_TASK, course, client)
        except (UpstreamModelError, ModelOutputError) as exc:
            errors.append(f"{course.title}: {exc.message}")
            continue
        save_lessons(course.id, outcome.data)
        generated += 1

    log_event(
        "info",
        "training.batch_complete",
        event_type="training.batch_complete",
        extra={"processed": len(pending), "generated": generated, "failed": len(errors)},
    )
    return {
        "success": True,
        "totalProcessed": len(pending),
        "successfullyGenerated": generated,
        "errors": errors,
        "message": f"Processed {len(pending)} courses. Generated lessons for {generated} courses.",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
