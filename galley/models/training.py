"""
galley/models/training.py

Staff training: assessments, learning paths, course authoring, the coach
and stored lesson generation.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Field, field_validator, model_validator

from galley.models.common import CamelModel, coerce_number, coerce_str_list, require_text

Number = Union[int, float]
Priority = Literal["high", "medium", "low"]


def _priority(value) -> str:
    if isinstance(value, str) and value.strip().lower() in ("high", "medium", "low"):
        return value.strip().lower()
    return "medium"


# ---------------------------------------------------------------------------
# ai-assessment-generator
# ---------------------------------------------------------------------------

class AssessmentRequest(CamelModel):
    lesson_content: str
    difficulty: str = "intermediate"
    assessment_type: str = "quiz"

    @field_validator("lesson_content", mode="before")
    @classmethod
    def normalize_content(cls, value):
        return require_text(value, "lessonContent")


class AssessmentQuestion(CamelModel):
    model_config = ConfigDict(extra="allow")

    id: int = 0
    type: str = "multiple_choice"
    question: str = Field(min_length=1)
    options: List[str] = []
    correct: Union[int, str, None] = 0
    explanation: str = ""
    difficulty: str = "intermediate"
    points: Number = 10

    @field_validator("points", mode="before")
    @classmethod
    def normalize_points(cls, value):
        return coerce_number(value, 10)

    @field_validator("options", mode="before")
    @classmethod
    def normalize_options(cls, value):
        return coerce_str_list(value)


class Assessment(CamelModel):
    questions: List[AssessmentQuestion] = Field(min_length=1)
    total_points: Optional[Number] = None
    passing_score: Number = 70
    time_limit: Number = 15

    @model_validator(mode="after")
    def fill_totals(self):
        for index, question in enumerate(self.questions, start=1):
            if not question.id:
                question.id = index
        if not self.total_points:
            self.total_points = sum(q.points for q in self.questions)
        return self


# ---------------------------------------------------------------------------
# ai-learning-path
# ---------------------------------------------------------------------------

class UserProfile(CamelModel):
    model_config = ConfigDict(extra="allow")

    experience: str = "beginner"
    role: str = "general staff"
    interests: List[str] = []


class LearningPathRequest(CamelModel):
    user_profile: UserProfile = UserProfile()
    completed_courses: List[Any] = []
    performance_data: Dict[str, Any] = {}
    goals: Optional[str] = None


class PathStep(CamelModel):
    course_title: str
    priority: Priority = "medium"
    reason: str = ""
    estimated_duration: str = ""
    skills_gained: List[str] = []

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, value):
        return _priority(value)


class CareerProgression(CamelModel):
    current_level: str = ""
    next_level: str = ""
    required_skills: List[str] = []
    timeframe: str = ""


class LearningPath(CamelModel):
    personalized_message: str = ""
    skill_gaps: List[str] = []
    immediate_path: List[PathStep] = []
    short_term_goals: List[PathStep] = []
    long_term_goals: List[PathStep] = []
    career_progression: CareerProgression = CareerProgression()

    @field_validator("skill_gaps", mode="before")
    @classmethod
    def normalize_gaps(cls, value):
        return coerce_str_list(value)

    @field_validator("immediate_path", "short_term_goals", "long_term_goals", mode="before")
    @classmethod
    def normalize_steps(cls, value):
        # models sometimes answer with bare course titles
        if not isinstance(value, list):
            return []
        return [{"courseTitle": item} if isinstance(item, str) else item for item in value]


# ---------------------------------------------------------------------------
# ai-course-creator
# ---------------------------------------------------------------------------

class CourseCreateRequest(CamelModel):
    prompt: str
    content_type: Literal["course", "lesson"]
    difficulty: Optional[str] = None
    duration: Optional[float] = Field(default=None, gt=0)
    existing_content: Optional[Any] = None

    @field_validator("prompt", mode="before")
    @classmethod
    def normalize_prompt(cls, value):
        return require_text(value, "prompt")


class AuthoredCourse(CamelModel):
    """Wrapper for contentType=course; lesson bodies stay free-form."""
    model_config = ConfigDict(extra="allow")

    course: Dict[str, Any]
    lessons: List[Dict[str, Any]] = Field(min_length=1)


class AuthoredLesson(CamelModel):
    model_config = ConfigDict(extra="allow")

    lesson: Dict[str, Any]


# ---------------------------------------------------------------------------
# ai-training-coach
# ---------------------------------------------------------------------------

class CoachRequest(CamelModel):
    prompt: str
    context: Optional[str] = None
    lesson_id: Optional[str] = None

    @field_validator("prompt", mode="before")
    @classmethod
    def normalize_prompt(cls, value):
        return require_text(value, "prompt")


# ---------------------------------------------------------------------------
# generate-course-content / auto-generate-lessons
# ---------------------------------------------------------------------------

class CourseContentRequest(CamelModel):
    course_id: str

    @field_validator("course_id", mode="before")
    @classmethod
    def normalize_course_id(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("Course ID is required")
        return value


class GeneratedLesson(CamelModel):
    # stored column names come back from the model in snake_case
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: str = Field(min_length=1)
    description: str = ""
    duration_minutes: int = 30
    order_index: Optional[int] = None
    content: Dict[str, Any] = {}

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def normalize_duration(cls, value):
        number = coerce_number(value, 30)
        return int(number) if number and number > 0 else 30

    @field_validator("content", mode="before")
    @classmethod
    def normalize_content(cls, value):
        if isinstance(value, str):
            return {"theory": value}
        return value if isinstance(value, dict) else {}


class LessonPlan(CamelModel):
    lessons: List[GeneratedLesson] = Field(min_length=1)


class CourseRecord(CamelModel):
    """A stored course row, as used for prompting."""
    id: str
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty_level: Optional[str] = None
    duration_hours: Optional[float] = None
    instructor_name: Optional[str] = None


# ---------------------------------------------------------------------------
# catalog generation
# ---------------------------------------------------------------------------

DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")


class CatalogRequest(CamelModel):
    action: Literal["generate_comprehensive_training", "generate_video_content"] = "generate_comprehensive_training"
    category: Optional[str] = None
    selected_categories: List[str] = []
    pos_system: Optional[str] = None


class WebCatalogRequest(CamelModel):
    action: Literal["generate_comprehensive_training", "search_real_videos"]
    category: str = "pos-training"


class CatalogCourse(CamelModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: str = Field(min_length=1)
    description: str = ""
    category: Optional[str] = None
    difficulty_level: str = "intermediate"
    duration_hours: float = 8
    instructor_name: str = "AI Training Expert"
    tags: List[str] = []

    @field_validator("difficulty_level", mode="before")
    @classmethod
    def normalize_difficulty(cls, value):
        if isinstance(value, str) and value.strip().lower() in DIFFICULTY_LEVELS:
            return value.strip().lower()
        return "intermediate"

    @field_validator("duration_hours", mode="before")
    @classmethod
    def normalize_hours(cls, value):
        number = coerce_number(value, 8)
        return number if number and number > 0 else 8

    @field_validator("instructor_name", mode="before")
    @classmethod
    def normalize_instructor(cls, value):
        return value if isinstance(value, str) and value.strip() else "AI Training Expert"

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value):
        return coerce_str_list(value)


class CatalogLesson(GeneratedLesson):
    """A generated lesson whose video link, resources and quiz live beside its content."""

    @model_validator(mode="before")
    @classmethod
    def fold_extras(cls, data: Any):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        content = data.get("content")
        if isinstance(content, str):
            content = {"theory": content} if content.strip() else {}
        content = dict(content) if isinstance(content, dict) else {}
        for key in ("video_url", "resources", "quiz_questions"):
            if key in data and key not in content:
                content[key] = data.pop(key)
        data["content"] = content
        if data.get("order_index") is None and data.get("orderIndex") is None and "lesson_order" in data:
            data["order_index"] = data.pop("lesson_order")
        return data


class CatalogPlan(CamelModel):
    course: CatalogCourse
    lessons: List[CatalogLesson] = Field(min_length=1)


# ---------------------------------------------------------------------------
# generate-toast-training-content
# ---------------------------------------------------------------------------

class ToastTrainingRequest(CourseContentRequest):
    course_name: Optional[str] = None
