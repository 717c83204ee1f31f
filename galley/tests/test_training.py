import uuid

from sqlalchemy import insert, select

from galley.core.database import courses, get_db_session, lessons
from galley.features.training.catalog import COMPREHENSIVE_CATALOG
from galley.features.training.service import COACH_APOLOGY, lesson_count_for
from galley.features.training.toast import ANALYTICS, FUNDAMENTALS, PLATFORM_OVERVIEW, SECURITY, curriculum_for
from galley.features.usage.service import get_usage
from galley.models.training import CourseRecord
from galley.tests.mocks import prompt_text

LESSON_PLAN = {
    "lessons": [
        {
            "title": "Knife Safety",
            "description": "Handling and storing knives",
            "duration_minutes": 40,
            "order_index": 1,
            "content": {"theory": "Always cut away from the body", "key_points": ["Dry handles"]},
        },
        {"title": "Basic Grips", "content": "Pinch grip and claw hand"},
    ]
}


def _course(title="Knife Skills", **fields):
    course_id = str(uuid.uuid4())
    row = {"id": course_id, "title": title, "category": "culinary", "duration_hours": 2.0, **fields}
    with get_db_session() as session:
        session.execute(insert(courses).values(**row))
    return course_id


def _lesson(course_id, title="Existing lesson", order_index=1):
    with get_db_session() as session:
        session.execute(
            insert(lessons).values(
                id=str(uuid.uuid4()),
                course_id=course_id,
                title=title,
                content={"theory": "already written"},
                duration_minutes=30,
                order_index=order_index,
            )
        )


def _stored_lessons(course_id):
    with get_db_session() as session:
        return session.execute(
            select(lessons).where(lessons.c.course_id == course_id).order_by(lessons.c.order_index)
        ).all()


class TestGenerateCourseContent:
    def test_generates_and_stores_lessons(self, client, user_headers, openai_fake):
        course_id = _course()
        openai_fake.queue(LESSON_PLAN)

        resp = client.post("/functions/v1/generate-course-content", headers=user_headers, json={"courseId": course_id})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["lessonsGenerated"] == 2
        first, second = body["lessons"]
        assert first["title"] == "Knife Safety"
        assert first["durationMinutes"] == 40
        assert second["orderIndex"] == 2
        assert second["durationMinutes"] == 30
        assert second["content"] == {"theory": "Pinch grip and claw hand"}

        assert [row.title for row in _stored_lessons(course_id)] == ["Knife Safety", "Basic Grips"]
        assert "Generate 3 detailed lessons" in prompt_text(openai_fake.calls[0])
        assert get_usage("user_1")["ai_requests"] == 1

    def test_course_with_lessons_is_left_alone(self, client, user_headers, openai_fake):
        course_id = _course()
        _lesson(course_id)

        resp = client.post("/functions/v1/generate-course-content", headers=user_headers, json={"courseId": course_id})
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Course already has content"
        assert body["lessonsCount"] == 1
        assert openai_fake.calls == []

    def test_unknown_course_is_404(self, client, user_headers, openai_fake):
        resp = client.post("/functions/v1/generate-course-content", headers=user_headers, json={"courseId": "missing"})
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"

    def test_blank_course_id_is_400(self, client, user_headers, openai_fake):
        resp = client.post("/functions/v1/generate-course-content", headers=user_headers, json={"courseId": " "})
        assert resp.status_code == 400

    def test_unusable_plan_stores_nothing(self, client, user_headers, openai_fake):
        course_id = _course()
        openai_fake.queue({"lessons": []})

        resp = client.post("/functions/v1/generate-course-content", headers=user_headers, json={"courseId": course_id})
        assert resp.status_code == 502
        assert _stored_lessons(course_id) == []


class TestAutoGenerateLessons:
    def test_requires_admin_key(self, client, user_headers, gemini):
        resp = client.post("/functions/v1/auto-generate-lessons", headers=user_headers)
        assert resp.status_code == 401
        assert gemini.calls == []

    def test_fills_only_empty_courses(self, client, admin_headers, gemini):
        _course("Bar Basics")
        _course("Food Safety")
        done = _course("Already Done")
        _lesson(done)
        gemini.queue(LESSON_PLAN)

        resp = client.post("/functions/v1/auto-generate-lessons", headers=admin_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["totalProcessed"] == 2
        assert body["successfullyGenerated"] == 2
        assert body["errors"] == []
        assert len(gemini.calls) == 2
        assert len(_stored_lessons(done)) == 1

    def test_one_failure_does_not_stop_the_batch(self, client, admin_headers, gemini):
        _course("Bar Basics")
        _course("Food Safety")
        gemini.queue(LESSON_PLAN, "this is not json")

        body = client.post("/functions/v1/auto-generate-lessons", headers=admin_headers).json()
        assert body["success"] is True
        assert body["totalProcessed"] == 2
        assert body["successfullyGenerated"] == 1
        assert len(body["errors"]) == 1
        assert "not valid JSON" in body["errors"][0]


class TestCourseCreator:
    def test_returns_authored_course(self, client, user_headers, gemini):
        gemini.queue(
            {
                "course": {"title": "Wine Service", "description": "Opening and pouring"},
                "lessons": [{"title": "Presenting the bottle", "content": "..."}],
            }
        )
        resp = client.post(
            "/functions/v1/ai-course-creator",
            headers=user_headers,
            json={"prompt": "Wine service for new servers", "contentType": "course", "duration": 1.5},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["contentType"] == "course"
        assert body["content"]["course"]["title"] == "Wine Service"
        assert "Duration: 1.5 hours" in prompt_text(gemini.calls[0])

    def test_bad_answer_is_an_error_not_a_placeholder(self, client, user_headers, gemini):
        gemini.queue({"course": {"title": "Wine Service"}, "lessons": []})
        resp = client.post(
            "/functions/v1/ai-course-creator",
            headers=user_headers,
            json={"prompt": "Wine service", "contentType": "course"},
        )
        assert resp.status_code == 502
        assert resp.json()["error"]["code"] == "model_output_error"

    def test_unknown_content_type_is_400(self, client, user_headers, gemini):
        resp = client.post(
            "/functions/v1/ai-course-creator",
            headers=user_headers,
            json={"prompt": "Wine service", "contentType": "module"},
        )
        assert resp.status_code == 400


class TestCoachAndAssessments:
    def test_coach_answers_in_free_text(self, client, user_headers, gemini):
        gemini.queue("Rest the steak for five minutes before slicing.")
        resp = client.post("/functions/v1/ai-training-coach", headers=user_headers, json={"prompt": "Why rest meat?"})
        assert resp.status_code == 200
        assert resp.json()["response"] == "Rest the steak for five minutes before slicing."

    def test_coach_apologizes_when_the_model_is_down(self, client, user_headers, gemini):
        gemini.fail_with(503)
        resp = client.post("/functions/v1/ai-training-coach", headers=user_headers, json={"prompt": "Why rest meat?"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["response"] == COACH_APOLOGY
        assert body["degraded"] is True
        assert body["fallback_reason"] == "upstream_error"

    def test_assessment_totals_are_filled_in(self, client, user_headers, gemini):
        gemini.queue(
            {
                "questions": [
                    {"question": "Safe holding temperature for hot food?", "options": ["40F", "135F"], "correct": 1},
                    {"question": "Name one allergen", "type": "short_answer", "points": "5"},
                ]
            }
        )
        resp = client.post(
            "/functions/v1/ai-assessment-generator",
            headers=user_headers,
            json={"lessonContent": "Food safety basics"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert [q["id"] for q in body["questions"]] == [1, 2]
        assert body["totalPoints"] == 15


def test_lesson_count_scales_with_duration():
    assert lesson_count_for(CourseRecord(id="c", title="t", duration_hours=2)) == 3
    assert lesson_count_for(CourseRecord(id="c", title="t", duration_hours=0.5)) == 1
    assert lesson_count_for(CourseRecord(id="c", title="t")) == 3


class TestGenerateTrainingContent:
    def test_writes_a_progressive_curriculum(self, client, user_headers, openai_fake):
        course_id = _course(title="Bar Basics")
        openai_fake.queue(LESSON_PLAN)

        resp = client.post("/functions/v1/generate-training-content", headers=user_headers, json={"courseId": course_id})
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Training content generated successfully"
        assert body["lessonsGenerated"] == 2
        assert "Create 6-8 progressive lessons" in prompt_text(openai_fake.calls[0])
        assert "Bar Basics" in prompt_text(openai_fake.calls[0])
        assert len(_stored_lessons(course_id)) == 2
        assert get_usage("user_1")["ai_requests"] == 1

    def test_course_with_lessons_is_left_alone(self, client, user_headers, openai_fake):
        course_id = _course()
        _lesson(course_id)

        resp = client.post("/functions/v1/generate-training-content", headers=user_headers, json={"courseId": course_id})
        assert resp.status_code == 200
        assert resp.json()["message"] == "Course already has content"
        assert openai_fake.calls == []


class TestToastTraining:
    def test_course_name_picks_the_curriculum(self):
        assert curriculum_for("Toast POS Fundamentals") is FUNDAMENTALS
        assert curriculum_for("toast analytics deep dive") is ANALYTICS
        assert curriculum_for("Toast Security") is SECURITY
        # keywords only count for toast courses
        assert curriculum_for("Kitchen Security") is PLATFORM_OVERVIEW
        assert curriculum_for("Toast for servers") is PLATFORM_OVERVIEW

    def test_seeds_fixed_lessons_without_a_model(self, client, user_headers, gemini):
        course_id = _course(title="Toast POS Fundamentals")

        resp = client.post(
            "/functions/v1/generate-toast-training-content", headers=user_headers, json={"courseId": course_id}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["lessonsGenerated"] == 3
        assert [lesson["durationMinutes"] for lesson in body["lessons"]] == [15, 20, 25]
        assert body["lessons"][0]["content"]["type"] == "interactive_lesson"
        assert [row.title for row in _stored_lessons(course_id)][0] == "Toast POS System Overview"
        assert gemini.calls == []
        assert get_usage("user_1")["ai_requests"] == 0

    def test_course_name_overrides_the_title(self, client, user_headers):
        course_id = _course(title="Onboarding")

        resp = client.post(
            "/functions/v1/generate-toast-training-content",
            headers=user_headers,
            json={"courseId": course_id, "courseName": "Toast Kitchen Display"},
        )
        assert resp.status_code == 200
        assert [lesson["title"] for lesson in resp.json()["lessons"]] == ["Kitchen Display System Setup"]

    def test_existing_lessons_are_kept(self, client, user_headers):
        course_id = _course(title="Toast POS Fundamentals")
        _lesson(course_id)

        resp = client.post(
            "/functions/v1/generate-toast-training-content", headers=user_headers, json={"courseId": course_id}
        )
        assert resp.json()["message"] == "Course already has content"
        assert len(_stored_lessons(course_id)) == 1

    def test_unknown_course_is_404(self, client, user_headers):
        resp = client.post(
            "/functions/v1/generate-toast-training-content", headers=user_headers, json={"courseId": "missing"}
        )
        assert resp.status_code == 404


CATALOG_PLAN = {
    "course": {
        "title": "Whatever the model called it",
        "description": "Holding food at safe temperatures",
        "difficulty_level": "Expert",
        "duration_hours": "6",
        "tags": "haccp",
    },
    "lessons": [
        {"title": "Danger zone", "content": {"theory": "41F to 135F"}, "duration_minutes": 20},
        {"title": "Thermometer calibration", "content": "Calibrate daily"},
    ],
}


def _catalog_courses(category):
    with get_db_session() as session:
        return session.execute(select(courses).where(courses.c.category == category)).all()


class TestCatalog:
    def test_generates_every_course_in_the_category(self, client, admin_headers, gemini):
        gemini.queue(CATALOG_PLAN)

        resp = client.post(
            "/functions/v1/ai-comprehensive-training-generator",
            headers=admin_headers,
            json={"selectedCategories": ["food safety & compliance"], "posSystem": "Toast"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["categoriesProcessed"] == ["Food Safety & Compliance"]
        assert body["message"] == "Generated 8 courses successfully"
        assert len(gemini.calls) == 8
        assert 'for "Food Safety Fundamentals"' in prompt_text(gemini.calls[0])
        assert "Name Toast tools" in prompt_text(gemini.calls[0])

        first = body["results"][0]
        assert first["status"] == "success"
        assert first["lessonsCount"] == 2
        assert first["course"]["difficultyLevel"] == "intermediate"
        assert first["course"]["durationHours"] == 6
        assert first["course"]["tags"] == ["haccp"]

        stored = _catalog_courses("Food Safety & Compliance")
        assert len(stored) == 8
        assert _stored_lessons(first["course"]["id"])[1].content == {"theory": "Calibrate daily"}

    def test_unusable_answer_skips_that_course(self, client, admin_headers, gemini):
        gemini.queue(CATALOG_PLAN, "not json", CATALOG_PLAN)

        resp = client.post(
            "/functions/v1/ai-comprehensive-training-generator",
            headers=admin_headers,
            json={"category": "Food Safety & Compliance"},
        )
        assert resp.status_code == 200
        results = resp.json()["results"]
        failed = [r for r in results if r["status"] == "error"]
        assert len(failed) == 1
        assert failed[0]["courseTitle"] == "Temperature Control and Monitoring"
        assert resp.json()["message"] == "Generated 7 courses successfully"
        assert len(_catalog_courses("Food Safety & Compliance")) == 7

    def test_no_selection_covers_the_whole_catalog(self, client, admin_headers, gemini):
        gemini.queue(CATALOG_PLAN)

        resp = client.post("/functions/v1/ai-comprehensive-training-generator", headers=admin_headers, json={})
        assert resp.status_code == 200
        assert resp.json()["categoriesProcessed"] == list(COMPREHENSIVE_CATALOG)
        assert len(gemini.calls) == 40

    def test_unknown_category_is_400(self, client, admin_headers, gemini):
        resp = client.post(
            "/functions/v1/ai-comprehensive-training-generator",
            headers=admin_headers,
            json={"selectedCategories": ["Mixology"]},
        )
        assert resp.status_code == 400
        assert gemini.calls == []

    def test_requires_the_admin_key(self, client, user_headers, gemini):
        resp = client.post("/functions/v1/ai-comprehensive-training-generator", headers=user_headers, json={})
        assert resp.status_code == 401
        assert gemini.calls == []

    def test_video_research_returns_text(self, client, admin_headers, gemini):
        gemini.queue("  ServSafe channel: food safety basics  ")

        resp = client.post(
            "/functions/v1/ai-comprehensive-training-generator",
            headers=admin_headers,
            json={"action": "generate_video_content"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["videoContent"] == "ServSafe channel: food safety basics"
        assert body["message"] == "Video content research completed"
        assert _catalog_courses("Food Safety & Compliance") == []

    def test_web_generator_keeps_videos_and_quizzes(self, client, admin_headers, gemini):
        gemini.queue(
            {
                "course": {"title": "Allergen Management", "difficulty_level": "beginner"},
                "lessons": [
                    {
                        "title": "The big nine",
                        "content": "Know the major allergens",
                        "lesson_order": 4,
                        "video_url": "https://www.youtube.com/watch?v=abc",
                        "resources": ["Allergen chart"],
                        "quiz_questions": [{"question": "Is sesame an allergen?", "options": ["Yes", "No"]}],
                    }
                ],
            }
        )

        resp = client.post(
            "/functions/v1/ai-web-training-content",
            headers=admin_headers,
            json={"action": "generate_comprehensive_training", "category": "food-safety"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Generated 5 of 5 courses for Food Safety & Compliance"
        assert body["category"] == "Food Safety & Compliance"
        assert "Focus on: Food safety principles, HACCP" in prompt_text(gemini.calls[0])

        lesson = _stored_lessons(body["results"][0]["course"]["id"])[0]
        assert lesson.order_index == 4
        assert lesson.content["theory"] == "Know the major allergens"
        assert lesson.content["video_url"] == "https://www.youtube.com/watch?v=abc"
        assert lesson.content["resources"] == ["Allergen chart"]
        assert lesson.content["quiz_questions"][0]["question"] == "Is sesame an allergen?"
        assert len(_catalog_courses("food-safety")) == 5

    def test_web_generator_unknown_category_uses_pos_training(self, client, admin_headers, gemini):
        gemini.queue(CATALOG_PLAN)

        resp = client.post(
            "/functions/v1/ai-web-training-content",
            headers=admin_headers,
            json={"action": "generate_comprehensive_training", "category": "sommelier"},
        )
        assert resp.status_code == 200
        assert resp.json()["category"] == "POS System Training"
        assert 'for "Toast POS Complete Training"' in prompt_text(gemini.calls[0])

    def test_web_generator_search_strategies(self, client, admin_headers, gemini):
        gemini.queue("search: toast pos tutorial")

        resp = client.post(
            "/functions/v1/ai-web-training-content", headers=admin_headers, json={"action": "search_real_videos"}
        )
        assert resp.status_code == 200
        assert resp.json()["searchStrategies"] == "search: toast pos tutorial"

    def test_web_generator_needs_a_known_action(self, client, admin_headers, gemini):
        resp = client.post("/functions/v1/ai-web-training-content", headers=admin_headers, json={"action": "scrape"})
        assert resp.status_code == 400
        assert gemini.calls == []
