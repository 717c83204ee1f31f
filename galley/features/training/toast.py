"""
galley/features/training/toast.py

Ready-made Toast POS lessons. No model is involved: the course name picks
one of six fixed curricula, which are written into the course's lessons.
"""

from typing import Any, Dict, List

from galley.core.logging import log_event
from galley.features.training.service import get_course, list_lessons, save_lessons
from galley.models.training import ToastTrainingRequest


def _lesson(title: str, description: str, minutes: int, order: int, sections: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "title": title,
        "description": description,
        "durationMinutes": minutes,
        "orderIndex": order,
        "content": {"type": "interactive_lesson", "sections": sections},
    }


def _section(title: str, body: str, question: str, options: List[str], correct: int) -> Dict[str, Any]:
    return {
        "title": title,
        "content": body,
        "media": [],
        "quiz": [{"question": question, "options": options, "correct": correct}],
    }


FUNDAMENTALS = [
    _lesson(
        "Toast POS System Overview",
        "What the Toast platform covers and the hardware it runs on",
        15,
        1,
        [
            _section(
                "What is Toast POS?",
                "Toast is a cloud-based restaurant platform. Point of sale, kitchen display, online ordering, "
                "inventory, scheduling and reporting share one menu and one set of sales data.",
                "What type of business is Toast built for?",
                ["Retail stores", "Restaurants", "Medical offices", "All businesses"],
                1,
            ),
            _section(
                "Toast hardware",
                "Stations sit at the counter and bar. Toast Go handhelds take orders and payments at the table. "
                "Kitchen display screens replace printed tickets, and guest-facing displays show totals and tips.",
                "Which device is used for tableside ordering?",
                ["Kitchen display", "Toast Go handheld", "Receipt printer", "Cash drawer"],
                1,
            ),
        ],
    ),
    _lesson(
        "Menu Setup and Management",
        "Build and maintain the digital menu",
        20,
        2,
        [
            _section(
                "Menu structure",
                "Menus hold groups, groups hold items, and items carry modifier groups. Changes made in the "
                "back office publish to every device, so price and availability stay consistent.",
                "Where do add-ons such as 'extra cheese' live?",
                ["Menu groups", "Modifier groups", "Discounts", "Service charges"],
                1,
            ),
        ],
    ),
    _lesson(
        "Taking Orders and Processing Payments",
        "Order entry, firing to the kitchen and settling the check",
        25,
        3,
        [
            _section(
                "Order entry workflow",
                "Open a check for the table or tab, add items and modifiers, then send. Coursing holds later "
                "courses until the server fires them. Payments accept card, tap, cash and split checks.",
                "What does coursing let a server do?",
                ["Discount items", "Hold later courses until fired", "Close the register", "Change prices"],
                1,
            ),
        ],
    ),
]

ANALYTICS = [
    _lesson(
        "Toast Analytics Dashboard Overview",
        "Navigate the reporting suite and its key numbers",
        20,
        1,
        [
            _section(
                "Dashboard navigation",
                "The dashboard shows sales, labor, menu performance and guest trends, live during service and "
                "historically for any date range. Reports can be pinned, exported and scheduled.",
                "Which metric helps optimize seating efficiency?",
                ["Average check size", "Table turnover", "Labor cost %", "Food cost %"],
                1,
            ),
        ],
    ),
    _lesson(
        "Sales and Revenue Analysis",
        "Read sales performance and act on it",
        25,
        2,
        [
            _section(
                "Sales performance metrics",
                "Gross sales are revenue before discounts and voids; net sales come after them. Compare dayparts, "
                "order channels and the same period last year before changing prices or staffing.",
                "What separates gross sales from net sales?",
                ["Taxes", "Discounts and voids", "Tips", "Card processing fees"],
                1,
            ),
        ],
    ),
]

MENU_ENGINEERING = [
    _lesson(
        "Menu Engineering Fundamentals",
        "Classify items by profit and popularity and act on each group",
        30,
        1,
        [
            _section(
                "Menu engineering basics",
                "Stars are popular and profitable; promote them. Plow horses sell but earn little; re-cost them. "
                "Puzzles earn well but sell poorly; reposition them. Dogs do neither; consider removing them.",
                "Which category has high profit but low popularity?",
                ["Stars", "Plow Horses", "Puzzles", "Dogs"],
                2,
            ),
        ],
    ),
]

KITCHEN_DISPLAY = [
    _lesson(
        "Kitchen Display System Setup",
        "Configure Toast KDS stations for a smooth line",
        25,
        1,
        [
            _section(
                "KDS configuration",
                "Route items to prep and expo stations, color-code by order type and age, and flag allergies. "
                "Ticket times on the display show where the line is slowing down.",
                "What helps the line manage order urgency?",
                ["Color-coding", "Ticket timers", "Priority flags", "All of the above"],
                3,
            ),
        ],
    ),
]

SECURITY = [
    _lesson(
        "PCI Compliance and Security",
        "Keep card data safe on the Toast platform",
        20,
        1,
        [
            _section(
                "PCI compliance requirements",
                "Card data is encrypted end to end and tokenized, so it never sits on the restaurant's devices. "
                "Staff still need their own logins, limited permissions and a plan for lost devices.",
                "What does PCI DSS stand for?",
                [
                    "Payment Card Industry Data Security Standard",
                    "Personal Card Information Data Security System",
                    "Protected Card Industry Data Security Standard",
                    "Payment Card Information Data Security System",
                ],
                0,
            ),
        ],
    ),
]

PLATFORM_OVERVIEW = [
    _lesson(
        "Toast Platform Overview",
        "The parts of the Toast platform and how they connect",
        15,
        1,
        [
            _section(
                "Toast platform features",
                "Beyond the POS, Toast runs the kitchen display, online ordering, payroll, loyalty and reporting, "
                "and connects to delivery, accounting and reservation services.",
                "What does KDS stand for in Toast?",
                ["Kitchen Data System", "Kitchen Display System", "Kitchen Delivery Service", "Kitchen Digital Solution"],
                1,
            ),
        ],
    ),
]

# first match wins; a name must also mention toast
CURRICULA = (
    ("fundamental", FUNDAMENTALS),
    ("analytics", ANALYTICS),
    ("menu", MENU_ENGINEERING),
    ("kitchen", KITCHEN_DISPLAY),
    ("security", SECURITY),
)


def curriculum_for(course_name: str) -> List[Dict[str, Any]]:
    name = course_name.lower()
    if "toast" in name:
        for keyword, lessons in CURRICULA:
            if keyword in name:
                return lessons
    return PLATFORM_OVERVIEW


def seed_toast_lessons(req: ToastTrainingRequest, *, user_id=None) -> dict:
    course = get_course(req.course_id)
    existing = list_lessons(course.id)
    if existing:
        return {
            "success": True,
            "message": "Course already has content",
            "lessonsCount": len(existing),
            "lessons": existing,
        }

    saved = save_lessons(course.id, {"lessons": curriculum_for(req.course_name or course.title)})
    log_event(
        "info",
        "training.toast_lessons",
        user_id=user_id,
        event_type="training.lessons_generated",
        extra={"course_id": course.id, "count": len(saved)},
    )
    return {"success": True, "lessonsGenerated": len(saved), "lessons": saved}
