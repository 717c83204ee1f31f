"""
galley/api/functions.py
HTTP handlers for the AI functions, one POST route per function name.

Every handler is authenticated. After body validation the model client
must be configured, an optional Idempotency-Key is claimed, and one
ai_requests unit is consumed before any model call. A route may name extra
features (parse-document-ai also takes document_uploads); a request blocked
on any of them consumes none. Routes that make no model call, and the
admin catalog jobs, are not metered.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Union

from fastapi import APIRouter, Body, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from galley.core import idempotency
from galley.core.auth import get_current_user_id, require_admin
from galley.core.logging import get_request_id
from galley.features.ai.client import GeminiClient, OpenAIClient, get_gemini_client, get_openai_client
from galley.features.assistant.service import ask_assistant, suggest_modification
from galley.features.automation.service import execute_rule
from galley.features.beverages.service import recommend_pairings
from galley.features.checklists.service import optimize_checklist
from galley.features.documents.service import parse_document
from galley.features.entitlements.service import require_features
from galley.features.feedback.service import analyze_sentiment
from galley.features.finance.service import analyze_cash
from galley.features.forms.service import generate_form
from galley.features.inventory.service import analyze_inventory, count_photo_inventory
from galley.features.meetings.service import separate_voices, transcribe_meeting
from galley.features.menu.service import optimize_menu
from galley.features.orders.service import analyze_orders, resolve_orders
from galley.features.pos.client import ToastClient, get_toast_client
from galley.features.pos.service import run_toast_action
from galley.features.recipes.service import enhance_recipe, generate_recipe, parse_recipes
from galley.features.scheduling.service import optimize_schedule
from galley.features.training.catalog import generate_comprehensive_catalog, generate_web_catalog
from galley.features.training.service import (
    auto_generate_lessons,
    build_learning_path,
    coach,
    create_course_content,
    generate_assessment,
    generate_course_lessons,
    generate_training_content,
)
from galley.features.training.toast import seed_toast_lessons
from galley.features.transcription.service import transcribe
from galley.models.assistant import AppModifierRequest, AssistantRequest, TranscriptionRequest
from galley.models.automation import ExecuteRuleRequest
from galley.models.beverage import DrinkPairingRequest
from galley.models.forms import DocumentParseRequest, FormGenerateRequest
from galley.models.inventory import InventoryAnalysisRequest, PhotoInventoryRequest
from galley.models.meetings import MeetingTranscriptionRequest, VoiceSeparationRequest
from galley.models.operations import (
    CashAnalysisRequest,
    ChecklistRequest,
    MenuOptimizationRequest,
    OrderAnalysisRequest,
    SentimentRequest,
)
from galley.models.pos import ToastRequest
from galley.models.recipe import RecipeEnhanceRequest, RecipeGenerateRequest, RecipeParseRequest
from galley.models.scheduling import ScheduleRequest
from galley.models.training import (
    AssessmentRequest,
    CatalogRequest,
    CoachRequest,
    CourseContentRequest,
    CourseCreateRequest,
    LearningPathRequest,
    ToastTrainingRequest,
    WebCatalogRequest,
)
from galley.models.usage import Feature

router = APIRouter(prefix="/functions/v1", tags=["functions"])

Client = Union[GeminiClient, OpenAIClient]


async def run_function(
    request: Request,
    scope: str,
    user_id: str,
    client: Optional[Client],
    call: Callable[[], Awaitable[Dict[str, Any]]],
    *,
    features: Sequence[Feature] = (Feature.AI_REQUESTS,),
) -> Union[Dict[str, Any], JSONResponse]:
    """
    Shared request flow for AI functions.

    1. Fail fast when the model key is missing
    2. Claim Idempotency-Key (replay a completed response)
    3. Consume one unit of each metered feature, all or none
    4. Run the handler and store its response under the key

    A failed attempt releases the key so the client may retry.
    """
    if client is not None:
        client.ensure_configured()

    key = request.headers.get("Idempotency-Key")
    if key:
        replay = idempotency.begin(key, scope, user_id)
        if replay is not None:
            return JSONResponse(status_code=replay["status_code"], content=replay["body"])

    try:
        if features:
            require_features(user_id, features, request_id=get_request_id())
        body = await call()
    except Exception:
        if key:
            idempotency.release(key, scope, user_id)
        raise

    if key:
        idempotency.complete(key, scope, body, user_id=user_id)
    return body


def parse_body(model: type, body: Dict[str, Any]) -> BaseModel:
    """Validate a raw JSON object for routes that accept more than one shape."""
    try:
        return model.model_validate(body)
    except PydanticValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False)) from exc


# ---------------------------------------------------------------------------
# recipes and beverages
# ---------------------------------------------------------------------------

@router.post("/ai-recipe-generator")
async def recipe_generator(
    payload: RecipeGenerateRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-recipe-generator", user_id, client,
        lambda: generate_recipe(payload, client, user_id=user_id),
    )


@router.post("/ai-recipe-parser")
async def recipe_parser(
    payload: RecipeParseRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-recipe-parser", user_id, client,
        lambda: parse_recipes(payload, client, user_id=user_id),
    )


@router.post("/ai-recipe-enhancer")
async def recipe_enhancer(
    payload: RecipeEnhanceRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-recipe-enhancer", user_id, client,
        lambda: enhance_recipe(payload, client, user_id=user_id),
    )


@router.post("/ai-drink-pairing")
async def drink_pairing(
    payload: DrinkPairingRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-drink-pairing", user_id, client,
        lambda: recommend_pairings(payload, client, user_id=user_id),
    )


# ---------------------------------------------------------------------------
# forms and documents
# ---------------------------------------------------------------------------

@router.post("/ai-form-generator")
async def form_generator(
    payload: FormGenerateRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-form-generator", user_id, client,
        lambda: generate_form(payload, client, user_id=user_id),
    )


@router.post("/parse-document-ai")
async def parse_document_ai(
    payload: DocumentParseRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "parse-document-ai", user_id, client,
        lambda: parse_document(payload, client, user_id=user_id, request_id=get_request_id()),
        features=(Feature.DOCUMENT_UPLOADS, Feature.AI_REQUESTS),
    )


# ---------------------------------------------------------------------------
# operations
# ---------------------------------------------------------------------------

@router.post("/ai-checklist-optimizer")
async def checklist_optimizer(
    payload: ChecklistRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-checklist-optimizer", user_id, client,
        lambda: optimize_checklist(payload, client, user_id=user_id),
    )


@router.post("/ai-cash-analyzer")
async def cash_analyzer(
    payload: CashAnalysisRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-cash-analyzer", user_id, client,
        lambda: analyze_cash(payload, client, user_id=user_id),
    )


@router.post("/ai-order-analyzer")
async def order_analyzer(
    payload: OrderAnalysisRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    # nothing to analyze is a 400 and must not cost a request
    resolved = resolve_orders(payload)
    return await run_function(
        request, "ai-order-analyzer", user_id, client,
        lambda: analyze_orders(resolved, client, user_id=user_id),
    )


@router.post("/ai-menu-optimizer")
async def menu_optimizer(
    payload: MenuOptimizationRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-menu-optimizer", user_id, client,
        lambda: optimize_menu(payload, client, user_id=user_id),
    )


@router.post("/ai-sentiment-analyzer")
async def sentiment_analyzer(
    payload: SentimentRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-sentiment-analyzer", user_id, client,
        lambda: analyze_sentiment(payload, client, user_id=user_id),
    )


# ---------------------------------------------------------------------------
# training
# ---------------------------------------------------------------------------

@router.post("/ai-assessment-generator")
async def assessment_generator(
    payload: AssessmentRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-assessment-generator", user_id, client,
        lambda: generate_assessment(payload, client, user_id=user_id),
    )


@router.post("/ai-learning-path")
async def learning_path(
    payload: LearningPathRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-learning-path", user_id, client,
        lambda: build_learning_path(payload, client, user_id=user_id),
    )


@router.post("/ai-course-creator")
async def course_creator(
    payload: CourseCreateRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-course-creator", user_id, client,
        lambda: create_course_content(payload, client, user_id=user_id),
    )


@router.post("/ai-training-coach")
async def training_coach(
    payload: CoachRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-training-coach", user_id, client,
        lambda: coach(payload, client, user_id=user_id),
    )


@router.post("/generate-course-content")
async def course_content(
    payload: CourseContentRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: OpenAIClient = Depends(get_openai_client),
):
    return await run_function(
        request, "generate-course-content", user_id, client,
        lambda: generate_course_lessons(payload, client, user_id=user_id),
    )


@router.post("/auto-generate-lessons")
async def auto_lessons(
    request: Request,
    actor: str = Depends(require_admin),
    client: GeminiClient = Depends(get_gemini_client),
):
    """Batch job: admin key only, not metered against any user."""
    return await run_function(
        request, "auto-generate-lessons", actor, client,
        lambda: auto_generate_lessons(client),
        features=(),
    )


@router.post("/generate-training-content")
async def training_content(
    payload: CourseContentRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: OpenAIClient = Depends(get_openai_client),
):
    return await run_function(
        request, "generate-training-content", user_id, client,
        lambda: generate_training_content(payload, client, user_id=user_id),
    )


@router.post("/generate-toast-training-content")
async def toast_training_content(
    payload: ToastTrainingRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    """Fixed curriculum, no model call: not metered."""
    async def call():
        return seed_toast_lessons(payload, user_id=user_id)

    return await run_function(request, "generate-toast-training-content", user_id, None, call, features=())


@router.post("/ai-comprehensive-training-generator")
async def comprehensive_training_generator(
    payload: CatalogRequest,
    request: Request,
    actor: str = Depends(require_admin),
    client: GeminiClient = Depends(get_gemini_client),
):
    """Writes to the shared catalog: admin key only, not metered."""
    return await run_function(
        request, "ai-comprehensive-training-generator", actor, client,
        lambda: generate_comprehensive_catalog(payload, client),
        features=(),
    )


@router.post("/ai-web-training-content")
async def web_training_content(
    payload: WebCatalogRequest,
    request: Request,
    actor: str = Depends(require_admin),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-web-training-content", actor, client,
        lambda: generate_web_catalog(payload, client),
        features=(),
    )


# ---------------------------------------------------------------------------
# assistants and voice
# ---------------------------------------------------------------------------

@router.post("/ai-assistant")
async def assistant(
    payload: AssistantRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-assistant", user_id, client,
        lambda: ask_assistant(payload, client, user_id=user_id),
    )


@router.post("/ai-app-modifier")
async def app_modifier(
    payload: AppModifierRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-app-modifier", user_id, client,
        lambda: suggest_modification(payload, client, user_id=user_id),
    )


@router.post("/voice-transcription")
async def voice_transcription(
    payload: TranscriptionRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: OpenAIClient = Depends(get_openai_client),
):
    return await run_function(
        request, "voice-transcription", user_id, client,
        lambda: transcribe(payload, client, user_id=user_id),
    )


# ---------------------------------------------------------------------------
# inventory and staffing
# ---------------------------------------------------------------------------

@router.post("/ai-inventory-analyzer")
async def inventory_analyzer(
    request: Request,
    body: Dict[str, Any] = Body(...),
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    """A shelf photo (image + imageType) is counted; anything else is a stock analysis."""
    if body.get("image") and body.get("imageType"):
        photo = parse_body(PhotoInventoryRequest, body)
        return await run_function(
            request, "ai-inventory-analyzer", user_id, client,
            lambda: count_photo_inventory(photo, client, user_id=user_id),
        )
    payload = parse_body(InventoryAnalysisRequest, body)
    return await run_function(
        request, "ai-inventory-analyzer", user_id, client,
        lambda: analyze_inventory(payload, client, user_id=user_id),
    )


@router.post("/ai-scheduling-optimizer")
async def scheduling_optimizer(
    payload: ScheduleRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    client: GeminiClient = Depends(get_gemini_client),
):
    return await run_function(
        request, "ai-scheduling-optimizer", user_id, client,
        lambda: optimize_schedule(payload, client, user_id=user_id),
    )


# ---------------------------------------------------------------------------
# meetings
# ---------------------------------------------------------------------------

@router.post("/ai-meeting-transcription")
async def meeting_transcription(
    payload: MeetingTranscriptionRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    gemini: GeminiClient = Depends(get_gemini_client),
    openai: OpenAIClient = Depends(get_openai_client),
):
    return await run_function(
        request, "ai-meeting-transcription", user_id, gemini,
        lambda: transcribe_meeting(payload, gemini, openai, user_id=user_id),
    )


@router.post("/ai-voice-separator")
async def voice_separator(
    payload: VoiceSeparationRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    gemini: GeminiClient = Depends(get_gemini_client),
    openai: OpenAIClient = Depends(get_openai_client),
):
    return await run_function(
        request, "ai-voice-separator", user_id, gemini,
        lambda: separate_voices(payload, gemini, openai, user_id=user_id),
    )


# ---------------------------------------------------------------------------
# point of sale
# ---------------------------------------------------------------------------

@router.post("/toast-pos-integration")
async def toast_pos_integration(
    payload: ToastRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    toast: ToastClient = Depends(get_toast_client),
):
    """Pass-through to the caller's own Toast account: not metered."""
    async def call():
        return await run_toast_action(payload, toast, user_id=user_id)

    return await run_function(request, "toast-pos-integration", user_id, None, call, features=())


# ---------------------------------------------------------------------------
# automation
# ---------------------------------------------------------------------------

@router.post("/automation-executor")
async def automation_executor(
    payload: ExecuteRuleRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    async def call():
        return execute_rule(payload, user_id=user_id)

    return await run_function(request, "automation-executor", user_id, None, call, features=())
