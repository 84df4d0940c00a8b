"""FastAPI application with all routes."""
from __future__ import annotations

import logging

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from lecture_assistant.config import Settings, load_settings, save_settings
from lecture_assistant.editor import EXPORT_FILENAME, EXPORT_MEDIA_TYPE, QuestionEditor, item_to_dict
from lecture_assistant.errors import (
    InvalidEdit,
    LectureAssistantError,
    NothingSelected,
    QuestionNotFound,
    SizeExceeded,
)
from lecture_assistant.models import UploadedFile
from lecture_assistant.orchestrator import Pipeline, PipelineState

app = FastAPI(title="Lecture Assistant")

# Global state (initialized in startup)
_settings: Settings | None = None
_pipeline: Pipeline | None = None

_log = logging.getLogger("lecture_assistant.api")


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def get_pipeline() -> Pipeline:
    assert _pipeline is not None
    return _pipeline


def _get_llm():
    s = get_settings()
    if s.llm_provider == "ollama":
        from lecture_assistant.providers.llm_ollama import OllamaProvider
        return OllamaProvider(base_url=s.ollama_url, model=s.llm_model)
    elif s.llm_provider == "anthropic":
        from lecture_assistant.providers.llm_anthropic import AnthropicProvider
        return AnthropicProvider(model=s.llm_model)
    elif s.llm_provider == "openai":
        from lecture_assistant.providers.llm_openai import OpenAIProvider
        return OpenAIProvider(model=s.llm_model)
    raise ValueError(f"Unknown LLM provider: {s.llm_provider}")


@app.on_event("startup")
async def startup():
    global _settings, _pipeline
    if _pipeline is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    # Resolve the provider per call so settings changes take effect at once
    _pipeline = Pipeline(lambda: _get_llm(), _settings)


@app.exception_handler(LectureAssistantError)
async def lecture_assistant_error(request: Request, exc: LectureAssistantError):
    _log.info("%s on %s: %s", exc.error_code, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _state_response(state: PipelineState, *errors: LectureAssistantError | None) -> JSONResponse:
    """Pipeline state, with the status of the first stage error present."""
    status = next((e.status_code for e in errors if e is not None), 200)
    return JSONResponse(status_code=status, content=state.to_dict())


def _editor() -> QuestionEditor:
    editor = get_pipeline().state.editor
    if editor is None:
        raise QuestionNotFound("No questions have been generated yet.")
    return editor


# ── API: Upload and analysis ──────────────────────────────────────────────

@app.post("/api/upload")
async def api_upload(
    files: list[UploadFile] = File(...),
    analyze_together: bool | None = Form(None),
):
    pipeline = get_pipeline()
    settings = get_settings()
    limit = settings.max_upload_bytes

    uploads = []
    for f in files:
        # Reject oversized single uploads before reading them
        if len(files) == 1 and f.size is not None and f.size > limit:
            error = SizeExceeded(
                f"File '{f.filename}' is larger than {settings.max_upload_mb:g} MB.",
                file_name=f.filename, file_size=f.size, max_bytes=limit,
            )
            return _state_response(pipeline.reject_upload(error), error)
        data = await f.read()
        uploads.append(UploadedFile(
            name=f.filename or "upload",
            mime_type=f.content_type or "",
            data=data,
            size=f.size if f.size is not None else len(data),
        ))

    if len(uploads) == 1:
        state = await pipeline.process_file(uploads[0])
    else:
        state = await pipeline.process_batch(uploads, analyze_together=analyze_together)
    return _state_response(state, state.file_error, state.analysis_error)


@app.get("/api/state")
async def api_state():
    return get_pipeline().state.to_dict()


# ── API: Question generation ──────────────────────────────────────────────

@app.post("/api/generate")
async def api_generate(request: Request):
    body = await request.json() if await request.body() else {}
    state = await get_pipeline().generate(
        number_of_questions=body.get("count"),
        difficulty=body.get("difficulty"),
        question_type=body.get("question_type"),
    )
    return _state_response(state, state.generation_error)


# ── API: Question editing ─────────────────────────────────────────────────

@app.get("/api/questions")
async def api_questions():
    editor = get_pipeline().state.editor
    return editor.to_dict() if editor else []


@app.patch("/api/questions/{question_id}")
async def api_update_question(question_id: str, request: Request):
    body = await request.json()
    if not isinstance(body, dict):
        raise InvalidEdit("Expected a JSON object of field changes.")
    changes = {k: v for k, v in body.items() if k != "question_id"}
    return item_to_dict(_editor().update_field(question_id, **changes))


@app.put("/api/questions/{question_id}/options/{option_id}")
async def api_rename_option(question_id: str, option_id: str, request: Request):
    body = await request.json()
    return item_to_dict(_editor().rename_option(question_id, option_id, str(body.get("text", ""))))


@app.post("/api/questions/{question_id}/options")
async def api_add_option(question_id: str, request: Request):
    body = await request.json() if await request.body() else {}
    editor = _editor()
    notice = editor.add_option(question_id, body.get("text"))
    return {"item": item_to_dict(editor.get(question_id)), "notice": notice}


@app.delete("/api/questions/{question_id}/options/{option_id}")
async def api_remove_option(question_id: str, option_id: str):
    editor = _editor()
    notice = editor.remove_option(question_id, option_id)
    return {"item": item_to_dict(editor.get(question_id)), "notice": notice}


@app.post("/api/questions/{question_id}/selected")
async def api_select_question(question_id: str, request: Request):
    body = await request.json()
    return item_to_dict(_editor().toggle_selected(question_id, bool(body.get("selected", True))))


@app.post("/api/questions/{question_id}/correct")
async def api_correct_answer(question_id: str, request: Request):
    body = await request.json()
    editor = _editor()
    if "checked" in body:
        item = editor.toggle_correct_answer(question_id, str(body.get("text", "")), bool(body["checked"]))
    else:
        item = editor.set_correct_answer(question_id, str(body.get("text", "")))
    return item_to_dict(item)


@app.delete("/api/questions/{question_id}")
async def api_delete_question(question_id: str):
    _editor().delete(question_id)
    return {"deleted": question_id}


# ── API: Export ───────────────────────────────────────────────────────────

@app.get("/api/export")
async def api_export():
    editor = get_pipeline().state.editor
    if editor is None:
        raise NothingSelected("There are no questions to export.")
    content = editor.export_selected()
    return Response(
        content=content,
        media_type=EXPORT_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    body = await request.json()
    s = get_settings()
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    for k, v in body.items():
        if k in known:
            setattr(s, k, v)
    save_settings(s)
    return s.to_dict()
