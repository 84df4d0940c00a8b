"""Tests for the FastAPI application routes."""
from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import ANALYSIS_JSON, SINGLE_CHOICE_JSON, FakeLLM
from lecture_assistant import app as app_module
from lecture_assistant.app import app
from lecture_assistant.config import Settings
from lecture_assistant.orchestrator import Pipeline

LECTURE = ("lecture.txt", b"The mitochondria is the powerhouse of the cell.", "text/plain")


@pytest.fixture
def llm():
    return FakeLLM([ANALYSIS_JSON, SINGLE_CHOICE_JSON])


@pytest.fixture
def test_app(llm):
    """Set up test app with fresh settings and a scripted LLM."""
    settings = Settings()

    # Set globals BEFORE creating TestClient so startup() is a no-op
    app_module._settings = settings
    app_module._pipeline = Pipeline(lambda: app_module._get_llm(), settings)

    # Patch save_settings and _get_llm so tests never hit real config/LLM
    with patch("lecture_assistant.app.save_settings") as save, \
         patch("lecture_assistant.app._get_llm", return_value=llm):
        client = TestClient(app, raise_server_exceptions=False)
        yield client, settings, save
        client.close()

    app_module._settings = None
    app_module._pipeline = None


@pytest.fixture
def test_app_with_questions(test_app):
    """Test app with a lecture analyzed and three questions generated."""
    client, settings, save = test_app
    assert client.post("/api/upload", files={"files": LECTURE}).status_code == 200
    resp = client.post("/api/generate", json={"count": 3, "difficulty": "medium", "question_type": "single-choice"})
    assert resp.status_code == 200
    return client, resp.json()["questions"]


class TestUploadAPI:
    def test_text_upload_analyzed(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/upload", files={"files": LECTURE})
        assert resp.status_code == 200
        data = resp.json()
        assert data["stage"] == "idle"
        assert data["file_info"]["text_content"].startswith("The mitochondria")
        assert data["analysis"]["keyConcepts"] == ["mitochondria"]
        assert data["file_error"] is None

    def test_legacy_doc_rejected(self, test_app, llm):
        client, _, _ = test_app
        resp = client.post("/api/upload", files={"files": ("old.doc", b"\xd0\xcf", "application/msword")})
        assert resp.status_code == 415
        data = resp.json()
        assert data["file_error"]["error"] == "UnsupportedFormat"
        assert data["file_error"]["stage"] == "file"
        assert data["analysis"] is None
        assert llm.call_count == 0

    def test_oversized_upload(self, test_app, llm):
        client, settings, _ = test_app
        settings.max_upload_bytes = 8
        resp = client.post("/api/upload", files={"files": LECTURE})
        assert resp.status_code == 413
        assert resp.json()["file_error"]["error"] == "SizeExceeded"
        assert llm.call_count == 0

    def test_analysis_failure(self, test_app, llm):
        client, _, _ = test_app
        llm._responses = ["not json"]
        resp = client.post("/api/upload", files={"files": LECTURE})
        assert resp.status_code == 502
        assert resp.json()["analysis_error"]["stage"] == "analysis"

    def test_batch_upload(self, test_app, llm):
        client, _, _ = test_app
        resp = client.post("/api/upload", files=[
            ("files", ("old.doc", b"x", "application/msword")),
            ("files", LECTURE),
        ])
        assert resp.status_code == 200
        data = resp.json()
        assert [e["file_name"] for e in data["batch_errors"]] == ["old.doc"]
        assert data["batch_errors"][0]["error"] == "UnsupportedFormat"
        assert data["analysis"] is not None

    def test_batch_analyze_together(self, test_app, llm):
        client, _, _ = test_app
        client.post(
            "/api/upload",
            files=[("files", LECTURE), ("files", ("notes.md", b"# Cristae", "text/markdown"))],
            data={"analyze_together": "true"},
        )
        assert "notes.md" in llm.prompts[0]
        assert "lecture.txt" in llm.prompts[0]

    def test_state(self, test_app):
        client, _, _ = test_app
        resp = client.get("/api/state")
        assert resp.status_code == 200
        assert resp.json()["stage"] == "idle"
        assert resp.json()["questions"] == []

    def test_unknown_provider_is_a_stage_error(self, test_app):
        client, _, _ = test_app
        with patch("lecture_assistant.app._get_llm", side_effect=ValueError("Unknown LLM provider: foo")):
            resp = client.post("/api/upload", files={"files": LECTURE})
        assert resp.status_code == 502
        data = resp.json()
        assert data["analysis_error"]["error"] == "AnalysisFailed"
        assert data["stage"] == "idle"


class TestGenerateAPI:
    def test_generate(self, test_app_with_questions):
        _, questions = test_app_with_questions
        assert len(questions) == 3
        assert all(q["selected"] for q in questions)
        assert questions[0]["type"] == "single-choice"

    def test_count_out_of_range(self, test_app, llm):
        client, _, _ = test_app
        client.post("/api/upload", files={"files": LECTURE})
        resp = client.post("/api/generate", json={"count": 25})
        assert resp.status_code == 400
        err = resp.json()["generation_error"]
        assert err["error"] == "QuestionCountOutOfRange"
        assert err["stage"] == "generation"
        assert llm.call_count == 1

    def test_generate_without_analysis(self, test_app):
        client, _, _ = test_app
        resp = client.post("/api/generate", json={})
        assert resp.status_code == 400
        assert resp.json()["generation_error"]["error"] == "InvalidInput"


class TestQuestionsAPI:
    def test_list(self, test_app_with_questions):
        client, questions = test_app_with_questions
        resp = client.get("/api/questions")
        assert [q["id"] for q in resp.json()] == [q["id"] for q in questions]

    def test_patch_text(self, test_app_with_questions):
        client, questions = test_app_with_questions
        qid = questions[0]["id"]
        resp = client.patch(f"/api/questions/{qid}", json={"question_text": "Edited?"})
        assert resp.status_code == 200
        assert resp.json()["question_text"] == "Edited?"
        assert resp.json()["original"]["questionText"] != "Edited?"

    def test_patch_unknown_field(self, test_app_with_questions):
        client, questions = test_app_with_questions
        resp = client.patch(f"/api/questions/{questions[0]['id']}", json={"correct_answers": ["x"]})
        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidEdit"

    def test_patch_not_found(self, test_app_with_questions):
        client, _ = test_app_with_questions
        resp = client.patch("/api/questions/missing", json={"question_text": "x"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "QuestionNotFound"

    def test_rename_option_moves_answer(self, test_app_with_questions):
        client, questions = test_app_with_questions
        q = questions[0]
        option = next(o for o in q["options"] if o["text"] == q["correct_answer"])
        resp = client.put(f"/api/questions/{q['id']}/options/{option['id']}", json={"text": "Mitochondrion"})
        assert resp.status_code == 200
        assert resp.json()["correct_answer"] == "Mitochondrion"

    def test_add_option_limit(self, test_app_with_questions):
        client, questions = test_app_with_questions
        qid = questions[0]["id"]
        assert client.post(f"/api/questions/{qid}/options").json()["notice"] is None
        resp = client.post(f"/api/questions/{qid}/options", json={"text": "Vacuole"})
        assert "At most 5" in resp.json()["notice"]
        assert len(resp.json()["item"]["options"]) == 5

    def test_remove_option_limit(self, test_app_with_questions):
        client, questions = test_app_with_questions
        q = questions[1]
        ids = [o["id"] for o in q["options"]]
        assert client.delete(f"/api/questions/{q['id']}/options/{ids[0]}").json()["notice"] is None
        resp = client.delete(f"/api/questions/{q['id']}/options/{ids[1]}")
        assert "At least 2" in resp.json()["notice"]
        assert len(resp.json()["item"]["options"]) == 2

    def test_set_correct_answer(self, test_app_with_questions):
        client, questions = test_app_with_questions
        q = questions[1]
        resp = client.post(f"/api/questions/{q['id']}/correct", json={"text": "DNA"})
        assert resp.json()["correct_answer"] == "DNA"

    def test_toggle_on_single_choice_rejected(self, test_app_with_questions):
        client, questions = test_app_with_questions
        resp = client.post(f"/api/questions/{questions[1]['id']}/correct", json={"text": "DNA", "checked": True})
        assert resp.status_code == 400

    def test_delete(self, test_app_with_questions):
        client, questions = test_app_with_questions
        resp = client.delete(f"/api/questions/{questions[0]['id']}")
        assert resp.status_code == 200
        assert len(client.get("/api/questions").json()) == 2

    def test_editing_before_generation(self, test_app):
        client, _, _ = test_app
        resp = client.patch("/api/questions/abc", json={"question_text": "x"})
        assert resp.status_code == 404


class TestExportAPI:
    def test_export_selected(self, test_app_with_questions):
        client, questions = test_app_with_questions
        client.post(f"/api/questions/{questions[1]['id']}/selected", json={"selected": False})
        resp = client.get("/api/export")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/json")
        assert 'filename="test_questions.json"' in resp.headers["content-disposition"]
        data = json.loads(resp.content)
        assert len(data["questions"]) == 2
        assert data["questions"][0]["questionText"] == questions[0]["question_text"]

    def test_nothing_selected(self, test_app_with_questions):
        client, questions = test_app_with_questions
        for q in questions:
            client.post(f"/api/questions/{q['id']}/selected", json={"selected": False})
        resp = client.get("/api/export")
        assert resp.status_code == 400
        assert resp.json()["error"] == "NothingSelected"

    def test_export_before_generation(self, test_app):
        client, _, _ = test_app
        assert client.get("/api/export").status_code == 400

    def test_new_upload_clears_questions(self, test_app_with_questions, llm):
        client, _ = test_app_with_questions
        llm._responses = [ANALYSIS_JSON]
        client.post("/api/upload", files={"files": LECTURE})
        assert client.get("/api/questions").json() == []


class TestSettingsAPI:
    def test_get_settings(self, test_app):
        client, _, _ = test_app
        resp = client.get("/api/settings")
        assert resp.status_code == 200
        data = resp.json()
        assert data["llm_provider"] == "ollama"
        assert data["max_upload_bytes"] == 10 * 1024 * 1024

    def test_update_settings(self, test_app):
        client, settings, save = test_app
        resp = client.put("/api/settings", json={"default_question_count": 8, "bogus": 1})
        assert resp.status_code == 200
        assert resp.json()["default_question_count"] == 8
        assert "bogus" not in resp.json()
        assert settings.default_question_count == 8
        save.assert_called_once()
