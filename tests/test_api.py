"""HTTP surface tests: the controller is swapped for one backed by the scripted client."""

import pytest
from fastapi.testclient import TestClient

from roundtable.api.main import app
from roundtable.api.routes.workflow import get_controller
from roundtable.workflow.controller import OrchestrationController
from roundtable.workflow.store import WorkflowStore

from conftest import FakeGenerationClient, panel_payload


@pytest.fixture
def fake() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def api(fake, snapshot_store):
    controller = OrchestrationController(WorkflowStore(snapshots=snapshot_store), fake)
    app.dependency_overrides[get_controller] = lambda: controller
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def test_health(api):
    assert api.get("/health").json() == {"status": "ok"}


def test_initial_state(api):
    body = api.get("/api/workflow/state").json()
    assert body["state"]["current_step"] == 1
    assert [s["status"] for s in body["steps"]] == ["active", "locked", "locked", "locked", "locked"]
    assert body["pending_confirmation"] is None


def test_topic_and_research_flow(api, fake):
    assert api.put("/api/workflow/topic", json={"text": "X"}).status_code == 200
    confirmed = api.post("/api/workflow/topic/confirm").json()
    assert confirmed["status"] == "completed"
    assert confirmed["view"]["state"]["current_step"] == 2

    fake.streams.append(["研究" * 30])
    body = api.post("/api/workflow/research").json()
    assert body["status"] == "completed"
    assert body["view"]["steps"][1]["completed"] is True
    assert body["view"]["steps"][1]["loading"] is False


def test_locked_step_is_conflict(api):
    response = api.post("/api/workflow/steps/3/navigate")
    assert response.status_code == 409


def test_blank_character_is_unprocessable(api, fake):
    api.put("/api/workflow/topic", json={"text": "X"})
    api.post("/api/workflow/topic/confirm")
    fake.streams.append(["研究" * 30])
    api.post("/api/workflow/research")
    api.post("/api/workflow/steps/2/advance")

    response = api.post(
        "/api/workflow/panel/characters",
        json={"name": "新人", "profession": "", "background": "x"},
    )
    assert response.status_code == 422


def test_delete_character_confirmation_round_trip(api, fake):
    api.put("/api/workflow/topic", json={"text": "X"})
    api.post("/api/workflow/topic/confirm")
    fake.streams.append(["研究" * 30])
    api.post("/api/workflow/research")
    api.post("/api/workflow/steps/2/advance")
    fake.structured_result = panel_payload(3)
    assert api.post("/api/workflow/panel").json()["status"] == "completed"

    pending = api.delete("/api/workflow/panel/characters/0").json()
    assert pending["status"] == "needs_confirmation"
    assert pending["confirmation"]
    assert len(pending["view"]["state"]["characters"]) == 3

    resolved = api.post("/api/workflow/confirmation", json={"accept": True}).json()
    assert resolved["status"] == "completed"
    assert [c["name"] for c in resolved["view"]["state"]["characters"]] == ["專家1", "專家2"]


def test_prompt_edit_and_reset(api):
    api.put("/api/workflow/prompts/topic-gen", json={"text": "自訂題目"})
    assert api.get("/api/workflow/prompts").json()["prompts"]["topic-gen"] == "自訂題目"

    api.delete("/api/workflow/prompts")
    assert api.get("/api/workflow/prompts").json()["prompts"]["topic-gen"] != "自訂題目"


def test_unknown_prompt_slot_rejected(api):
    response = api.put("/api/workflow/prompts/not-a-slot", json={"text": "x"})
    assert response.status_code == 422
