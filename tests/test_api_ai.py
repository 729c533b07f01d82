from appduka.errors import BackendUnavailableError
from appduka.models.catalog import AppStatus
from appduka.services.ai_advisor import RECOMMENDATION_FAILED_MESSAGE


def test_recommend_uses_only_visible_apps(client, make_app, gemini):
    make_app("Redio", AppStatus.approved, category="Media")
    make_app("Siri", AppStatus.pending)
    response = client.post("/api/v1/ai/recommend", json={"query": "nataka muziki"})
    assert response.status_code == 200
    assert response.json() == {"text": gemini.answer}
    assert "Redio" in gemini.prompts[0]
    assert "Siri" not in gemini.prompts[0]


def test_recommend_failure_is_bad_gateway_in_swahili(client, make_app, gemini):
    make_app("Redio")
    gemini.error = BackendUnavailableError("quota")
    response = client.post("/api/v1/ai/recommend", json={"query": "muziki"})
    assert response.status_code == 502
    assert response.json()["message"] == RECOMMENDATION_FAILED_MESSAGE


def test_analysis_requires_manage_entries(client, make_app, user, developer, auth_headers):
    app = make_app("Kalenda", AppStatus.pending)
    assert client.post(f"/api/v1/apps/{app.id}/ai-analysis", headers=auth_headers(user)).status_code == 403
    response = client.post(f"/api/v1/apps/{app.id}/ai-analysis", headers=auth_headers(developer))
    assert response.status_code == 200
    assert response.json()["text"]
