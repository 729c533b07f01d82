"""AI advisory wrapper: prompt templates over the Generative Language API."""

from __future__ import annotations

import logging
from collections.abc import Iterable

import httpx

from appduka.config import settings
from appduka.errors import BackendUnavailableError
from appduka.metrics import AI_REQUESTS
from appduka.models.catalog import CatalogApp

logger = logging.getLogger(__name__)

ANALYSIS_FAILED_MESSAGE = "Imeshindwa kuchambua programu kwa kutumia AI."
RECOMMENDATION_FAILED_MESSAGE = "Imeshindwa kupata pendekezo la programu kutoka kwa AI."

_ANALYSIS_PROMPT = """You are an expert app store reviewer for a Swahili app store. Analyze the following app submission based on its metadata.
Provide a concise summary for an administrator, highlighting potential strengths, weaknesses, and any red flags (e.g., vague description, suspicious category, mismatch between name and description).
The response MUST be in Swahili.

App Details:
- Name: {name}
- Category: {category}
- Short Description: {short_description}
- Full Description: {full_description}

Your analysis:"""

_RECOMMEND_PROMPT = """You are a friendly AI assistant for a Swahili app store called "{brand}". Help users find the best app for their needs.
The response MUST be in Swahili. Be conversational and helpful.

Available apps:
{app_lines}

User's request: "{query}"

Recommend suitable apps from the list. Explain why. If no app fits, politely say so."""


class GeminiClient:
    """Stateless text-in, text-out calls. No retries."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        http: httpx.Client | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self._http = http or httpx.Client(timeout=max(settings.http_timeout_seconds, 30.0))

    def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise BackendUnavailableError("GEMINI_API_KEY is not configured")
        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        try:
            resp = self._http.post(url, params={"key": self.api_key}, json=payload)
        except httpx.HTTPError as exc:
            raise BackendUnavailableError(f"Text generation request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise BackendUnavailableError(f"Text generation rejected with HTTP {resp.status_code}")
        data = resp.json()
        candidates = data.get("candidates") or []
        if not candidates:
            raise BackendUnavailableError("Text generation returned no candidates")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            raise BackendUnavailableError("Text generation returned an empty answer")
        return text

    def close(self) -> None:
        self._http.close()


def build_analysis_prompt(app: CatalogApp) -> str:
    return _ANALYSIS_PROMPT.format(
        name=app.name,
        category=app.category or "",
        short_description=app.short_description or "",
        full_description=app.full_description or "",
    )


def build_recommendation_prompt(query: str, apps: Iterable[CatalogApp]) -> str:
    app_lines = "\n".join(
        f"- Jina: {app.name}, Maelezo: {app.short_description or ''} (Kategoria: {app.category or ''})"
        for app in apps
    )
    return _RECOMMEND_PROMPT.format(brand=settings.brand_name, app_lines=app_lines, query=query)


def analyze_app(client: GeminiClient, app: CatalogApp) -> str:
    try:
        text = client.generate(build_analysis_prompt(app))
    except BackendUnavailableError as exc:
        AI_REQUESTS.labels(kind="analysis", status="failed").inc()
        logger.warning("AI analysis failed for app %s: %s", app.id, exc.message)
        raise BackendUnavailableError(ANALYSIS_FAILED_MESSAGE) from exc
    AI_REQUESTS.labels(kind="analysis", status="ok").inc()
    return text


def recommend_apps(client: GeminiClient, query: str, apps: Iterable[CatalogApp]) -> str:
    try:
        text = client.generate(build_recommendation_prompt(query, apps))
    except BackendUnavailableError as exc:
        AI_REQUESTS.labels(kind="recommendation", status="failed").inc()
        logger.warning("AI recommendation failed: %s", exc.message)
        raise BackendUnavailableError(RECOMMENDATION_FAILED_MESSAGE) from exc
    AI_REQUESTS.labels(kind="recommendation", status="ok").inc()
    return text
