"""Pytest fixtures for recipe extractor tests."""

import threading
from typing import Any, Callable, Dict, List, Optional, Set

import pytest
from pydantic_ai.models.test import TestModel

from recipe_extractor.config import Settings
from recipe_extractor.models.recipe import Recipe
from recipe_extractor.models.video import Platform, VideoMetadata
from recipe_extractor.services.job_store import JobStore
from recipe_extractor.services.normalizer import (
    NormalizeInput,
    NormalizeResult,
    ProviderName,
    RecipeNormalizer,
)
from recipe_extractor.services.router import ProviderRouter
from recipe_extractor.services.scraper import ApifyRun, build_webhook_url
from recipe_extractor.utils.errors import MetadataUnavailableError, NormalizationError


RECIPE_ARGS: Dict[str, Any] = {
    "title": "Garlic Butter Noodles",
    "servings": 2,
    "ingredients": [
        {"item": "spaghetti", "qty": 200, "unit": "g", "source": "caption", "confidence": 1},
        {"item": "garlic", "qty": 4, "unit": "clove", "source": "caption", "confidence": 1},
        {"item": "butter", "qty": 2, "unit": "tbsp", "source": "caption", "confidence": 1},
    ],
    "steps": [
        {"n": 1, "text": "Boil 200 g spaghetti for 9 min.", "source": "caption", "confidence": 1},
        {"n": 2, "text": "Melt 2 tbsp butter with 4 cloves garlic.", "source": "caption", "confidence": 1},
    ],
}

RECIPE_CAPTION = (
    "Easy garlic butter noodles recipe! Cook 200g spaghetti, add 2 tbsp butter, "
    "4 cloves garlic, salt and pepper. Stir and serve in 15 minutes."
)


# ==================== Mock Supabase Client ====================


class MockAPIError(Exception):
    """Stands in for a PostgREST error carrying a SQLSTATE code."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


class MockSupabaseResponse:
    """Mock response from Supabase operations."""

    def __init__(self, data: Optional[List[Dict[str, Any]]] = None) -> None:
        self.data = data or []


class MockSupabaseQuery:
    """One chained query against an in-memory table."""

    def __init__(self, client: "MockSupabaseClient", rows: Dict[str, Dict[str, Any]]) -> None:
        self._client = client
        self._rows = rows
        self._op = "select"
        self._payload: Optional[Dict[str, Any]] = None
        self._filters: List[Callable[[Dict[str, Any]], bool]] = []

    def select(self, columns: str = "*") -> "MockSupabaseQuery":
        self._op = "select"
        return self

    def insert(self, data: Dict[str, Any]) -> "MockSupabaseQuery":
        self._op = "insert"
        self._payload = dict(data)
        return self

    def update(self, data: Dict[str, Any]) -> "MockSupabaseQuery":
        self._op = "update"
        self._payload = dict(data)
        return self

    def eq(self, field: str, value: Any) -> "MockSupabaseQuery":
        self._filters.append(lambda row: row.get(field) == value)
        return self

    def neq(self, field: str, value: Any) -> "MockSupabaseQuery":
        self._filters.append(lambda row: row.get(field) != value)
        return self

    def _matching(self) -> List[Dict[str, Any]]:
        return [row for row in self._rows.values() if all(f(row) for f in self._filters)]

    def execute(self) -> MockSupabaseResponse:
        self._client.calls.append(self._op)
        self._client.threads.add(threading.get_ident())
        if self._client.fail:
            raise ConnectionError("connection reset by peer")

        if self._op == "insert":
            key = self._payload["key"]
            if key in self._rows or self._client.insert_conflicts:
                if self._client.insert_conflicts:
                    self._client.insert_conflicts -= 1
                    self._rows[key] = dict(self._client.conflict_row or {}, key=key)
                raise MockAPIError("duplicate key value violates unique constraint", "23505")
            self._rows[key] = dict(self._payload)
            return MockSupabaseResponse([dict(self._payload)])

        if self._op == "update":
            updated = []
            for row in self._matching():
                row.update(self._payload)
                updated.append(dict(row))
            return MockSupabaseResponse(updated)

        return MockSupabaseResponse([dict(row) for row in self._matching()])


class MockSupabaseClient:
    """Mock Supabase client with one dict per table."""

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.calls: List[str] = []
        self.fail = False
        self.threads: Set[int] = set()
        # Simulate a writer that inserts the same key between our read and insert
        self.insert_conflicts = 0
        self.conflict_row: Optional[Dict[str, Any]] = None

    def table(self, name: str) -> MockSupabaseQuery:
        return MockSupabaseQuery(self, self.tables.setdefault(name, {}))

    def rows(self, name: str = "cache") -> Dict[str, Dict[str, Any]]:
        return self.tables.setdefault(name, {})


# ==================== Service Doubles ====================


class StubNormalizer(RecipeNormalizer):
    """Normalizer that returns a fixed recipe (or fails) without a model."""

    def __init__(self, provider: ProviderName, fail: bool = False) -> None:
        super().__init__(api_key="test", model_name=f"{provider}-stub")
        self.provider = provider
        self.fail = fail
        self.calls: List[NormalizeInput] = []

    def _build_model(self) -> Any:
        return TestModel()

    async def normalize(self, data: NormalizeInput) -> NormalizeResult:
        self.calls.append(data)
        if self.fail:
            raise NormalizationError(f"{self.provider} returned invalid output")
        recipe = Recipe.model_validate({**RECIPE_ARGS, "id": data.key, "source_url": data.source_url})
        return NormalizeResult(
            recipe=recipe, model_used=self.model_name, provider=self.provider, elapsed_ms=12.0
        )


class FakeMetadataFetcher:
    """Returns canned metadata keyed by URL."""

    def __init__(self) -> None:
        self.metadata: Dict[str, VideoMetadata] = {}
        self.calls: List[str] = []

    def add(
        self,
        url: str,
        key: str,
        platform: Platform = "tiktok",
        caption: Optional[str] = None,
        **fields: Any,
    ) -> VideoMetadata:
        metadata = VideoMetadata(
            platform=platform,
            key=key,
            source_url=url,
            caption=caption,
            title=fields.pop("title", caption),
            author=fields.pop("author", "Chef Test"),
            creator_handle=fields.pop("creator_handle", "cheftest" if platform == "tiktok" else None),
            thumbnail_url=fields.pop("thumbnail_url", f"https://img.example.com/{key}.jpg"),
            elapsed_ms=5.0,
            **fields,
        )
        self.metadata[url] = metadata
        return metadata

    async def fetch(self, platform: Platform, url: str) -> VideoMetadata:
        self.calls.append(url)
        if url not in self.metadata:
            raise MetadataUnavailableError(f"oEmbed returned 404 for {url}")
        return self.metadata[url]


class FakeApifyClient:
    """Records trigger calls and serves dataset items from memory."""

    def __init__(self) -> None:
        self.triggers: List[Dict[str, str]] = []
        self.datasets: Dict[str, List[Dict[str, Any]]] = {}
        self.error: Optional[Exception] = None

    def build_webhook_url(self, base_url: str, key: str, secret: str) -> str:
        return build_webhook_url(base_url, key, secret)

    async def trigger_run(self, video_url: str, key: str, webhook_url: str) -> ApifyRun:
        if self.error is not None:
            raise self.error
        self.triggers.append({"video_url": video_url, "key": key, "webhook_url": webhook_url})
        n = len(self.triggers)
        return ApifyRun(run_id=f"run-{n}", status="READY", dataset_id=f"ds-{n}", elapsed_ms=3.0)

    async def fetch_dataset_items(
        self, dataset_id: Optional[str] = None, run_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        return list(self.datasets.get(dataset_id or run_id or "", []))


# ==================== Fixtures ====================


@pytest.fixture
def app_settings() -> Settings:
    """Settings with every credential configured."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        gemini_api_key="gm-test",
        ai_provider="openai",
        apify_token="apify-token",
        apify_actor_id="clockworks/tiktok-scraper",
        apify_webhook_secret="s3cret",
        public_base_url="https://api.example.com",
        supabase_url="https://db.example.com",
        supabase_key="service-key",
    )


@pytest.fixture
def supabase() -> MockSupabaseClient:
    return MockSupabaseClient()


@pytest.fixture
def job_store(supabase: MockSupabaseClient) -> JobStore:
    return JobStore(supabase_client=supabase, table="cache")


@pytest.fixture
def normalizers() -> Dict[str, StubNormalizer]:
    return {"openai": StubNormalizer("openai"), "gemini": StubNormalizer("gemini")}


@pytest.fixture
def provider_router(app_settings: Settings, normalizers: Dict[str, StubNormalizer]) -> ProviderRouter:
    return ProviderRouter(app_settings, normalizers=normalizers)


@pytest.fixture
def metadata_fetcher() -> FakeMetadataFetcher:
    return FakeMetadataFetcher()


@pytest.fixture
def apify_client() -> FakeApifyClient:
    return FakeApifyClient()


@pytest.fixture
def recipe() -> Recipe:
    return Recipe.model_validate(RECIPE_ARGS)
