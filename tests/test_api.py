"""Tests for the FastAPI surface in taleforge.api."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from taleforge.api import create_app
from taleforge.client import StoryClient

MANAGED = {"kind": "managed"}
LOCAL = {"kind": "openai-compatible-local", "endpoint": "http://localhost:5001/v1"}


@pytest.fixture
async def api(fake_genai):
    app = create_app(StoryClient(fake_genai))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def api_without_managed():
    app = create_app(StoryClient(None))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def _reply(fake_genai, text: str) -> None:
    fake_genai.aio.models.generate_content.return_value = SimpleNamespace(text=text)


class TestHealth:
    async def test_health(self, api) -> None:
        resp = await api.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestStoryRoutes:
    async def test_continue(self, api, fake_genai) -> None:
        _reply(fake_genai, "The door creaked.")
        resp = await api.post("/api/continue", json={
            "provider": MANAGED, "story": "Night fell.", "flavor": "Dark", "length": 400,
        })
        assert resp.status_code == 200
        assert resp.json() == {"text": "The door creaked."}

    async def test_continue_rejects_bad_length(self, api) -> None:
        resp = await api.post("/api/continue", json={
            "provider": MANAGED, "flavor": "Dark", "length": 0,
        })
        assert resp.status_code == 422

    async def test_continue_rejects_unknown_provider(self, api) -> None:
        resp = await api.post("/api/continue", json={
            "provider": {"kind": "telegraph"}, "flavor": "Dark", "length": 200,
        })
        assert resp.status_code == 422

    async def test_ideas(self, api, fake_genai) -> None:
        _reply(fake_genai, '{"ideas": ["a", "b"]}')
        resp = await api.post("/api/ideas", json={"provider": MANAGED, "flavor": "Whimsical"})
        assert resp.json() == {"ideas": ["a", "b"]}

    async def test_ideas_fallback_is_success(self, api, fake_genai) -> None:
        _reply(fake_genai, "not json")
        resp = await api.post("/api/ideas", json={"provider": MANAGED, "flavor": "Dark"})
        assert resp.status_code == 200
        assert len(resp.json()["ideas"]) == 1

    async def test_prompt_tokens(self, api) -> None:
        resp = await api.post("/api/prompt-tokens", json={
            "story": "x" * 400, "flavor": "Dark", "length": 200,
        })
        assert resp.status_code == 200
        assert resp.json()["tokens"] > 100


class TestLoreRoutes:
    async def test_lore_name(self, api, fake_genai) -> None:
        _reply(fake_genai, "Kessra")
        resp = await api.post("/api/lore/detail", json={
            "provider": MANAGED,
            "field": "name",
            "worldName": "Vell",
            "otherLore": [{"id": "1", "type": "Race", "name": "Saltborn"}],
            "item": {"id": "2", "type": "Character", "description": "A smuggler."},
        })
        assert resp.json() == {"text": "Kessra"}
        user = fake_genai.aio.models.generate_content.call_args.kwargs["contents"][0].parts[-1].text
        assert "A smuggler." in user

    async def test_lore_description(self, api, fake_genai) -> None:
        _reply(fake_genai, "Quiet and sharp.")
        resp = await api.post("/api/lore/detail", json={
            "provider": MANAGED,
            "field": "description",
            "item": {"id": "2", "type": "Character", "name": "Kessra"},
        })
        assert resp.json() == {"text": "Quiet and sharp."}

    async def test_lore_unknown_field(self, api) -> None:
        resp = await api.post("/api/lore/detail", json={
            "provider": MANAGED, "field": "age", "item": {"id": "2", "type": "Character"},
        })
        assert resp.status_code == 422

    async def test_world_name_and_description(self, api, fake_genai) -> None:
        _reply(fake_genai, "Vell")
        resp = await api.post("/api/world/name", json={"provider": MANAGED})
        assert resp.json() == {"text": "Vell"}
        _reply(fake_genai, "A drowned empire.")
        resp = await api.post("/api/world/description", json={
            "provider": MANAGED, "worldName": "Vell",
        })
        assert resp.json() == {"text": "A drowned empire."}


class TestCharacterImport:
    async def test_success(self, api, fake_genai) -> None:
        _reply(fake_genai, '{"name": "Mira", "description": "A cartographer."}')
        resp = await api.post("/api/characters/import", json={
            "provider": MANAGED, "imageBase64": "aGVsbG8=", "mimeType": "image/png",
        })
        assert resp.status_code == 200
        assert resp.json() == {"name": "Mira", "description": "A cartographer."}

    async def test_sentinel_is_422(self, api, fake_genai) -> None:
        _reply(fake_genai, '{"name": "Import Failed", "description": "blurry"}')
        resp = await api.post("/api/characters/import", json={
            "provider": MANAGED, "imageBase64": "aGVsbG8=", "mimeType": "image/png",
        })
        assert resp.status_code == 422
        assert resp.json() == {"detail": "Character import failed: blurry"}


class TestWorldGeneration:
    async def test_fast_world_camel_case(self, api, fake_genai) -> None:
        world = {
            "worldName": "Vell", "premise": "p",
            "factions": [], "races": [],
            "mainCharacter": {"name": "M", "desire": "d", "fear": "f", "edge": "e", "problem": "p"},
            "antagonist": {"name": "A", "motive": "m", "leverage": "l", "weakness": "w"},
            "starterHooks": ["h1"],
        }
        _reply(fake_genai, json.dumps(world))
        resp = await api.post("/api/world/generate", json={
            "provider": MANAGED, "options": {"tone": "Wild", "magicScale": 3},
        })
        assert resp.status_code == 200
        assert resp.json()["worldName"] == "Vell"
        assert resp.json()["mainCharacter"]["fear"] == "f"

    async def test_bad_model_output_is_502(self, api, fake_genai) -> None:
        _reply(fake_genai, '{"worldName": "Vell"}')
        resp = await api.post("/api/world/generate", json={"provider": MANAGED, "options": {}})
        assert resp.status_code == 502
        assert "expected format" in resp.json()["detail"]


class TestErrorMapping:
    async def test_managed_unavailable_is_400(self, api_without_managed) -> None:
        resp = await api_without_managed.post("/api/continue", json={
            "provider": MANAGED, "flavor": "Dark", "length": 200,
        })
        assert resp.status_code == 400
        assert "not initialized" in resp.json()["detail"]

    async def test_missing_remote_key_is_400(self, api) -> None:
        resp = await api.post("/api/continue", json={
            "provider": {"kind": "openai-compatible", "endpoint": "https://x", "apiKey": "",
                         "model": "m"},
            "flavor": "Dark", "length": 200,
        })
        assert resp.status_code == 400
        assert "API Key is missing" in resp.json()["detail"]

    async def test_backend_failure_is_502(self, api) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            resp = await api.request("POST", "/api/continue", json={
                "provider": LOCAL, "flavor": "Dark", "length": 200,
            })
        assert resp.status_code == 502
        assert "Cannot connect" in resp.json()["detail"]


class TestModelsAndImages:
    async def test_models(self, api) -> None:
        resp_mock = MagicMock()
        resp_mock.json.return_value = {"data": [{"id": "b"}, {"id": "a", "context_length": 4096}]}
        resp_mock.raise_for_status = MagicMock()
        with patch("httpx.AsyncClient.get", AsyncMock(return_value=resp_mock)):
            resp = await api.request("GET", "/api/models", params={"endpoint": "https://openrouter.ai/api/v1"})
        assert resp.status_code == 200
        assert resp.json() == [
            {"id": "a", "contextLength": 4096},
            {"id": "b", "contextLength": 0},
        ]

    async def test_lore_image_managed(self, api, fake_genai) -> None:
        fake_genai.aio.models.generate_images.return_value = SimpleNamespace(
            generated_images=[SimpleNamespace(image=SimpleNamespace(image_bytes=b"png"))]
        )
        resp = await api.post("/api/lore/image", json={
            "imageConfig": {"useAlternateBackend": False},
            "item": {"id": "1", "type": "Location", "name": "Saltmarsh"},
            "worldName": "Vell",
        })
        assert resp.status_code == 200
        assert resp.json() == {"mimeType": "image/png", "base64Data": "cG5n"}

    async def test_lore_image_alternate_missing_key(self, api) -> None:
        resp = await api.post("/api/lore/image", json={
            "imageConfig": {"useAlternateBackend": True, "endpoint": "https://hf"},
            "item": {"id": "1", "type": "Location", "name": "Saltmarsh"},
        })
        assert resp.status_code == 400


class TestStoryContext:
    LORE = [{"id": "1", "type": "Location", "name": "Saltmarsh", "description": "Wet."}]

    async def test_context_built_from_world(self, api, fake_genai) -> None:
        _reply(fake_genai, "ok")
        resp = await api.post("/api/continue", json={
            "provider": MANAGED, "flavor": "Dark", "length": 200,
            "worldName": "Vell", "lore": self.LORE,
        })
        assert resp.status_code == 200
        user = fake_genai.aio.models.generate_content.call_args.kwargs["contents"][0].parts[-1].text
        assert "WORLD NAME: Vell" in user
        assert "LOCATION:\nName: Saltmarsh\nDescription: Wet." in user

    async def test_explicit_context_wins(self, api, fake_genai) -> None:
        _reply(fake_genai, '{"ideas": ["a", "b"]}')
        await api.post("/api/ideas", json={
            "provider": MANAGED, "flavor": "Dark",
            "context": "Only this.", "worldName": "Vell",
        })
        user = fake_genai.aio.models.generate_content.call_args.kwargs["contents"][0].parts[-1].text
        assert "Only this." in user
        assert "WORLD NAME" not in user

    async def test_no_world_uses_placeholder(self, api, fake_genai) -> None:
        _reply(fake_genai, "ok")
        await api.post("/api/continue", json={"provider": MANAGED, "flavor": "Dark", "length": 200})
        user = fake_genai.aio.models.generate_content.call_args.kwargs["contents"][0].parts[-1].text
        assert "No additional context provided." in user

    async def test_prompt_tokens_count_lore(self, api) -> None:
        bare = await api.post("/api/prompt-tokens", json={"flavor": "Dark", "length": 200})
        with_lore = await api.post("/api/prompt-tokens", json={
            "flavor": "Dark", "length": 200, "worldName": "Vell", "lore": self.LORE,
        })
        assert with_lore.json()["tokens"] > bare.json()["tokens"]


class TestMalformedUpstream:
    async def test_non_json_chat_body_is_502(self, api) -> None:
        upstream = MagicMock()
        upstream.raise_for_status = MagicMock()
        upstream.json.side_effect = json.JSONDecodeError("Expecting value", "<html>", 0)
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=upstream)):
            resp = await api.request("POST", "/api/continue", json={
                "provider": LOCAL, "flavor": "Dark", "length": 200,
            })
        assert resp.status_code == 502
        assert "Unexpected response format" in resp.json()["detail"]
