import json

import httpx
import pytest
from pydantic import SecretStr

from figma_bridge.cli import main
from figma_bridge.config import settings
from figma_bridge.errors import FigmaApiError
from figma_bridge.service import figma_keys
from figma_bridge.service.figma_keys import FigmaKeyExtractor, PublishedComponent, merge_component_keys

COMPONENTS = {
    "meta": {
        "components": [
            {"key": "card-key", "name": "Card", "description": "", "containing_frame": {"name": "Cards"}},
            {"key": "button-single", "name": "Button", "description": ""},
        ]
    }
}
COMPONENT_SETS = {
    "meta": {
        "component_sets": [
            {"key": "button-set", "name": "Button", "description": "", "containing_frame": {"name": "Buttons"}},
        ]
    }
}


def figma_api(sets_status=200):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/v1/files/lib123/components":
            return httpx.Response(200, json=COMPONENTS)
        if request.url.path == "/v1/files/lib123/component_sets":
            if sets_status != 200:
                return httpx.Response(sets_status, text="nope")
            return httpx.Response(200, json=COMPONENT_SETS)
        return httpx.Response(404, text="not found")

    return httpx.MockTransport(handler), requests


@pytest.mark.asyncio
async def test_extract_builds_the_key_table():
    transport, requests = figma_api()
    extractor = FigmaKeyExtractor(token="figd_test", api_url="https://api.figma.com/v1", transport=transport)

    found = await extractor.extract("lib123")

    assert [r.url.path for r in requests] == ["/v1/files/lib123/components", "/v1/files/lib123/component_sets"]
    assert all(r.headers["X-Figma-Token"] == "figd_test" for r in requests)
    assert found["Card"] == PublishedComponent(key="card-key", name="Card", type="component", frame="Cards")
    # A component set replaces a plain component with the same name
    assert found["Button"].key == "button-set"
    assert found["Button"].type == "component_set"


@pytest.mark.asyncio
async def test_component_set_failure_is_skipped():
    transport, _ = figma_api(sets_status=500)
    extractor = FigmaKeyExtractor(token="figd_test", api_url="https://api.figma.com/v1", transport=transport)

    found = await extractor.extract("lib123")

    assert found["Button"].type == "component"
    assert set(found) == {"Card", "Button"}


@pytest.mark.asyncio
async def test_component_request_failure_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(403, text="Invalid token"))
    extractor = FigmaKeyExtractor(token="figd_bad", transport=transport)

    with pytest.raises(FigmaApiError, match="403"):
        await extractor.extract("lib123")


def test_missing_token_is_rejected(monkeypatch):
    monkeypatch.setattr(settings, "FIGMA_TOKEN", None)
    with pytest.raises(FigmaApiError, match="FIGMA_TOKEN"):
        FigmaKeyExtractor()


def test_merge_updates_matching_entries_only(tmp_path):
    path = tmp_path / "component_map.json"
    path.write_text(
        json.dumps(
            {
                "components": {
                    "Button": {"key": "PLACEHOLDER_BUTTON", "textLayers": ["Label"]},
                    "Badge": {"key": "PLACEHOLDER_BADGE"},
                }
            }
        ),
        encoding="utf-8",
    )
    published = {
        "Button": PublishedComponent(key="button-set", name="Button", type="component_set"),
        "Slider": PublishedComponent(key="slider-key", name="Slider", type="component"),
    }

    assert merge_component_keys(path, published) == ["Button"]

    components = json.loads(path.read_text(encoding="utf-8"))["components"]
    assert components["Button"] == {"key": "button-set", "isComponentSet": True, "textLayers": ["Label"]}
    assert components["Badge"] == {"key": "PLACEHOLDER_BADGE"}
    assert "Slider" not in components


def test_merge_leaves_an_invalid_map_untouched(tmp_path):
    path = tmp_path / "component_map.json"
    original = json.dumps({"components": {"Button": {"isComponentSet": True}}})
    path.write_text(original, encoding="utf-8")

    with pytest.raises(ValueError):
        merge_component_keys(path, {"Button": PublishedComponent(key="k", name="Button", type="component")})
    assert path.read_text(encoding="utf-8") == original


def test_extract_keys_command_merges_into_the_map(tmp_path, monkeypatch, capsys):
    transport, _ = figma_api()
    monkeypatch.setattr(
        figma_keys.FigmaKeyExtractor,
        "_client",
        lambda self: httpx.AsyncClient(
            base_url="https://api.figma.com/v1", headers={"X-Figma-Token": self._token}, transport=transport
        ),
    )
    monkeypatch.setattr(settings, "FIGMA_TOKEN", SecretStr("figd_test"))
    path = tmp_path / "component_map.json"
    path.write_text(json.dumps({"components": {"Card": {"key": "PLACEHOLDER_CARD"}}}), encoding="utf-8")

    assert main(["extract-keys", "--file-key", "lib123", "--merge", "--map", str(path)]) == 0

    out = capsys.readouterr().out
    assert "Found 2 components/sets." in out
    assert "Card: card-key (component)" in out
    assert json.loads(path.read_text(encoding="utf-8"))["components"]["Card"]["key"] == "card-key"


def test_extract_keys_command_without_token(monkeypatch, capsys):
    monkeypatch.setattr(settings, "FIGMA_TOKEN", None)
    assert main(["extract-keys"]) == 1
    assert "FIGMA_TOKEN is not configured" in capsys.readouterr().err
