"""
Fetches the published component and component-set keys of a Figma library
file and writes them into the component map, replacing its placeholders.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import httpx
from pydantic import BaseModel, ConfigDict

from ..config import settings
from ..errors import FigmaApiError
from ..models.collaborators import ComponentMap

logger = logging.getLogger(settings.SERVICE_NAME + ".figma_keys")


class PublishedComponent(BaseModel):
    """One published component or component set of a library file."""

    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    type: Literal["component", "component_set"]
    frame: Optional[str] = None


class FigmaKeyExtractor:
    def __init__(
        self,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if token is None and settings.FIGMA_TOKEN is not None:
            token = settings.FIGMA_TOKEN.get_secret_value()
        if not token:
            raise FigmaApiError(
                "FIGMA_TOKEN is not configured. Create a personal access token at "
                "https://www.figma.com/developers/api#access-tokens"
            )
        self._token = token
        self.api_url = api_url or settings.FIGMA_API_URL
        self.timeout_s = settings.FIGMA_API_TIMEOUT_S if timeout_s is None else timeout_s
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers={"X-Figma-Token": self._token},
            timeout=self.timeout_s,
            transport=self._transport,
        )

    async def _get(self, client: httpx.AsyncClient, path: str) -> Dict[str, Any]:
        try:
            response = await client.get(path)
        except httpx.HTTPError as e:
            raise FigmaApiError(f"Figma API request failed for {path}: {e}") from e
        if response.status_code != 200:
            raise FigmaApiError(f"Figma API error ({response.status_code}): {response.text[:200]}")
        return response.json()

    async def extract(self, file_key: Optional[str] = None) -> Dict[str, PublishedComponent]:
        """
        Returns published assets by name. Component sets win over plain
        components of the same name. A failing component-set request is
        logged and skipped; a failing component request raises FigmaApiError.
        """
        file_key = file_key or settings.FIGMA_FILE_KEY
        logger.info(f"Fetching components from Figma file {file_key}")

        async with self._client() as client:
            data = await self._get(client, f"/files/{file_key}/components")
            try:
                sets_data: Optional[Dict[str, Any]] = await self._get(client, f"/files/{file_key}/component_sets")
            except FigmaApiError as e:
                logger.warning(f"Skipping component sets: {e}")
                sets_data = None

        found: Dict[str, PublishedComponent] = {}
        for item in data.get("meta", {}).get("components", []):
            found[item["name"]] = _published(item, "component")
        if sets_data is not None:
            for item in sets_data.get("meta", {}).get("component_sets", []):
                found[item["name"]] = _published(item, "component_set")

        logger.info(f"Found {len(found)} components/sets")
        return found


def _published(item: Dict[str, Any], kind: str) -> PublishedComponent:
    frame = (item.get("containing_frame") or {}).get("name")
    return PublishedComponent(key=item["key"], name=item["name"], type=kind, frame=frame)


def merge_component_keys(component_map_path: Path, published: Dict[str, PublishedComponent]) -> List[str]:
    """
    Write the keys of matching names into a component map file and return the
    names that were updated. Entries with no published counterpart keep their
    current key. The file is left untouched if it is not a valid component map.
    """
    raw = json.loads(Path(component_map_path).read_text(encoding="utf-8"))
    ComponentMap.model_validate(raw)

    updated = []
    for name, entry in raw.get("components", {}).items():
        asset = published.get(name)
        if asset is None:
            continue
        entry["key"] = asset.key
        entry["isComponentSet"] = asset.type == "component_set"
        updated.append(name)

    Path(component_map_path).write_text(json.dumps(raw, indent=2) + "\n", encoding="utf-8")
    logger.info(f"Updated {len(updated)} component map entries in {component_map_path}")
    return updated
