from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from taleforge.models import ImagePart, LoreItem


@pytest.fixture
def fake_genai() -> MagicMock:
    """Stand-in for google.genai.Client exposing the async model surface.

    Tests set `fake_genai.aio.models.generate_content.return_value.text`.
    """
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=SimpleNamespace(text="ok"))
    client.aio.models.generate_images = AsyncMock()
    return client


@pytest.fixture
def lore() -> list[LoreItem]:
    return [
        LoreItem(id="1", type="Character", name="Mira", description="A cartographer of lost roads."),
        LoreItem(id="2", type="Faction", name="The Ashen Court", description=""),
        LoreItem(id="3", type="Custom", custom_type_name="Artifact", name="Salt Compass",
                 description="Points to whatever you fear."),
    ]


@pytest.fixture
def portrait() -> ImagePart:
    return ImagePart(mime_type="image/png", base64_data="aGVsbG8=")
