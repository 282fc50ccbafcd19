"""Tests for taleforge.models."""

import pytest
from pydantic import TypeAdapter, ValidationError

from taleforge.models import (
    ImageGenConfig,
    LocalOpenAIConfig,
    LoreItem,
    ManagedConfig,
    OpenAICompatibleConfig,
    PromptEnvelope,
    ProviderConfig,
    SupportingCharacter,
    WorldGenOptions,
)

provider_adapter = TypeAdapter(ProviderConfig)


class TestProviderConfig:
    def test_managed_from_wire(self) -> None:
        cfg = provider_adapter.validate_python({"kind": "managed"})
        assert isinstance(cfg, ManagedConfig)

    def test_remote_from_wire_uses_camel_case(self) -> None:
        cfg = provider_adapter.validate_python({
            "kind": "openai-compatible",
            "endpoint": "https://openrouter.ai/api/v1",
            "apiKey": "sk-1",
            "model": "mistral-7b",
        })
        assert isinstance(cfg, OpenAICompatibleConfig)
        assert cfg.api_key == "sk-1"

    def test_local_from_wire(self) -> None:
        cfg = provider_adapter.validate_python({
            "kind": "openai-compatible-local", "endpoint": "http://localhost:5001/v1",
        })
        assert isinstance(cfg, LocalOpenAIConfig)

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValidationError):
            provider_adapter.validate_python({"kind": "carrier-pigeon"})

    def test_remote_requires_model(self) -> None:
        with pytest.raises(ValidationError):
            provider_adapter.validate_python({
                "kind": "openai-compatible", "endpoint": "x", "apiKey": "k",
            })

    def test_configs_are_immutable(self) -> None:
        cfg = LocalOpenAIConfig(endpoint="http://localhost:5001")
        with pytest.raises(ValidationError):
            cfg.endpoint = "http://elsewhere"


class TestImageGenConfig:
    def test_defaults(self) -> None:
        cfg = ImageGenConfig()
        assert cfg.use_alternate_backend is False
        assert cfg.api_key == ""

    def test_from_wire(self) -> None:
        cfg = ImageGenConfig.model_validate(
            {"useAlternateBackend": True, "apiKey": "hf_x", "endpoint": "https://hf"}
        )
        assert cfg.use_alternate_backend is True
        assert cfg.endpoint == "https://hf"


class TestLoreItem:
    def test_type_label_builtin(self) -> None:
        item = LoreItem(id="1", type="Race", name="Elves")
        assert item.type_label() == "Race"

    def test_type_label_custom_name(self) -> None:
        item = LoreItem(id="1", type="Custom", custom_type_name="Artifact")
        assert item.type_label() == "Artifact"

    def test_type_label_custom_fallback(self) -> None:
        item = LoreItem(id="1", type="Custom")
        assert item.type_label("lore item") == "lore item"

    def test_invalid_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LoreItem(id="1", type="Spaceship")

    def test_image_from_wire(self) -> None:
        item = LoreItem.model_validate({
            "id": "1", "type": "Character", "name": "Mira",
            "image": {"mimeType": "image/jpeg", "base64Data": "AAAA"},
        })
        assert item.image is not None
        assert item.image.mime_type == "image/jpeg"

    def test_serialise_roundtrip(self) -> None:
        item = LoreItem(id="1", type="Location", name="Saltmarsh", description="Wet.")
        restored = LoreItem.model_validate_json(item.model_dump_json(by_alias=True))
        assert restored == item


class TestPromptEnvelope:
    def test_no_images_by_default(self) -> None:
        env = PromptEnvelope(system_text="s", user_text="u")
        assert env.image_parts == ()


class TestWorldGenOptions:
    def test_everything_optional(self) -> None:
        opts = WorldGenOptions()
        assert opts.magic_scale is None
        assert opts.generate_names is True

    def test_scale_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            WorldGenOptions(magic_scale=11)

    def test_slider_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SupportingCharacter(category="Friend", slider_value=101)
