"""
Tests for generation/refinement instruction objects.
"""

import pytest

from cardswap.aspect import AspectRatio
from cardswap.ingest import ingest_bytes
from cardswap.models import GenerationRequest, RefinementRequest
from cardswap.prompts import (
    GenerationInstruction,
    build_generation_instruction,
    build_refinement_instruction,
)
from conftest import make_image_bytes


@pytest.fixture
def request_factory():
    reference = ingest_bytes(make_image_bytes(300, 400), "image/png")
    character = ingest_bytes(make_image_bytes(256, 256), "image/png")

    def _make(**kwargs):
        fields = dict(
            reference=reference,
            character=character,
            aspect_ratio=AspectRatio.PORTRAIT,
        )
        fields.update(kwargs)
        return GenerationRequest(**fields)

    return _make


class TestGenerationInstruction:
    """Test build_generation_instruction()"""

    def test_defaults(self, request_factory):
        instr = build_generation_instruction(request_factory())

        assert instr.aspect_ratio == AspectRatio.PORTRAIT
        assert instr.image_size == "2K"
        assert instr.character_name is None
        assert instr.pose_instruction is None
        assert instr.discard_reference_character is True
        assert instr.preserve_reference_style is True
        assert instr.preserve_character_identity is True

    def test_name_and_pose(self, request_factory):
        instr = build_generation_instruction(request_factory(
            character_name="  Slime Hero ",
            user_instructions="raising a sword, lightning behind",
        ))
        assert instr.character_name == "Slime Hero"
        assert instr.has_character_name
        assert instr.pose_instruction == "raising a sword, lightning behind"
        assert instr.has_pose_instruction

    def test_blank_inputs_are_absent(self, request_factory):
        instr = build_generation_instruction(request_factory(character_name="   ", user_instructions="\n"))
        assert not instr.has_character_name
        assert not instr.has_pose_instruction

    def test_carries_ratio_and_size(self, request_factory):
        instr = build_generation_instruction(
            request_factory(aspect_ratio=AspectRatio.WIDE), image_size="4K"
        )
        assert instr.aspect_ratio == AspectRatio.WIDE
        assert instr.image_size == "4K"

    def test_render_includes_user_choices(self, request_factory):
        instr = build_generation_instruction(request_factory(
            character_name="Slime Hero", user_instructions="jumping"
        ))
        text = instr.render("en")
        assert "Slime Hero" in text
        assert "jumping" in text
        assert "3:4" in text
        assert "2K" in text

    def test_render_without_name_leaves_field_neutral(self):
        text = GenerationInstruction(aspect_ratio=AspectRatio.SQUARE).render("en")
        assert "leave it blank" in text
        assert "highest priority" not in text

    def test_render_locales_differ(self, request_factory):
        instr = build_generation_instruction(request_factory())
        assert instr.render("ja") != instr.render("en")
        assert "トレーディングカード" in instr.render("ja")

    def test_unknown_locale_falls_back(self, request_factory):
        instr = build_generation_instruction(request_factory())
        assert instr.render("fr") == instr.render("ja")


class TestRefinementInstruction:
    """Test build_refinement_instruction()"""

    def test_fields(self):
        instr = build_refinement_instruction(RefinementRequest(
            image="abc", instruction=" darken the background ", aspect_ratio=AspectRatio.TALL
        ))
        assert instr.instruction == "darken the background"
        assert instr.aspect_ratio == AspectRatio.TALL
        assert instr.image_size == "2K"
        assert instr.preserve_composition is True
        assert instr.apply_only_requested_change is True
        assert instr.require_image_output is True

    def test_render(self):
        instr = build_refinement_instruction(RefinementRequest(
            image="abc", instruction="add blue flames", aspect_ratio=AspectRatio.PORTRAIT
        ))
        text = instr.render("en")
        assert "add blue flames" in text
        assert "Always return image data" in text

    @pytest.mark.parametrize("instruction", ["", "   "])
    def test_request_requires_instruction(self, instruction):
        with pytest.raises(ValueError, match="non-empty"):
            RefinementRequest(image="abc", instruction=instruction, aspect_ratio=AspectRatio.SQUARE)
