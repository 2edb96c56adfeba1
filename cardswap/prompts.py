"""
Instruction objects for the card generation and refinement calls.

Builders return plain dataclasses whose fields carry every decision (target
ratio, output size, character name, pose instruction) independently of any
language. ``render(locale)`` turns them into the prose sent to the model.
"""

from dataclasses import dataclass
from typing import Optional

from .aspect import AspectRatio
from .models import GenerationRequest, RefinementRequest

DEFAULT_IMAGE_SIZE = "2K"


@dataclass(frozen=True)
class GenerationInstruction:
    aspect_ratio: AspectRatio
    image_size: str = DEFAULT_IMAGE_SIZE
    character_name: Optional[str] = None
    pose_instruction: Optional[str] = None
    discard_reference_character: bool = True
    preserve_reference_style: bool = True
    preserve_character_identity: bool = True

    @property
    def has_pose_instruction(self) -> bool:
        return self.pose_instruction is not None

    @property
    def has_character_name(self) -> bool:
        return self.character_name is not None

    def render(self, locale: str = "ja") -> str:
        return _render_generation(self, locale)


@dataclass(frozen=True)
class RefinementInstruction:
    instruction: str
    aspect_ratio: AspectRatio
    image_size: str = DEFAULT_IMAGE_SIZE
    preserve_composition: bool = True
    apply_only_requested_change: bool = True
    require_image_output: bool = True

    def render(self, locale: str = "ja") -> str:
        return _render_refinement(self, locale)


def _optional(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    return text or None


def build_generation_instruction(
    request: GenerationRequest,
    image_size: str = DEFAULT_IMAGE_SIZE,
) -> GenerationInstruction:
    return GenerationInstruction(
        aspect_ratio=request.aspect_ratio,
        image_size=image_size,
        character_name=_optional(request.character_name),
        pose_instruction=_optional(request.user_instructions),
    )


def build_refinement_instruction(
    request: RefinementRequest,
    image_size: str = DEFAULT_IMAGE_SIZE,
) -> RefinementInstruction:
    return RefinementInstruction(
        instruction=request.instruction.strip(),
        aspect_ratio=request.aspect_ratio,
        image_size=image_size,
    )


# ── Rendering ────────────────────────────────────────────────────

_GENERATION_TEMPLATES = {
    "ja": {
        "header": (
            "画像生成タスク: トレーディングカードのキャラクター完全入れ替え\n\n"
            "【入力ソース】\n"
            "1. **1枚目の画像（テンプレート）**: カードの枠、背景、UIデザイン、全体の雰囲気の基準です。"
            "ここに描かれている**元のキャラクターは完全に無視・消去**してください。\n"
            "2. **2枚目の画像（新キャラクター）**: 新しくカードに登場させるキャラクターです。"
            "このキャラクターのデザイン特徴を優先してください。\n\n"
            "【生成ルール】\n"
        ),
        "discard": (
            "1. **元のキャラクターの影響を排除**:\n"
            "   - 1枚目の画像にあるキャラクターのポーズ、服装、シルエット、配置場所を**絶対に模倣しないでください**。\n"
            "   - あたかも最初からそのキャラクターがいなかったかのように扱い、その空間に新しいキャラクターを配置してください。\n"
        ),
        "identity": (
            "2. **新キャラクターの配置とポーズ**:\n"
            "   - 2枚目の画像のキャラクターを、その固有のデザイン（髪型、服装、顔立ち）を保ったまま描画してください。\n"
        ),
        "pose_user": "   - **ユーザー指示（最優先）**: 「{pose}」に従ってポーズ、アクション、構図を決定してください。\n",
        "pose_default": (
            "   - ポーズは2枚目の画像に近いものか、カードの構図として自然な独自のものにしてください"
            "（元画像のポーズに引っ張られないこと）。\n"
        ),
        "style": (
            "3. **背景とスタイルの維持**:\n"
            "   - カードの枠線、背景のテクスチャ、エフェクト、照明効果、カラーパレットは、1枚目の画像を忠実に再現してください。\n"
            "   - 新しいキャラクターがそのカードの世界観に違和感なく溶け込むように、画風（塗り方や陰影）を調整してください。\n"
        ),
        "name": (
            "4. **テキストの書き換え**:\n"
            "   - カード上のキャラクター名の部分を「{name}」に変更し、明確に読みやすくレンダリングしてください。\n"
        ),
        "name_blank": (
            "4. **テキストの書き換え**:\n"
            "   - 名前テキストエリアがある場合は、自然な文字列または空欄にしてください。\n"
        ),
        "output": "\n出力は高解像度（{size}）で、指定されたアスペクト比（{ratio}）の完成されたカード画像として生成してください。\n",
    },
    "en": {
        "header": (
            "Image generation task: completely replace the character on a trading card.\n\n"
            "[Inputs]\n"
            "1. **First image (template)**: defines the card frame, background, UI design and overall mood. "
            "**Ignore and erase the character drawn on it entirely.**\n"
            "2. **Second image (new character)**: the character to place on the card. "
            "Prioritise this character's design.\n\n"
            "[Rules]\n"
        ),
        "discard": (
            "1. **Remove every trace of the original character**:\n"
            "   - **Never imitate** the pose, outfit, silhouette or placement of the character in the first image.\n"
            "   - Treat that space as if no character had ever been there and place the new character in it.\n"
        ),
        "identity": (
            "2. **New character placement and pose**:\n"
            "   - Draw the character from the second image keeping its own design (hair, outfit, face).\n"
        ),
        "pose_user": "   - **User instruction (highest priority)**: decide pose, action and composition following \"{pose}\".\n",
        "pose_default": (
            "   - Use a pose close to the second image, or an original pose that suits the card layout "
            "(do not follow the template's pose).\n"
        ),
        "style": (
            "3. **Keep background and style**:\n"
            "   - Reproduce the first image's frame, background texture, effects, lighting and colour palette faithfully.\n"
            "   - Adjust the rendering (painting and shading) so the new character blends into the card's world.\n"
        ),
        "name": (
            "4. **Rewrite the text**:\n"
            "   - Change the character name on the card to \"{name}\" and render it clearly and legibly.\n"
        ),
        "name_blank": (
            "4. **Rewrite the text**:\n"
            "   - If there is a name text area, fill it with a neutral string or leave it blank.\n"
        ),
        "output": "\nOutput a finished high-resolution ({size}) card image in the requested aspect ratio ({ratio}).\n",
    },
}

_REFINEMENT_TEMPLATES = {
    "ja": (
        "画像編集タスク:\n"
        "入力画像をベースに、以下のユーザー指示に従って修正を加えた新しい画像を生成してください。\n\n"
        "【ユーザー指示】\n"
        "{instruction}\n\n"
        "【編集ルール】\n"
        "1. 入力画像の構図、キャラクターの基本デザイン、カード枠のスタイルは維持してください。\n"
        "2. 指示された変更点のみを的確に反映してください。\n"
        "3. **必ず画像データを生成して返してください**。テキストによる説明や会話は不要です。\n"
        "出力は高解像度（{size}）、アスペクト比（{ratio}）で生成してください。\n"
    ),
    "en": (
        "Image editing task:\n"
        "Using the input image as the base, generate a new image with the following user instruction applied.\n\n"
        "[User instruction]\n"
        "{instruction}\n\n"
        "[Editing rules]\n"
        "1. Keep the input image's composition, the character's core design and the card frame style.\n"
        "2. Apply only the requested change, precisely.\n"
        "3. **Always return image data.** No textual explanation or conversation.\n"
        "Output at high resolution ({size}) in aspect ratio {ratio}.\n"
    ),
}


def _templates(table: dict, locale: str):
    return table.get(locale) or table["ja"]


def _render_generation(instr: GenerationInstruction, locale: str) -> str:
    t = _templates(_GENERATION_TEMPLATES, locale)
    sections = [t["header"]]
    if instr.discard_reference_character:
        sections.append(t["discard"])
    if instr.preserve_character_identity:
        sections.append(t["identity"])
    if instr.has_pose_instruction:
        sections.append(t["pose_user"].format(pose=instr.pose_instruction))
    else:
        sections.append(t["pose_default"])
    if instr.preserve_reference_style:
        sections.append(t["style"])
    if instr.has_character_name:
        sections.append(t["name"].format(name=instr.character_name))
    else:
        sections.append(t["name_blank"])
    sections.append(t["output"].format(size=instr.image_size, ratio=instr.aspect_ratio.value))
    return "".join(sections)


def _render_refinement(instr: RefinementInstruction, locale: str) -> str:
    t = _templates(_REFINEMENT_TEMPLATES, locale)
    return t.format(
        instruction=instr.instruction,
        size=instr.image_size,
        ratio=instr.aspect_ratio.value,
    )
