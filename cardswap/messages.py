"""User-facing copy, per locale."""

from typing import Dict

MESSAGES: Dict[str, Dict[str, str]] = {
    "ja": {
        "invalid_key": "有効なAPIキーを入力してください。",
        "manual_key_disabled": "この環境ではAPIキーの手動入力は使用できません。ホストのキー選択を使ってください。",
        "key_missing": "APIキーが見つかりません。",
        "auth_invalid_manual": "APIキーが無効です。再度入力してください。",
        "auth_invalid_host": "APIキーのセッションが期限切れか無効です。キーを再設定してください。",
        "generate_failed": "画像の生成に失敗しました。もう一度お試しください。",
        "refine_failed": "微調整に失敗しました。",
        "model_refusal": "モデルからの応答 (画像生成されず): {text}",
        "empty_response": "画像データがレスポンスに含まれていません。もう一度お試しください。",
        "unreadable_file": "ファイルを読み込めませんでした。",
        "undecodable_image": "画像として読み込めませんでした。別のファイルを選択してください。",
        "inputs_missing": "参考カードとキャラクター画像の両方をアップロードしてください。",
        "nothing_to_refine": "微調整する生成画像がありません。",
        "empty_instruction": "微調整の指示を入力してください。",
        "cost": "予想コスト: 約{yen}円 (${usd}) / 回",
    },
    "en": {
        "invalid_key": "Please enter a valid API key.",
        "manual_key_disabled": "Manual key entry is disabled here. Use the host key selection instead.",
        "key_missing": "No API key found.",
        "auth_invalid_manual": "The API key is invalid. Please enter it again.",
        "auth_invalid_host": "The selected API key has expired or is invalid. Please select a key again.",
        "generate_failed": "Image generation failed. Please try again.",
        "refine_failed": "Refinement failed.",
        "model_refusal": "Model response (no image generated): {text}",
        "empty_response": "The response contained no image data. Please try again.",
        "unreadable_file": "The file could not be read.",
        "undecodable_image": "The file is not a readable image. Please choose another file.",
        "inputs_missing": "Upload both a reference card and a character image.",
        "nothing_to_refine": "There is no generated image to refine.",
        "empty_instruction": "Enter a refinement instruction.",
        "cost": "Estimated cost: about {yen} JPY (${usd}) per image",
    },
}

DEFAULT_LOCALE = "ja"


def message(locale: str, key: str, **kwargs) -> str:
    """Look up a message, falling back to the default locale."""
    table = MESSAGES.get(locale) or MESSAGES[DEFAULT_LOCALE]
    template = table.get(key) or MESSAGES[DEFAULT_LOCALE][key]
    return template.format(**kwargs) if kwargs else template
