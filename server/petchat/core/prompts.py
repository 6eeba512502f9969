from __future__ import annotations
from datetime import datetime

from petchat.schemas.provider import Preferences, TranslationLanguage


TRANSLATOR_SYSTEM_PROMPT = "You are a professional translator."
IMAGE_HISTORY_MARKER = "[image]"


def replace_placeholders(template: str, prefs: Preferences) -> str:
    return (
        template.replace("{petName}", prefs.pet_name)
        .replace("{petNickname}", prefs.pet_nickname)
        .replace("{ownerName}", prefs.owner_name)
    )


def time_banner(now: datetime) -> str:
    return f"[Current time] {now.strftime('%Y-%m-%d %A %H:%M')}"


def build_chat_system_prompt(prefs: Preferences, now: datetime) -> str:
    return f"{time_banner(now)}\n\n{replace_placeholders(prefs.chat_prompt, prefs)}"


def build_image_system_prompt(prefs: Preferences) -> str:
    return replace_placeholders(prefs.image_prompt, prefs)


def build_translation_prompt(text: str, language: TranslationLanguage) -> str:
    return (
        f"Translate the following text to {language.prompt_name}. "
        "Only output the translation, nothing else.\n"
        "\n"
        f"Text: {text}\n"
        "\n"
        "Translation:"
    )


def image_history_entry(question: str) -> str:
    return f"{IMAGE_HISTORY_MARKER} {question}"
