"""Per-turn response-language override.

The directive is added only to the text sent to the remote service. The
stored user message always keeps the raw text.
"""

AUTO = "Auto"

_DIRECTIVE = (
    "(System Instruction: Please respond in {language}. If the user's message is "
    "in a different language, translate your understanding but keep the response "
    "in {language}.)"
)


def apply_language_override(text: str, language: str | None = AUTO) -> str:
    """Return the outgoing text for `language`.

    "Auto" (or no selection) leaves the text untouched; any other language
    prefixes an instruction to answer in that language.
    """
    if not language or language == AUTO:
        return text
    return f"{_DIRECTIVE.format(language=language)} {text}"
