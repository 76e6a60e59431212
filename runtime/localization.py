"""Active-language state and LocalizedText resolution.

A LocalizedText field is either a plain string (used as-is in every
language) or a mapping from language code to string. Resolution never
raises: a missing translation falls back to the default language and
then to an empty string.
"""

import logging
from typing import Any, Iterable

from runtime.events import Signal

logger = logging.getLogger(__name__)

# Interface strings shown by the engines themselves (buttons, counters,
# generic feedback). Content text always comes from the payload.
UI_STRINGS: dict[str, dict[str, str]] = {
    "en": {
        "validate": "Validate",
        "continue": "Continue",
        "next_question": "Next question",
        "finish": "Finish",
        "close": "Close",
        "try_again": "Try again",
        "correct": "Correct!",
        "incorrect": "Incorrect",
        "question_counter": "Question {current}/{total}",
        "step_counter": "Step {current}/{total}",
        "no_options": "This question has no options.",
        "wrong_click": "Wrong answer! Try again.",
        "error_count": "{message} (Errors: {count})",
        "dialogue_complete": "Dialogue complete",
        "procedure_complete": "Procedure complete",
        "validate_step": "Validate step",
        "instruction_click": "Click the highlighted object.",
        "instruction_zone": "Go to the indicated zone.",
        "instruction_manual": "Press validate once the step is done.",
        "content_unavailable": "This content cannot be displayed yet.",
    },
    "fr": {
        "validate": "Valider",
        "continue": "Continuer",
        "next_question": "Question suivante",
        "finish": "Terminer",
        "close": "Fermer",
        "try_again": "Réessayer",
        "correct": "Correct !",
        "incorrect": "Incorrect",
        "question_counter": "Question {current}/{total}",
        "step_counter": "Étape {current}/{total}",
        "no_options": "Cette question n'a aucune option.",
        "wrong_click": "Mauvaise réponse ! Réessayez.",
        "error_count": "{message} (Erreurs: {count})",
        "dialogue_complete": "Dialogue terminé",
        "procedure_complete": "Procédure terminée",
        "validate_step": "Valider l'étape",
        "instruction_click": "Cliquez sur l'objet en surbrillance.",
        "instruction_zone": "Rendez-vous dans la zone indiquée.",
        "instruction_manual": "Validez une fois l'étape effectuée.",
        "content_unavailable": "Ce contenu ne peut pas encore être affiché.",
    },
}


class LocalizationManager:
    """Holds the active language and resolves LocalizedText values.

    `on_language_changed` is emitted with the new language code, and only
    when the active language actually changes.
    """

    def __init__(
        self,
        default_language: str = "en",
        current_language: str | None = None,
        supported_languages: Iterable[str] = ("en", "fr"),
        catalog: dict[str, dict[str, str]] | None = None,
    ):
        self.default_language = default_language
        self.supported_languages = list(supported_languages)
        if default_language not in self.supported_languages:
            self.supported_languages.insert(0, default_language)
        self._catalog = catalog if catalog is not None else UI_STRINGS
        self.on_language_changed = Signal("language_changed")
        self._current = self._normalize(current_language or default_language)

    @classmethod
    def from_config(cls, config: Any) -> "LocalizationManager":
        """Build from a LocalizationConfig."""
        return cls(
            default_language=config.default_language,
            current_language=config.current_language,
            supported_languages=config.supported_languages,
        )

    @property
    def current_language(self) -> str:
        return self._current

    def _normalize(self, code: str) -> str:
        code = (code or "").strip().lower()
        if code not in self.supported_languages:
            logger.warning(
                "Unsupported language %r, using %r", code, self.default_language
            )
            return self.default_language
        return code

    def set_language(self, code: str) -> None:
        """Switch the active language. Unsupported codes select the default."""
        code = self._normalize(code)
        if code == self._current:
            return
        self._current = code
        logger.debug("Active language set to %s", code)
        self.on_language_changed.emit(code)

    def resolve(self, text: Any, language: str | None = None) -> str:
        """Resolve a LocalizedText: active language, then default, then ""."""
        if text is None:
            return ""
        if isinstance(text, str):
            return text
        if not isinstance(text, dict):
            return str(text)

        value = text.get(language or self._current)
        if value:
            return value
        value = text.get(self.default_language)
        if value:
            return value
        return ""

    def resolve_any(self, text: Any) -> str:
        """Like resolve(), but falls back to any non-empty translation."""
        value = self.resolve(text)
        if value or not isinstance(text, dict):
            return value
        for candidate in text.values():
            if candidate:
                return candidate
        return ""

    def resolve_list(self, items: Iterable[Any]) -> list[str]:
        return [self.resolve(item) for item in items]

    def ui_text(self, key: str, **values: Any) -> str:
        """Look up an interface string in the active language.

        Falls back to the default language, then to the key itself.
        """
        template = self._catalog.get(self._current, {}).get(key)
        if template is None:
            template = self._catalog.get(self.default_language, {}).get(key, key)
        return template.format(**values) if values else template
