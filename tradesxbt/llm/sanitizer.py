"""
Optional filter that removes echoed system instructions from model output.

This is a heuristic. The patterns match common phrasings in which a model
refers to or quotes its own instructions; they can remove legitimate text
and miss leaks phrased differently. It is off unless the
`ui.hide_system_prompts` setting is enabled and is applied only to the
final response text.
"""
import logging
import re
from typing import Iterable, Optional


logger = logging.getLogger(__name__)


DEFAULT_PATTERNS: tuple[str, ...] = (
    r"\s*\(?as (?:instructed|specified|mentioned|stated) in (?:the|my) system (?:message|prompt|instructions)\)?,?",
    r"\s*according to (?:the|my) system (?:message|prompt|instructions),?",
    r"\s*my system (?:prompt|instructions) (?:say|says|tell me|require)[^.]*\.",
)


class SystemPromptSanitizer:
    """
    Strips phrases that look like leaked system instructions.

    Args:
        system_prompt: If given, verbatim quotations of it are also removed
        patterns: Regular expressions to remove (case-insensitive)
    """

    def __init__(
        self,
        system_prompt: Optional[str] = None,
        patterns: Iterable[str] = DEFAULT_PATTERNS
    ) -> None:
        self._system_prompt = system_prompt.strip() if system_prompt else None
        self._patterns = [re.compile(p, re.IGNORECASE) for p in patterns]

    def sanitize(self, text: str) -> str:
        """
        Remove matching phrases from text.

        Args:
            text: Model output

        Returns:
            Filtered text (unchanged when nothing matched)
        """
        if not text:
            return text

        cleaned = text
        if self._system_prompt and self._system_prompt in cleaned:
            cleaned = cleaned.replace(f'"{self._system_prompt}"', "")
            cleaned = cleaned.replace(self._system_prompt, "")

        for pattern in self._patterns:
            cleaned = pattern.sub("", cleaned)

        cleaned = re.sub(r"[ \t]{2,}", " ", cleaned).strip()
        if cleaned != text.strip():
            logger.debug("Removed system-prompt echo from response")
        return cleaned
