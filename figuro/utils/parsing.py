"""Text parsing utilities for consistent text processing across the application."""

import html
import re
import unicodedata


class TextParser:
    """
    Centralized text parsing utilities.

    Single source of truth for normalization of phrases, speech text and
    model responses.
    """

    # HTML tag removal pattern
    HTML_TAG_PATTERN = re.compile(r'<[^>]+>')

    # Whitespace normalization pattern
    WHITESPACE_PATTERN = re.compile(r'\s+')

    # Markdown code fence around JSON replies
    CODE_FENCE_PATTERN = re.compile(r'^```(?:json)?\s*|\s*```$')

    @classmethod
    def normalize_unicode(cls, text: str) -> str:
        """
        Normalize text to NFC form for consistent Unicode handling.

        Prevents issues with characters like é being represented as
        either a single codepoint (NFC) or base + combining accent (NFD).

        Args:
            text: Input text

        Returns:
            NFC-normalized text
        """
        if not text:
            return ""
        return unicodedata.normalize('NFC', str(text))

    @classmethod
    def clean_for_tts(cls, text: str) -> str:
        """
        Clean text for speech synthesis.

        Removes HTML, normalizes whitespace and Unicode.

        Args:
            text: Raw text

        Returns:
            Cleaned text ready for TTS
        """
        if not text:
            return ""

        text = html.unescape(str(text))
        text = cls.HTML_TAG_PATTERN.sub('', text)
        text = cls.WHITESPACE_PATTERN.sub(' ', text).strip()
        return cls.normalize_unicode(text)

    @classmethod
    def strip_code_fences(cls, text: str) -> str:
        """Remove a surrounding ```json ... ``` block from a model reply."""
        if not text:
            return ""
        return cls.CODE_FENCE_PATTERN.sub('', text.strip()).strip()
