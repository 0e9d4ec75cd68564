"""
Content Gateway - generative AI explanations and speech.

Defines the gateway contract consumed by the session orchestrator and a
Gemini implementation over the REST generateContent endpoint. The gateway
never retries: rate limits and outages surface as typed GatewayFailure.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
from loguru import logger

from ..config import Config
from ..errors import GatewayFailure, GatewayFailureReason, NoAudio
from ..models import ItemDetail, ItemKind, SearchResult
from ..utils.parsing import TextParser

MAX_RELATED = 5
MAX_SEARCH_RESULTS = 5


class ContentGateway(ABC):
    """Abstract source of item explanations, related items and speech."""

    @abstractmethod
    async def fetch_item_detail(self, text: str, language: str, kind: ItemKind) -> ItemDetail:
        """Explain an item: meaning, background and examples."""
        pass

    @abstractmethod
    async def fetch_related(self, text: str, language: str, kind: ItemKind) -> List[str]:
        """Up to five items related to the given one, same language."""
        pass

    @abstractmethod
    async def fetch_cross_language_equivalents(
        self,
        text: str,
        source_language: str,
        target_languages: Sequence[str],
        kind: ItemKind,
    ) -> Dict[str, str]:
        """Closest equivalent per target language; languages without one are absent."""
        pass

    @abstractmethod
    async def fetch_search_results(
        self, query: str, languages: Sequence[str], kind: ItemKind
    ) -> List[SearchResult]:
        """Up to five ranked matches, best first."""
        pass

    @abstractmethod
    async def synthesize_speech(self, text: str) -> str:
        """Base64 16-bit PCM for the text. Raises NoAudio when none is returned."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass

    async def __aenter__(self) -> "ContentGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def _kind_label(kind: ItemKind) -> str:
    return "idiom" if ItemKind(kind) == ItemKind.IDIOM else "word or phrase"


class GeminiGateway(ContentGateway):
    """Gemini REST implementation with a pooled aiohttp session."""

    def __init__(self, config: Config):
        """
        Initialize the gateway.

        Args:
            config: Application configuration (API key, models, timeout)
        """
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the shared aiohttp session."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                timeout = aiohttp.ClientTimeout(total=self.config.TIMEOUT)
                self._session = aiohttp.ClientSession(timeout=timeout)
            return self._session

    async def close(self) -> None:
        """Close the session."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                await self._session.close()
            self._session = None

    # ==================== Transport ====================

    async def _generate(self, model: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a generateContent request and map failures to GatewayFailure."""
        if not self.config.GEMINI_API_KEY:
            raise GatewayFailure(
                GatewayFailureReason.NETWORK,
                "API key is missing. Please set GEMINI_API_KEY in your environment.",
            )

        session = await self._get_session()
        url = f"{self.config.GEMINI_API_URL}/models/{model}:generateContent"
        headers = {
            "x-goog-api-key": self.config.GEMINI_API_KEY,
            "Content-Type": "application/json",
        }

        try:
            async with session.post(url, headers=headers, json=payload) as response:
                if response.status == 200:
                    try:
                        return await response.json()
                    except (aiohttp.ContentTypeError, json.JSONDecodeError) as e:
                        raise GatewayFailure(GatewayFailureReason.MALFORMED_RESPONSE) from e

                error = await response.text()
                logger.warning(f"Gemini API error {response.status}: {error[:200]}")
                raise GatewayFailure(self._reason_for_status(response.status, error))
        except asyncio.TimeoutError as e:
            raise GatewayFailure(GatewayFailureReason.NETWORK, "Gemini API timeout.") from e
        except aiohttp.ClientError as e:
            raise GatewayFailure(GatewayFailureReason.NETWORK) from e

    @staticmethod
    def _reason_for_status(status: int, body: str) -> GatewayFailureReason:
        lowered = body.lower()
        if status == 429 or "quota" in lowered or "resource_exhausted" in lowered:
            return GatewayFailureReason.RATE_LIMITED
        if status == 404:
            return GatewayFailureReason.NOT_FOUND
        if status >= 500 or status in (401, 403):
            return GatewayFailureReason.NETWORK
        return GatewayFailureReason.MALFORMED_RESPONSE

    async def _generate_json(self, prompt: str, schema: Dict[str, Any]) -> Any:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        }
        data = await self._generate(self.config.GEMINI_MODEL, payload)
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
            return json.loads(TextParser.strip_code_fences(text))
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as e:
            raise GatewayFailure(GatewayFailureReason.MALFORMED_RESPONSE) from e

    # ==================== Operations ====================

    async def fetch_item_detail(self, text: str, language: str, kind: ItemKind) -> ItemDetail:
        label = _kind_label(kind)
        prompt = (
            f'Explain the {label} "{text}" in {language}. Provide its meaning, '
            f"a brief history or origin, and at least five distinct example sentences."
        )
        schema = {
            "type": "OBJECT",
            "properties": {
                "meaning": {"type": "STRING", "description": f'The meaning of "{text}".'},
                "history": {"type": "STRING", "description": f'The history or origin of "{text}".'},
                "examples": {
                    "type": "ARRAY",
                    "items": {"type": "STRING"},
                    "description": f'At least five example sentences using "{text}".',
                },
            },
            "required": ["meaning", "history", "examples"],
        }

        parsed = await self._generate_json(prompt, schema)
        if not isinstance(parsed, dict):
            raise GatewayFailure(GatewayFailureReason.MALFORMED_RESPONSE)

        examples = [str(e).strip() for e in parsed.get("examples") or [] if str(e).strip()]
        if not parsed.get("meaning") or not examples:
            raise GatewayFailure(
                GatewayFailureReason.MALFORMED_RESPONSE,
                f"Incomplete information received for {text}.",
            )
        return ItemDetail(
            meaning=str(parsed["meaning"]),
            background=str(parsed.get("history", "")),
            examples=tuple(examples),
        )

    async def fetch_related(self, text: str, language: str, kind: ItemKind) -> List[str]:
        label = _kind_label(kind)
        prompt = (
            f'Find {label}s that are related to or have a similar meaning to "{text}" '
            f"in the {language} language. Provide a list of {MAX_RELATED} such {label}s."
        )
        schema = {
            "type": "OBJECT",
            "properties": {
                "related": {
                    "type": "ARRAY",
                    "items": {"type": "STRING"},
                    "description": f'{MAX_RELATED} {label}s related to "{text}".',
                },
            },
            "required": ["related"],
        }

        parsed = await self._generate_json(prompt, schema)
        related = parsed.get("related") if isinstance(parsed, dict) else None
        if not isinstance(related, list):
            raise GatewayFailure(GatewayFailureReason.MALFORMED_RESPONSE)
        return [str(r).strip() for r in related if str(r).strip()][:MAX_RELATED]

    async def fetch_cross_language_equivalents(
        self,
        text: str,
        source_language: str,
        target_languages: Sequence[str],
        kind: ItemKind,
    ) -> Dict[str, str]:
        targets = [lang for lang in target_languages if lang != source_language]
        if not targets:
            return {}

        label = _kind_label(kind)
        schema = {
            "type": "OBJECT",
            "properties": {
                lang: {
                    "type": "STRING",
                    "description": (
                        f"The closest equivalent {label} in {lang}. If no direct equivalent "
                        f"exists, a short phrase that captures the same meaning."
                    ),
                }
                for lang in targets
            },
        }
        prompt = (
            f'For the {source_language} {label} "{text}", find the closest equivalent or a '
            f"similar-meaning {label} in each of the following languages: {', '.join(targets)}."
        )

        parsed = await self._generate_json(prompt, schema)
        if not isinstance(parsed, dict):
            raise GatewayFailure(GatewayFailureReason.MALFORMED_RESPONSE)
        return {
            lang: str(parsed[lang]).strip()
            for lang in targets
            if isinstance(parsed.get(lang), str) and parsed[lang].strip()
        }

    async def fetch_search_results(
        self, query: str, languages: Sequence[str], kind: ItemKind
    ) -> List[SearchResult]:
        label = _kind_label(kind)
        valid = ", ".join(languages)
        prompt = (
            f'A user is searching for an {label} using the query: "{query}". The query might '
            f"be exact, partial, misspelled, or a description of its meaning. Identify the most "
            f"likely {label} the user is looking for, then up to {MAX_SEARCH_RESULTS - 1} other "
            f"highly relevant ones, from any of these languages: {valid}. Put the most likely "
            f'match first. Return an empty "matches" array if nothing relevant exists.'
        )
        schema = {
            "type": "OBJECT",
            "properties": {
                "matches": {
                    "type": "ARRAY",
                    "items": {
                        "type": "OBJECT",
                        "properties": {
                            "idiom": {"type": "STRING", "description": f"The full text of the matching {label}."},
                            "language": {"type": "STRING", "description": f"One of: {valid}."},
                        },
                        "required": ["idiom", "language"],
                    },
                },
            },
            "required": ["matches"],
        }

        parsed = await self._generate_json(prompt, schema)
        matches = parsed.get("matches") if isinstance(parsed, dict) else None
        if not isinstance(matches, list):
            raise GatewayFailure(GatewayFailureReason.MALFORMED_RESPONSE)

        results = [
            SearchResult(text=m["idiom"].strip(), language=m["language"], kind=ItemKind(kind))
            for m in matches
            if isinstance(m, dict)
            and isinstance(m.get("idiom"), str)
            and isinstance(m.get("language"), str)
            and m["idiom"].strip()
        ]
        return results[:MAX_SEARCH_RESULTS]

    async def synthesize_speech(self, text: str) -> str:
        clean_text = TextParser.clean_for_tts(text)
        if not clean_text:
            raise NoAudio("Nothing to speak.")

        payload = {
            "contents": [{"parts": [{"text": clean_text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self.config.TTS_VOICE}},
                },
            },
        }
        data = await self._generate(self.config.GEMINI_TTS_MODEL, payload)
        try:
            audio = data["candidates"][0]["content"]["parts"][0]["inlineData"]["data"]
        except (KeyError, IndexError, TypeError):
            audio = None
        if not audio:
            raise NoAudio()
        return audio
