"""
Error taxonomy for FiguroAI.

Primary failures (item detail) end up in an Error view; secondary failures
(cross-language lookup, audio pre-fetch, remote favorites) are caught and
degrade to a transient notice at most.
"""

from enum import Enum
from typing import Optional


class FiguroError(Exception):
    """Base class for all application errors."""

    user_message: str = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)
        self.message = message or self.user_message


class ConfigurationMissing(FiguroError):
    """Language catalog could not be loaded. Fatal for the session."""

    user_message = (
        "Could not load language configuration. "
        "Please check the languages.json file and restart."
    )


class CatalogEmpty(FiguroError):
    """No items are configured for the requested (language, kind) pair."""

    def __init__(self, language: str, kind: str):
        super().__init__(f"No {kind} configured for {language}.")
        self.language = language
        self.kind = kind


class GatewayFailureReason(Enum):
    """Why a call to the content gateway failed."""
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"


_GATEWAY_MESSAGES = {
    GatewayFailureReason.NOT_FOUND: "Sorry, I couldn't find information for this item. Please try another one.",
    GatewayFailureReason.RATE_LIMITED: "Too many requests. Please wait a moment and try again.",
    GatewayFailureReason.NETWORK: "Network error. Please check your internet connection.",
    GatewayFailureReason.MALFORMED_RESPONSE: "Failed to parse AI response. The item might not be recognized.",
}


class GatewayFailure(FiguroError):
    """Typed failure from the remote content gateway."""

    def __init__(self, reason: GatewayFailureReason, message: Optional[str] = None):
        super().__init__(message or _GATEWAY_MESSAGES[reason])
        self.reason = reason


class AudioFailureReason(Enum):
    """Audio pipeline failure categories."""
    NO_DATA = "no_data"
    DECODE_ERROR = "decode_error"
    PLAYBACK_ERROR = "playback_error"


class AudioFailure(FiguroError):
    """Audio could not be fetched, decoded or played."""

    reason: AudioFailureReason = AudioFailureReason.PLAYBACK_ERROR

    def __init__(self, message: Optional[str] = None, reason: Optional[AudioFailureReason] = None):
        super().__init__(message or "Audio playback failed.")
        if reason is not None:
            self.reason = reason


class NoAudio(AudioFailure):
    """Speech synthesis returned no audio data."""

    reason = AudioFailureReason.NO_DATA

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "No audio data received from API.")


class MalformedPayload(AudioFailure):
    """Base64 payload is invalid or not a whole number of sample frames."""

    reason = AudioFailureReason.DECODE_ERROR


class ChannelMismatch(AudioFailure):
    """PCM byte length does not divide evenly into channel frames."""

    reason = AudioFailureReason.DECODE_ERROR


class CapacityExceeded(FiguroError):
    """Favorites list is full; insertion is rejected, nothing is evicted."""

    def __init__(self, limit: int):
        super().__init__(f"Maximum {limit} favorites reached. Remove some to add new ones.")
        self.limit = limit


class StorageFailure(FiguroError):
    """Durable local write failed (quota exceeded, permissions, ...)."""

    user_message = "Storage full! Remove some favorites to save new ones."


class PreconditionFailed(FiguroError):
    """Operation invoked from a view that does not offer it."""

    def __init__(self, operation: str, view: str):
        super().__init__(f"{operation} is not available while showing {view}.")
        self.operation = operation
        self.view = view


class RemoteStoreError(FiguroError):
    """Favorites backend unreachable or returned an error."""

    user_message = "Favorites server is not available."
