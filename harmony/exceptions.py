"""
Custom exceptions for Harmony Bot
"""

class HarmonyError(Exception):
    """Base exception for Harmony Bot."""
    pass

class ConfigurationError(HarmonyError):
    """Raised when there's a configuration error."""
    pass

class ResolveError(HarmonyError):
    """Raised when a URL or search query can't be turned into a track."""
    pass

class VoiceConnectionError(HarmonyError):
    """Raised when joining, moving or leaving a voice channel fails."""
    pass

class TrackError(HarmonyError):
    """Raised when a track operation is not possible in its current state."""
    pass

class QueueFullError(HarmonyError):
    """Raised when a guild queue reached max_queue_size."""
    pass

class ValidationError(HarmonyError):
    """Raised when input validation fails."""
    pass

class AudioSourceError(HarmonyError):
    """Raised when there's an audio source error."""
    pass
