"""
vizbeats - Error taxonomy
Configuration problems fail fast at construction; audio-source problems are
recovered locally; frame-build problems are wrapped and re-raised.
"""


class ConfigurationError(ValueError):
    """Invalid or missing user-provided configuration."""


class SceneLoadError(ValueError):
    """Scene definition data could not be loaded or resolved."""


class AudioSourceError(RuntimeError):
    """Audio source initialization/processing failure."""


class FrameBuildError(RuntimeError):
    """Frame generation failed somewhere in the analysis/resolve/serialize chain."""


def summarize(error: BaseException, context: str) -> str:
    """Return a concise one-line message: ``context: ErrorClass: message``."""
    return f"{context}: {error.__class__.__name__}: {error}"
