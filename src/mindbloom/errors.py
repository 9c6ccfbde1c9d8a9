# ==============================
# File: src/mindbloom/errors.py
# ==============================


class MindBloomError(Exception):
    """Base class for errors the UI should show to the user."""


class MissingConfigurationError(MindBloomError):
    """A required setting (API key, proxy URL, model path) is absent. Retrying will not help."""


class RecognitionUnavailableError(MindBloomError):
    pass


class NoSpeechRecognizedError(MindBloomError):
    pass


class ListenInProgressError(MindBloomError):
    pass
