"""Exception hierarchy shared by the producer and consumer sides."""

from typing import Any, Dict, List, Optional


class FigmaBridgeError(Exception):
    """Base class for all figma-bridge failures."""


class DesignSpecValidationError(FigmaBridgeError, ValueError):
    """A design spec document is malformed or out of range. Never partially accepted."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors: List[Dict[str, Any]] = errors or []


# --- Construction ---
class NodeConstructionError(FigmaBridgeError):
    """A single design node could not be built. Recovered locally by the builder."""


class BuildError(FigmaBridgeError):
    """The build could not proceed at all (e.g. the root frame could not be created)."""


# --- Transport ---
class SessionError(FigmaBridgeError):
    """A handoff session ended without a successful completion."""


class ConsumerDisconnectedError(SessionError):
    def __init__(self) -> None:
        super().__init__("Plugin disconnected unexpectedly")


class SessionTimeoutError(SessionError):
    def __init__(self, timeout_s: float, consumer_connected: bool = False) -> None:
        minutes = timeout_s / 60
        if consumer_connected:
            message = f"Timeout: Plugin did not finish the build within {minutes:g} minutes"
        else:
            message = f"Timeout: No plugin connected within {minutes:g} minutes"
        super().__init__(message)
        self.timeout_s = timeout_s
        self.consumer_connected = consumer_connected


class ConsumerReportedError(SessionError):
    """The consumer reported a build failure through an ``error`` status."""

    def __init__(self, consumer_message: str) -> None:
        super().__init__(f"Plugin error: {consumer_message}")
        self.consumer_message = consumer_message


# --- Upstream collaborators ---
class UpstreamError(FigmaBridgeError):
    """An external collaborator (AI model, asset library, font service, browser) failed."""


class AnalysisError(UpstreamError):
    pass


class AssetImportError(UpstreamError):
    pass


class FontLoadError(UpstreamError):
    pass


class CaptureError(UpstreamError):
    pass


class FigmaApiError(UpstreamError):
    """The Figma REST API rejected a request or could not be reached."""
