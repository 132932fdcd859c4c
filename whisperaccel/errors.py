"""Exception types for hardware detection and addon loading."""

from __future__ import annotations


class DetectionError(RuntimeError):
    """Raised by a single detection probe (command failed, timed out, bad output).

    Probe errors never escape a platform detector; the fan-out join records
    them as diagnostics and the remaining probes still contribute.
    """


class RuntimeUnavailableError(DetectionError):
    """Raised when a runtime or driver check comes back negative.

    Not fatal: the affected devices lose the matching capability flag.
    """


class AddonLoadError(RuntimeError):
    """Base class for failures while loading a native processing addon."""

    def __init__(self, message: str, addon_type: str | None = None) -> None:
        super().__init__(message)
        self.addon_type = addon_type


class StructuralAddonError(AddonLoadError):
    """The addon loaded but does not expose a usable ``whisper`` entry point."""


class AddonEnvironmentError(AddonLoadError):
    """The addon binary is missing, empty, unreadable or cannot be linked."""


class FallbackExhaustedError(AddonLoadError):
    """No addon in the fallback chain could be loaded.

    ``errors`` holds every underlying failure, primary first.
    """

    def __init__(
        self,
        message: str,
        errors: list[BaseException] | None = None,
        addon_type: str | None = None,
    ) -> None:
        super().__init__(message, addon_type=addon_type)
        self.errors: list[BaseException] = list(errors or [])

    def __str__(self) -> str:
        base = super().__str__()
        if not self.errors:
            return base
        details = "; ".join(str(e) for e in self.errors)
        return f"{base}: {details}"
