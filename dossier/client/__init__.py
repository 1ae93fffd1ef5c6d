"""Python consumer of the outline stream, with debounced draft auto-save."""

from dossier.client.autosave import OutlineAutoSaver
from dossier.client.state import GenerationState, GenerationStatus, OutlineEditError
from dossier.client.stream import OutlineStreamClient

__all__ = [
    "GenerationState",
    "GenerationStatus",
    "OutlineAutoSaver",
    "OutlineEditError",
    "OutlineStreamClient",
]
