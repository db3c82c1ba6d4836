"""Host boundary: element registry, target tracking, and write-back."""

from .apply_chain import ApplyFallbackChain
from .bridge import Clipboard, ElementRef, HostBridge
from .memory import InMemoryHost, MemoryClipboard, MemoryElement
from .registry import ElementHandle, ElementRegistry
from .tracker import TargetSnapshot, TargetTracker

__all__ = [
    "ApplyFallbackChain",
    "Clipboard",
    "ElementHandle",
    "ElementRef",
    "ElementRegistry",
    "HostBridge",
    "InMemoryHost",
    "MemoryClipboard",
    "MemoryElement",
    "TargetSnapshot",
    "TargetTracker",
]
