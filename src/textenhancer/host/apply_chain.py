"""Tiered write-back of rewritten text into the host.

The window that had focus when the preview opened may have lost it by the
time the user applies (a dismissed keyboard, a redrawn view), so a single
direct write is not reliable. The chain tries, in order:

1. a direct write into the refreshed captured target;
2. a direct write into whatever element the host reports as focused now;
3. copying to the clipboard and pasting into the last resolved element;
4. giving up, leaving the text on the clipboard.
"""

from __future__ import annotations

import logging

from ..core.results import ApplyOutcome, ApplyReport, ElementGone
from .bridge import Clipboard, ElementRef, HostBridge
from .tracker import TargetSnapshot

__all__ = ["ApplyFallbackChain"]

LOGGER = logging.getLogger(__name__)

APPLIED_MESSAGE = "Text applied"
PASTED_MESSAGE = "Text pasted from clipboard"
FAILED_COPIED_MESSAGE = "Text copied to clipboard but could not be applied"
FAILED_NOT_COPIED_MESSAGE = "Text could not be applied or copied to the clipboard"


class ApplyFallbackChain:
    """Writes text back through successively weaker strategies."""

    def __init__(self, bridge: HostBridge, clipboard: Clipboard) -> None:
        self._bridge = bridge
        self._clipboard = clipboard

    def apply(self, text: str, snapshot: TargetSnapshot) -> ApplyReport:
        resolved: ElementRef | None = None

        refreshed = snapshot.refresh()
        if isinstance(refreshed, ElementGone):
            LOGGER.debug("Tier 1 skipped: %s", refreshed.reason)
        else:
            element = refreshed.resolve()
            if not isinstance(element, ElementGone):
                resolved = element
                if self._write(element, text, tier=1):
                    return ApplyReport(ApplyOutcome.APPLIED, 1, APPLIED_MESSAGE)

        focused = self._focused_element()
        if focused is None:
            LOGGER.debug("Tier 2 skipped: host reports no focused element")
        else:
            resolved = focused
            if self._write(focused, text, tier=2):
                return ApplyReport(ApplyOutcome.APPLIED, 2, APPLIED_MESSAGE)

        copied = self._copy(text)
        if copied and resolved is not None and self._paste(resolved):
            return ApplyReport(
                ApplyOutcome.PASTED_FROM_CLIPBOARD, 3, PASTED_MESSAGE, copied_to_clipboard=True
            )

        message = FAILED_COPIED_MESSAGE if copied else FAILED_NOT_COPIED_MESSAGE
        LOGGER.warning("All apply tiers failed (copied=%s)", copied)
        return ApplyReport(ApplyOutcome.FAILED, 4, message, copied_to_clipboard=copied)

    def _write(self, element: ElementRef, text: str, *, tier: int) -> bool:
        try:
            written = bool(self._bridge.write_text(element, text))
        except Exception as exc:
            LOGGER.debug("Tier %d write raised: %s", tier, exc)
            return False
        LOGGER.debug("Tier %d write %s", tier, "succeeded" if written else "failed")
        return written

    def _focused_element(self) -> ElementRef | None:
        try:
            return self._bridge.current_focused_element()
        except Exception as exc:
            LOGGER.debug("Focused element lookup raised: %s", exc)
            return None

    def _copy(self, text: str) -> bool:
        try:
            self._clipboard.set_text(text)
        except Exception as exc:
            LOGGER.warning("Copying to clipboard failed: %s", exc)
            return False
        return True

    def _paste(self, element: ElementRef) -> bool:
        try:
            pasted = bool(self._bridge.paste_clipboard_into(element))
        except Exception as exc:
            LOGGER.debug("Tier 3 paste raised: %s", exc)
            return False
        LOGGER.debug("Tier 3 paste %s", "succeeded" if pasted else "failed")
        return pasted
