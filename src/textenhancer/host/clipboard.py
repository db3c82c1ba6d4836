"""System clipboard adapter backed by :mod:`pyperclip`."""

from __future__ import annotations

import logging

import pyperclip

__all__ = ["SystemClipboard"]

LOGGER = logging.getLogger(__name__)


class SystemClipboard:
    """Copies text to the desktop clipboard.

    Failures (no clipboard mechanism on a headless box, for example) are
    logged and re-raised; the apply chain treats them as a failed tier.
    """

    def set_text(self, text: str) -> None:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException:
            LOGGER.warning("System clipboard is unavailable", exc_info=True)
            raise
        LOGGER.debug("Copied %d chars to the system clipboard", len(text))
