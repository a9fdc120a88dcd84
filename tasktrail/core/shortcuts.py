"""Keyboard shortcut registry for the TaskTrail front end.

The registry is an explicit object owned by the application root; each
feature registers its shortcuts on the instance it is handed.
"""

import logging
from typing import Optional

from tasktrail.core.models import KeyboardShortcut, KeyEvent, ShortcutConflict

logger = logging.getLogger(__name__)

# Focus targets where key presses are text input, not shortcuts.
_TEXT_INPUT_TAGS = frozenset({"INPUT", "TEXTAREA"})

_DISPLAY_KEYS = {
    "Space": "␣",
    "Enter": "↵",
    "Escape": "Esc",
    "ArrowUp": "↑",
    "ArrowDown": "↓",
    "ArrowLeft": "←",
    "ArrowRight": "→",
}


def _normalize_key(key: str) -> str:
    if key == " ":
        return "Space"
    if len(key) == 1:
        return key.upper()
    return key


def event_to_shortcut_string(event: KeyEvent) -> str:
    """Return e.g. ``"Ctrl+Shift+K"`` for a key event."""
    parts = []
    if event.ctrl:
        parts.append("Ctrl")
    if event.alt:
        parts.append("Alt")
    if event.shift:
        parts.append("Shift")
    if event.meta:
        parts.append("Meta")
    parts.append(_normalize_key(event.key))
    return "+".join(parts)


def matches_shortcut(event: KeyEvent, shortcut: KeyboardShortcut) -> bool:
    """True if *event* has exactly the shortcut's modifiers and key."""
    if event.ctrl != shortcut.ctrl:
        return False
    if event.alt != shortcut.alt:
        return False
    if event.shift != shortcut.shift:
        return False
    if event.meta != shortcut.meta:
        return False
    return _normalize_key(event.key) == _normalize_key(shortcut.key)


def format_shortcut(shortcut: KeyboardShortcut, mac: bool = False) -> str:
    """Render a shortcut for display, with symbols on macOS."""
    parts = []
    if shortcut.ctrl:
        parts.append("⌃" if mac else "Ctrl")
    if shortcut.alt:
        parts.append("⌥" if mac else "Alt")
    if shortcut.shift:
        parts.append("⇧" if mac else "Shift")
    if shortcut.meta:
        parts.append("⌘" if mac else "Win")
    parts.append(_DISPLAY_KEYS.get(shortcut.key, shortcut.key))
    return ("" if mac else "+").join(parts)


def detect_conflicts(shortcuts: dict[str, KeyboardShortcut]) -> list[ShortcutConflict]:
    """Group shortcut ids bound to the same combination.

    Only groups with more than one id are returned, in first-seen order.
    """
    by_combo: dict[str, list[str]] = {}
    for shortcut_id, shortcut in shortcuts.items():
        by_combo.setdefault(format_shortcut(shortcut), []).append(shortcut_id)
    return [
        ShortcutConflict(shortcut=combo, ids=ids)
        for combo, ids in by_combo.items()
        if len(ids) > 1
    ]


class ShortcutManager:
    """Holds registered shortcuts and dispatches key events to them."""

    def __init__(self) -> None:
        self._shortcuts: dict[str, KeyboardShortcut] = {}

    def register(self, shortcut_id: str, shortcut: KeyboardShortcut) -> None:
        """Register (or replace) *shortcut* under *shortcut_id*."""
        combo = format_shortcut(shortcut)
        for other_id, other in self._shortcuts.items():
            if other_id != shortcut_id and format_shortcut(other) == combo:
                logger.warning(
                    "Shortcut %s for %r conflicts with %r", combo, shortcut_id, other_id
                )
        self._shortcuts[shortcut_id] = shortcut

    def unregister(self, shortcut_id: str) -> None:
        self._shortcuts.pop(shortcut_id, None)

    def enable(self, shortcut_id: str) -> None:
        if shortcut_id in self._shortcuts:
            self._shortcuts[shortcut_id].enabled = True

    def disable(self, shortcut_id: str) -> None:
        if shortcut_id in self._shortcuts:
            self._shortcuts[shortcut_id].enabled = False

    def get(self, shortcut_id: str) -> Optional[KeyboardShortcut]:
        return self._shortcuts.get(shortcut_id)

    def all(self) -> dict[str, KeyboardShortcut]:
        return dict(self._shortcuts)

    def clear(self) -> None:
        self._shortcuts.clear()

    def conflicts(self) -> list[ShortcutConflict]:
        return detect_conflicts(self._shortcuts)

    def handle_key_down(self, event: KeyEvent) -> bool:
        """Run the first enabled shortcut matching *event*.

        Events coming from text inputs are ignored.  Returns True when a
        shortcut handled the event.
        """
        tag = (event.target_tag or "").upper()
        if tag in _TEXT_INPUT_TAGS or event.content_editable:
            return False

        for shortcut in self._shortcuts.values():
            if shortcut.enabled and matches_shortcut(event, shortcut):
                shortcut.action()
                return True
        return False
