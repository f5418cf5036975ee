"""16-key hex keypad state."""

from collections import deque
from typing import List, Optional

from .constants import NUM_KEYS


class Keypad:
    """Key states plus a queue of key-press events"""

    def __init__(self):
        self.keys: List[bool] = [False] * NUM_KEYS
        self._presses = deque(maxlen=NUM_KEYS)

    def key_down(self, key: int):
        """Handle key press"""
        if 0 <= key < NUM_KEYS:
            if not self.keys[key]:
                self._presses.append(key)
            self.keys[key] = True

    def key_up(self, key: int):
        """Handle key release"""
        if 0 <= key < NUM_KEYS:
            self.keys[key] = False

    def is_pressed(self, key: int) -> bool:
        return self.keys[key & 0xF]

    def next_press(self) -> Optional[int]:
        """Oldest unconsumed key press, or None"""
        if self._presses:
            return self._presses.popleft()
        return None

    def clear_presses(self):
        self._presses.clear()

    def release_all(self):
        self.keys = [False] * NUM_KEYS
        self._presses.clear()
