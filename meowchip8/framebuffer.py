"""Monochrome 64x32 framebuffer with XOR sprite compositing."""

import numpy as np

from .constants import DISPLAY_H, DISPLAY_W


class Framebuffer:
    """
    Dense pixel grid, indexed ``pixels[y, x]``.

    All coordinates wrap around the edges, so sprites drawn past the
    right or bottom border reappear on the opposite side.
    """

    def __init__(self, width: int = DISPLAY_W, height: int = DISPLAY_H):
        self.width = width
        self.height = height
        self.pixels = np.zeros((height, width), dtype=np.uint8)
        self.collision = False
        self.dirty = True

    def clear(self):
        self.pixels.fill(0)
        self.dirty = True

    def get(self, x: int, y: int) -> int:
        return int(self.pixels[y % self.height, x % self.width])

    def set(self, x: int, y: int, color: int):
        self.pixels[y % self.height, x % self.width] = 1 if color else 0
        self.dirty = True

    def draw(self, x: int, y: int, sprite: bytes) -> bool:
        """
        XOR a sprite onto the grid

        Args:
            x, y: anchor of the top-left pixel
            sprite: one byte per row, MSB is the leftmost pixel

        Returns:
            True if any lit pixel was switched off
        """
        self.collision = False

        for row, sprite_byte in enumerate(sprite):
            py = (y + row) % self.height
            for col in range(8):
                if sprite_byte & (0x80 >> col):
                    px = (x + col) % self.width
                    if self.pixels[py, px]:
                        self.collision = True
                    self.pixels[py, px] ^= 1

        self.dirty = True
        return self.collision

    def lit_count(self) -> int:
        return int(self.pixels.sum())

    def snapshot(self) -> np.ndarray:
        """Copy of the pixel grid for renderers"""
        return self.pixels.copy()
