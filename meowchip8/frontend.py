"""
pygame frontend: phosphor-glow renderer, keyboard input and the frame loop.

Each 60Hz frame runs ``cycles_per_frame`` CPU steps, ticks the timers
once and repaints the framebuffer.
"""

import argparse
import logging
import sys
from typing import List, Optional, Tuple

import numpy as np
import pygame

from .constants import (
    BLOOM_STRENGTH,
    BLUR_RADIUS,
    COLOR_SCHEMES,
    COLORS,
    DEFAULT_CLOCK_HZ,
    DISPLAY_H,
    DISPLAY_W,
    GLOW_UPSCALE,
    SCALE,
    STATUS_H,
    TIMER_HZ,
)
from .cpu import Chip8CPU
from .errors import RomLoadError, StackError
from .instructions import disassemble, disassemble_program

logger = logging.getLogger(__name__)

# Keyboard mapping (QWERTY -> CHIP-8 hex keypad)
# CHIP-8 Keypad:    Keyboard:
# 1 2 3 C          1 2 3 4
# 4 5 6 D          Q W E R
# 7 8 9 E          A S D F
# A 0 B F          Z X C V
KEY_MAP = {
    pygame.K_1: 0x1, pygame.K_2: 0x2, pygame.K_3: 0x3, pygame.K_4: 0xC,
    pygame.K_q: 0x4, pygame.K_w: 0x5, pygame.K_e: 0x6, pygame.K_r: 0xD,
    pygame.K_a: 0x7, pygame.K_s: 0x8, pygame.K_d: 0x9, pygame.K_f: 0xE,
    pygame.K_z: 0xA, pygame.K_x: 0x0, pygame.K_c: 0xB, pygame.K_v: 0xF,
}

CONTROLS = "Keys: 1234/QWER/ASDF/ZXCV | P=Pause F5=Reset F3=Debug Tab=Color [ ]=Speed ESC=Quit"

SPEED_PRESETS = (250, 500, 1000, 2000)


# ═══════════════════════════════════════════════════════════════════════════════
# GLOW EFFECT SYSTEM
# ═══════════════════════════════════════════════════════════════════════════════

class GlowRenderer:
    """Paints a framebuffer grid with a phosphor bloom halo"""

    def __init__(self, scale: int = SCALE,
                 fg_color: Tuple[int, int, int] = COLORS['fg_green'],
                 bg_color: Tuple[int, int, int] = COLORS['bg_dark']):
        self.scale = scale
        self.fg_color = fg_color
        self.bg_color = bg_color
        self.final_size = (DISPLAY_W * scale, DISPLAY_H * scale)

    @staticmethod
    def box_blur(arr: np.ndarray, passes: int = 1) -> np.ndarray:
        """Separable 3-tap box blur with wraparound edges"""
        a = arr.copy()
        for _ in range(passes):
            a = (np.roll(a, 1, axis=1) + a + np.roll(a, -1, axis=1)) / 3.0
            a = (np.roll(a, 1, axis=0) + a + np.roll(a, -1, axis=0)) / 3.0
        return a

    def _colorize(self, intensity: np.ndarray) -> np.ndarray:
        """(w, h) float array in 0..1 -> (w, h, 3) uint8 RGB"""
        rgb = np.zeros(intensity.shape + (3,), dtype=np.uint8)
        for i, c in enumerate(self.fg_color):
            rgb[:, :, i] = (intensity * c).astype(np.uint8)
        return rgb

    def render(self, pixels: np.ndarray) -> Tuple[pygame.Surface, pygame.Surface]:
        """
        Convert a (height, width) 0/1 grid to (base_surface, glow_surface)
        """
        # surfarray is indexed [x, y]
        lit = pixels.T.astype(np.float32)

        glow = np.kron(lit, np.ones((GLOW_UPSCALE, GLOW_UPSCALE), dtype=np.float32))
        glow = self.box_blur(glow, passes=1 + BLUR_RADIUS)
        glow = np.clip(glow * BLOOM_STRENGTH, 0.0, 1.0)

        base_surf = pygame.surfarray.make_surface(self._colorize(lit))
        glow_surf = pygame.surfarray.make_surface(self._colorize(glow))

        base_final = pygame.transform.scale(base_surf, self.final_size)
        glow_final = pygame.transform.smoothscale(glow_surf, self.final_size)
        return base_final, glow_final

    def create_background(self) -> pygame.Surface:
        """CRT-style background with scanlines"""
        surf = pygame.Surface(self.final_size)
        surf.fill(self.bg_color)
        line = tuple(c + 5 for c in self.bg_color)
        for y in range(0, self.final_size[1], 2):
            pygame.draw.line(surf, line, (0, y), (self.final_size[0], y))
        return surf


class StatusBar:
    """Bottom status line"""

    def __init__(self, y: int, width: int, height: int = STATUS_H):
        self.rect = pygame.Rect(0, y, width, height)
        self.text = "Ready"

    def draw(self, surface: pygame.Surface, font: pygame.font.Font):
        pygame.draw.rect(surface, COLORS['status_bg'], self.rect)
        text_surf = font.render(self.text, True, COLORS['text_dim'])
        surface.blit(text_surf, (10, self.rect.y + 5))

    def set_text(self, text: str):
        self.text = text


# ═══════════════════════════════════════════════════════════════════════════════
# MAIN EMULATOR APPLICATION
# ═══════════════════════════════════════════════════════════════════════════════

class Chip8App:
    """Window, input handling and the 60Hz frame loop"""

    def __init__(self, cpu: Chip8CPU, clock_hz: int = DEFAULT_CLOCK_HZ,
                 scale: int = SCALE, color: str = 'green', title: str = "Meow Machine"):
        pygame.init()
        pygame.display.set_caption(f"🐱 {title}")

        self.cpu = cpu
        self.scheme_names = list(COLOR_SCHEMES)
        self.color_index = self.scheme_names.index(color)
        self.renderer = GlowRenderer(scale, COLOR_SCHEMES[color][1])
        self.background = self.renderer.create_background()

        width, height = self.renderer.final_size
        self.screen = pygame.display.set_mode((width, height + STATUS_H))
        self.clock = pygame.time.Clock()
        self.font = pygame.font.Font(None, 20)
        self.status_bar = StatusBar(height, width)

        self.running = True
        self.show_debug = False
        self._surfaces = None
        self._set_speed(clock_hz)
        self.status_bar.set_text(f"{title} | {CONTROLS}")

    # ─── Actions ───

    def _reset(self):
        """Restart the loaded program"""
        self.cpu.restart()
        self.status_bar.set_text("Reset")
        logger.info("Reset")

    def _toggle_pause(self):
        self.cpu.paused = not self.cpu.paused
        self.status_bar.set_text("Paused" if self.cpu.paused else "Running")

    def _cycle_color(self):
        self.color_index = (self.color_index + 1) % len(self.scheme_names)
        name, color = COLOR_SCHEMES[self.scheme_names[self.color_index]]
        self.renderer.fg_color = color
        self._surfaces = None
        self.status_bar.set_text(f"Color: {name}")

    def _set_speed(self, hz: int):
        """Set CPU clock speed"""
        self.clock_hz = hz
        self.cycles_per_frame = max(1, hz // TIMER_HZ)
        self.status_bar.set_text(f"Speed: {hz} Hz")

    def _change_speed(self, direction: int):
        """Step to the next slower (-1) or faster (+1) preset"""
        faster = [hz for hz in SPEED_PRESETS if hz > self.clock_hz]
        slower = [hz for hz in SPEED_PRESETS if hz < self.clock_hz]
        if direction > 0 and faster:
            self._set_speed(faster[0])
        elif direction < 0 and slower:
            self._set_speed(slower[-1])

    def handle_events(self):
        """Process input events"""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False

            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    self.running = False
                elif event.key == pygame.K_p:
                    self._toggle_pause()
                elif event.key == pygame.K_F5:
                    self._reset()
                elif event.key == pygame.K_F3:
                    self.show_debug = not self.show_debug
                elif event.key == pygame.K_F1:
                    self.status_bar.set_text(CONTROLS)
                elif event.key == pygame.K_TAB:
                    self._cycle_color()
                elif event.key == pygame.K_RIGHTBRACKET:
                    self._change_speed(+1)
                elif event.key == pygame.K_LEFTBRACKET:
                    self._change_speed(-1)
                elif event.key in KEY_MAP:
                    self.cpu.key_down(KEY_MAP[event.key])

            elif event.type == pygame.KEYUP:
                if event.key in KEY_MAP:
                    self.cpu.key_up(KEY_MAP[event.key])

    def update(self):
        """Run one frame worth of instructions, then tick timers"""
        try:
            for _ in range(self.cycles_per_frame):
                self.cpu.step()
        except StackError as e:
            logger.warning("Stack fault: %s", e)
            self.cpu.paused = True
            self.status_bar.set_text(f"Halted: {e}")
        if not self.cpu.paused:
            self.cpu.tick_timers()

    def _frame_surfaces(self) -> Tuple[pygame.Surface, pygame.Surface]:
        """Glow surfaces, rebuilt only when the framebuffer changed"""
        fb = self.cpu.framebuffer
        if fb.dirty or self._surfaces is None:
            self._surfaces = self.renderer.render(fb.snapshot())
            fb.dirty = False
        return self._surfaces

    def render(self):
        """Render display"""
        display_pos = (0, 0)
        self.screen.fill(COLORS['bg_dark'])
        self.screen.blit(self.background, display_pos)

        base_surf, glow_surf = self._frame_surfaces()
        self.screen.blit(glow_surf, display_pos, special_flags=pygame.BLEND_ADD)
        self.screen.blit(base_surf, display_pos, special_flags=pygame.BLEND_MAX)

        if self.show_debug:
            self._render_debug()

        self.status_bar.draw(self.screen, self.font)
        pygame.display.flip()

    def _render_debug(self):
        """Register dump overlay"""
        lines = debug_lines(self.cpu)
        width = self.renderer.final_size[0]

        overlay = pygame.Surface((230, 18 * len(lines) + 10), pygame.SRCALPHA)
        overlay.fill((0, 0, 0, 180))
        self.screen.blit(overlay, (width - 240, 5))

        for i, line in enumerate(lines):
            text = self.font.render(line, True, self.renderer.fg_color)
            self.screen.blit(text, (width - 235, 10 + i * 18))

    def run(self):
        """Main loop"""
        while self.running:
            self.handle_events()
            self.update()
            self.render()
            self.clock.tick(TIMER_HZ)

        pygame.quit()


def debug_lines(cpu: Chip8CPU) -> List[str]:
    """Text for the debug overlay"""
    s = cpu.state
    opcode = cpu.fetch()
    lines = [
        f"PC: ${s.PC:03X}  I: ${s.I:03X}",
        f"SP: {s.SP}  DT: {s.delay_timer:02X}  ST: {s.sound_timer:02X}",
        "V0-V7: " + " ".join(f"{v:02X}" for v in s.V[:8]),
        "V8-VF: " + " ".join(f"{v:02X}" for v in s.V[8:]),
        f"OP: ${opcode:04X} {disassemble(opcode)}",
    ]
    if s.awaiting_key is not None:
        lines.append(f"Waiting for key -> V{s.awaiting_key:X}")
    if cpu.sound_active:
        lines.append("Sound timer running")
    return lines


# ═══════════════════════════════════════════════════════════════════════════════
# ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meowchip8", description="Cat's CHIP-8 emulator")
    parser.add_argument("rom", help="Path to CHIP-8 ROM (.ch8)")
    parser.add_argument("--clock", type=int, default=DEFAULT_CLOCK_HZ,
                        help=f"Instructions per second (default {DEFAULT_CLOCK_HZ})")
    parser.add_argument("--scale", type=int, default=SCALE,
                        help=f"Pixel scale factor (default {SCALE})")
    parser.add_argument("--color", choices=sorted(COLOR_SCHEMES), default='green',
                        help="Phosphor color scheme")
    parser.add_argument("--disasm", action="store_true",
                        help="Print a disassembly listing and exit")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s")

    if args.disasm:
        try:
            with open(args.rom, 'rb') as f:
                data = f.read()
        except OSError as e:
            print(f"ROM not found: {e}", file=sys.stderr)
            return 1
        print("\n".join(disassemble_program(data)))
        return 0

    cpu = Chip8CPU()
    try:
        cpu.load_rom_file(args.rom)
    except RomLoadError as e:
        print(e, file=sys.stderr)
        return 1

    print("Controls:")
    print("  CHIP-8 Keypad: 1234 / QWER / ASDF / ZXCV")
    print("  P = Pause/Resume   F5 = Reset   F3 = Debug   Tab = Color")
    print("  ESC = Exit")

    app = Chip8App(cpu, clock_hz=args.clock, scale=args.scale, color=args.color)
    app.run()
    return 0
