"""Headless checks of the pygame frontend's non-window parts."""

import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import numpy as np
import pygame
import pytest

from meowchip8.constants import DEFAULT_CLOCK_HZ, MAX_ROM_SIZE, SCALE
from meowchip8.frontend import KEY_MAP, Chip8App, GlowRenderer, build_parser, debug_lines, main

from conftest import assemble


def test_key_map_covers_keypad():
    assert sorted(KEY_MAP.values()) == list(range(16))


def test_parser_defaults():
    args = build_parser().parse_args(["game.ch8"])
    assert args.rom == "game.ch8"
    assert args.clock == DEFAULT_CLOCK_HZ
    assert args.scale == SCALE
    assert args.color == "green"
    assert not args.disasm


def test_disasm_mode(tmp_path, capsys):
    rom = tmp_path / "prog.ch8"
    rom.write_bytes(assemble(0x00E0, 0x1200))
    assert main([str(rom), "--disasm"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ["0200:  00E0  CLS", "0202:  1200  JP $200"]


def test_oversized_rom_exits_with_error(tmp_path, capsys):
    rom = tmp_path / "big.ch8"
    rom.write_bytes(bytes(MAX_ROM_SIZE + 1))
    assert main([str(rom)]) == 1
    assert "at most" in capsys.readouterr().err


def test_missing_rom(tmp_path):
    assert main([str(tmp_path / "missing.ch8")]) == 1


def test_debug_lines(cpu):
    cpu.load_rom(assemble(0x6A05, 0xF10A))
    cpu.step()
    lines = debug_lines(cpu)
    assert lines[0] == "PC: $202  I: $000"
    assert lines[2].startswith("V0-V7: 00")
    assert lines[3] == "V8-VF: 00 00 05 00 00 00 00 00"
    assert lines[4] == "OP: $F10A LD V1, K"
    cpu.step()
    assert debug_lines(cpu)[-1] == "Waiting for key -> V1"


def test_box_blur_spreads_light():
    grid = np.zeros((8, 8), dtype=np.float32)
    grid[4, 4] = 1.0
    blurred = GlowRenderer.box_blur(grid)
    assert blurred[4, 4] < 1.0
    assert blurred[3, 3] > 0.0
    assert abs(blurred.sum() - 1.0) < 1e-5


# ═══════════════════════════════════════════════
# Frame loop (dummy video driver)
# ═══════════════════════════════════════════════

@pytest.fixture
def app(cpu):
    cpu.load_rom(assemble(0x6005, 0xF015, 0x1204))
    emu = Chip8App(cpu)
    yield emu
    pygame.quit()


class TestFrameLoop:

    def test_timers_tick_while_running(self, app):
        app.update()
        assert app.cpu.state.delay_timer == 4

    def test_timers_hold_while_paused(self, app):
        app.update()
        app.cpu.paused = True
        app.update()
        app.update()
        assert app.cpu.state.delay_timer == 4

    def test_stack_fault_halts_timers(self, app):
        app.cpu.load_rom(assemble(0x6005, 0xF015, 0x00EE))
        app.update()
        assert app.cpu.paused
        assert app.status_bar.text.startswith("Halted")
        assert app.cpu.state.delay_timer == 5

    def test_surfaces_rebuilt_only_when_dirty(self, app, monkeypatch):
        calls = []

        def fake_render(pixels):
            calls.append(pixels.copy())
            return ("base", "glow")

        monkeypatch.setattr(app.renderer, "render", fake_render)
        app._frame_surfaces()
        app._frame_surfaces()
        assert len(calls) == 1
        assert not app.cpu.framebuffer.dirty

        app.cpu.framebuffer.set(3, 4, 1)
        app._frame_surfaces()
        assert len(calls) == 2
        assert calls[-1][4, 3] == 1

        app._cycle_color()
        app._frame_surfaces()
        assert len(calls) == 3

    def test_speed_presets(self, app):
        assert app.clock_hz == DEFAULT_CLOCK_HZ
        app._change_speed(+1)
        assert app.clock_hz == 1000
        assert app.cycles_per_frame == 1000 // 60
        app._change_speed(+1)
        app._change_speed(+1)
        assert app.clock_hz == 2000
        for _ in range(5):
            app._change_speed(-1)
        assert app.clock_hz == 250
        assert app.cycles_per_frame == 4

    def test_bracket_keys_change_speed(self, app):
        pygame.event.post(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_RIGHTBRACKET))
        app.handle_events()
        assert app.clock_hz == 1000
        pygame.event.post(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_LEFTBRACKET))
        pygame.event.post(pygame.event.Event(pygame.KEYDOWN, key=pygame.K_LEFTBRACKET))
        app.handle_events()
        assert app.clock_hz == 250
        assert "250" in app.status_bar.text
