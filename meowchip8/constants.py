"""Machine constants, font atlas and frontend palette."""

# ═══════════════════════════════════════════════════════════════════════════════
# MACHINE
# ═══════════════════════════════════════════════════════════════════════════════

MEMORY_SIZE = 4096                      # 4KB RAM
ADDRESS_MASK = 0xFFF                    # 12-bit address space
PROGRAM_START = 0x200                   # Programs load at 0x200
MAX_ROM_SIZE = MEMORY_SIZE - PROGRAM_START
FONT_START = 0x000                      # Font atlas lives at the bottom of RAM
GLYPH_SIZE = 5                          # Bytes per font glyph
STACK_SIZE = 16                         # 16-level stack
NUM_REGISTERS = 16                      # V0-VF registers
NUM_KEYS = 16                           # 16 hex keys
FLAG = 0xF                              # VF doubles as carry/borrow/collision

DISPLAY_W, DISPLAY_H = 64, 32           # CHIP-8 native resolution

# CPU Timing
DEFAULT_CLOCK_HZ = 500                  # Instructions per second
TIMER_HZ = 60                           # Delay/Sound timer rate

# CHIP-8 Font (4x5 pixels, stored as 5 bytes each)
FONTSET = [
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
]

# ═══════════════════════════════════════════════════════════════════════════════
# FRONTEND
# ═══════════════════════════════════════════════════════════════════════════════

SCALE = 12                              # Display scale factor
GLOW_UPSCALE = 4                        # Internal upscale for glow blur
BLOOM_STRENGTH = 0.55                   # Glow intensity (0.0-1.0)
BLUR_RADIUS = 1                         # Box blur passes (0-3)
STATUS_H = 25                           # Status bar height in pixels

# Colors (RGB)
COLORS = {
    'bg_dark': (15, 15, 25),
    'fg_green': (0, 255, 128),
    'fg_amber': (255, 176, 0),
    'fg_white': (220, 220, 220),
    'fg_blue': (100, 180, 255),
    'status_bg': (20, 20, 35),
    'text_dim': (120, 120, 140),
}

COLOR_SCHEMES = {
    'green': ('Green Phosphor', COLORS['fg_green']),
    'amber': ('Amber CRT', COLORS['fg_amber']),
    'white': ('Cool White', COLORS['fg_white']),
    'blue': ('Ice Blue', COLORS['fg_blue']),
}
