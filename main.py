"""
pygame front end for the CHIP-8 virtual machine.

    python main.py rom=roms/PONG.ch8
    python main.py rom=roms/PONG.ch8 instruction_frequency=1000 color_scheme=amber
    python main.py rom=roms/IBM.ch8 headless=true frames=120 screenshot=ibm.png
"""

import sys
import time

import hydra
import jax
import numpy as np
import pygame
from omegaconf import DictConfig, OmegaConf

from chipvm import (
    create_state, load_rom, run_frames, set_keypad, Scheduler, ProgramTooLargeError,
    SCREEN_WIDTH, SCREEN_HEIGHT,
)
from chipvm.logging import logger
from chipvm.rendering import display_to_rgb, create_color_scheme, save_screenshot

# Modern key mapping: the 4x4 block 1234/QWER/ASDF/ZXCV stands in for the hex keypad
#   1 2 3 C
#   4 5 6 D
#   7 8 9 E
#   A 0 B F
KEY_LAYOUT = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "q": 0x4, "w": 0x5, "e": 0x6, "r": 0xD,
    "a": 0x7, "s": 0x8, "d": 0x9, "f": 0xE,
    "z": 0xA, "x": 0x0, "c": 0xB, "v": 0xF,
}


class Beeper:
    """Square-wave tone that plays while the sound timer is nonzero."""

    def __init__(self, frequency: int = 440, volume: float = 0.2):
        if pygame.mixer.get_init() is None:
            raise pygame.error("mixer not initialised")
        sample_rate, _, channels = pygame.mixer.get_init()
        period = max(2, sample_rate // frequency)
        samples = np.where(np.arange(period) < period // 2, 1, -1)
        samples = (samples * volume * 32767).astype(np.int16)
        if channels > 1:
            samples = np.repeat(samples[:, None], channels, axis=1)
        self.sound = pygame.sndarray.make_sound(samples)
        self.playing = False

    def update(self, sound_timer: int):
        if sound_timer > 0 and not self.playing:
            self.sound.play(loops=-1)
            self.playing = True
        elif sound_timer == 0 and self.playing:
            self.sound.stop()
            self.playing = False


class PygameHost:
    """Display sink, keypad source and audio sink for the scheduler loop."""

    def __init__(self, cfg: DictConfig):
        pygame.mixer.pre_init(frequency=44100, size=-16, channels=1)
        pygame.init()
        self.scale = cfg.scale
        self.screen = pygame.display.set_mode((SCREEN_WIDTH * self.scale, SCREEN_HEIGHT * self.scale))
        pygame.display.set_caption(f"chipvm - {cfg.rom}")
        self.on_color, self.off_color = create_color_scheme(cfg.color_scheme)

        self.key_map = {pygame.key.key_code(name): key for name, key in KEY_LAYOUT.items()}
        self.keypad = np.zeros(16, dtype=bool)
        self.keypad_dirty = False

        self.frame_interval = 1.0 / cfg.fps
        self.last_frame = 0.0
        self.paused = False

        try:
            self.beeper = Beeper(cfg.beep_frequency, cfg.volume)
        except pygame.error as e:
            logger.warning(f"Audio disabled: {e}")
            self.beeper = None

    def _handle_events(self) -> bool:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    return False
                elif event.key == pygame.K_p:
                    self.paused = not self.paused
                    logger.info("Paused" if self.paused else "Resumed")
                elif event.key in self.key_map:
                    self.keypad[self.key_map[event.key]] = True
                    self.keypad_dirty = True
            elif event.type == pygame.KEYUP:
                if event.key in self.key_map:
                    self.keypad[self.key_map[event.key]] = False
                    self.keypad_dirty = True
        return True

    def _render(self, state):
        rgb = display_to_rgb(state.display, self.scale, self.on_color, self.off_color)
        surface = pygame.surfarray.make_surface(rgb.swapaxes(0, 1))
        self.screen.blit(surface, (0, 0))
        pygame.display.flip()

    def __call__(self, state):
        """Exchange I/O with the machine between scheduler passes."""
        now = time.perf_counter()
        if now - self.last_frame < self.frame_interval:
            return state
        self.last_frame = now

        if not self._handle_events():
            return None

        if self.keypad_dirty:
            state = set_keypad(state, self.keypad)
            self.keypad_dirty = False

        self._render(state)
        if self.beeper is not None:
            self.beeper.update(0 if self.paused else int(state.sound_timer))

        while self.paused:
            time.sleep(self.frame_interval)
            if not self._handle_events():
                return None
        return state

    def close(self):
        pygame.quit()


def run_headless(state, cfg: DictConfig):
    cycles_per_frame = max(1, round(cfg.instruction_frequency / cfg.timer_frequency))
    start = time.time()
    state = jax.block_until_ready(run_frames(state, cfg.frames, cycles_per_frame, progress=True))
    logger.info(
        f"Ran {cfg.frames} frames ({cfg.frames * cycles_per_frame} cycles) in {time.time() - start:.2f}s, "
        f"PC=0x{int(state.pc):03X} I=0x{int(state.I):03X}"
    )
    if cfg.screenshot:
        save_screenshot(state.display, cfg.screenshot, cfg.scale, cfg.color_scheme)
        logger.info(f"Screenshot saved: {cfg.screenshot}")


def run_windowed(state, cfg: DictConfig):
    host = PygameHost(cfg)
    scheduler = Scheduler(cfg.instruction_frequency, cfg.timer_frequency)
    logger.info("Controls: ESC=Quit, P=Pause, keypad on 1234/QWER/ASDF/ZXCV")
    try:
        scheduler.run(state, host)
    finally:
        host.close()
    logger.info(
        f"Executed {scheduler.instructions_executed} instructions, {scheduler.timer_ticks} timer ticks"
    )


@hydra.main(version_base=None, config_path="conf", config_name="config")
def main(cfg: DictConfig) -> None:
    logger.set_level(cfg.log_level)
    logger.debug(OmegaConf.to_yaml(cfg))

    state = create_state(jax.random.PRNGKey(cfg.seed))
    try:
        state = load_rom(state, hydra.utils.to_absolute_path(cfg.rom))
    except (OSError, ProgramTooLargeError) as e:
        logger.error(f"Cannot load {cfg.rom}: {e}")
        sys.exit(1)
    logger.info(f"Loaded: {cfg.rom}")

    if cfg.headless:
        run_headless(state, cfg)
    else:
        run_windowed(state, cfg)


if __name__ == "__main__":
    main()
