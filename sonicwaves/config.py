# config.py
#
# Default settings for the sonicwaves acoustic modem. Both sides of a link
# must agree on the alphabet and frequency layout, so these values are
# grouped into a single ModemConfig that is passed to the transmitter,
# the receiver and the audio engine.

from dataclasses import dataclass

from sonicwaves.coder import SymbolTable
from sonicwaves.errors import ConfigurationError

# --- Configuration ---
ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz "
FREQ_MIN = 18500.0      # Frequency of the start delimiter (Hz)
FREQ_STEP = 25.0        # Spacing between adjacent symbol slots (Hz)

SAMPLE_RATE = 44100     # Samples per second
FFT_SIZE = 2048         # Analyser FFT size, spectrum has FFT_SIZE // 2 bins
TICK_RATE = 60.0        # Receiver ticks per second

CHAR_DURATION = 0.2     # Duration of each character slot in seconds
RAMP_DURATION = 0.001   # Gain ramp at tone onset and offset (1ms)
CHAR_GAP = 0.0          # Silence left at the end of each slot

PEAK_THRESHOLD = -65.0  # Minimum peak magnitude (dB) to count as a detection
MIN_RUN_LENGTH = 2      # A run must be longer than this to be confirmed
TIMEOUT = 0.3           # Seconds without a detection before a frame is dropped
HISTORY_SIZE = 16       # Number of recent detections kept
HEALTH_CHECK_INTERVAL = 300  # Ticks between spectrum sanity checks (~5s)
GAP_TICKS = 2           # Silent ticks that separate two tones of the same char

# Spectrum sanity limits used by the health check.
SPECTRUM_FLOOR = -300.0  # A first bin quieter than this means the input decayed
PINNED_VALUE = -100.0    # Analyser value reported when the input is dead
PINNED_BINS = 10


@dataclass
class ModemConfig:
    """All tunables of a modem session, with validated defaults."""

    alphabet: str = ALPHABET
    freq_min: float = FREQ_MIN
    freq_step: float = FREQ_STEP
    sample_rate: int = SAMPLE_RATE
    fft_size: int = FFT_SIZE
    tick_rate: float = TICK_RATE
    char_duration: float = CHAR_DURATION
    ramp_duration: float = RAMP_DURATION
    char_gap: float = CHAR_GAP
    peak_threshold: float = PEAK_THRESHOLD
    min_run_length: int = MIN_RUN_LENGTH
    timeout: float = TIMEOUT
    history_size: int = HISTORY_SIZE
    health_check_interval: int = HEALTH_CHECK_INTERVAL
    gap_ticks: int = GAP_TICKS
    debug: bool = False

    def __post_init__(self):
        for name in ("sample_rate", "tick_rate", "char_duration", "timeout", "health_check_interval", "gap_ticks"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if self.ramp_duration < 0:
            raise ConfigurationError(f"ramp_duration must not be negative, got {self.ramp_duration}")
        if not 0 <= self.char_gap < self.char_duration:
            raise ConfigurationError(
                f"char_gap must be in [0, {self.char_duration}), got {self.char_gap}")
        if 2 * self.ramp_duration > self.tone_duration:
            raise ConfigurationError(
                f"ramp_duration {self.ramp_duration}s does not fit twice into a {self.tone_duration}s tone")
        if self.min_run_length < 1:
            raise ConfigurationError(f"min_run_length must be at least 1, got {self.min_run_length}")
        if self.history_size <= self.min_run_length:
            raise ConfigurationError(
                f"history_size ({self.history_size}) must exceed min_run_length ({self.min_run_length})")
        if self.fft_size < 2 or self.fft_size & (self.fft_size - 1):
            raise ConfigurationError(f"fft_size must be a power of two, got {self.fft_size}")

        # Building the table validates the alphabet and frequency step.
        table = self.symbol_table()
        if table.freq_max >= self.nyquist:
            raise ConfigurationError(
                f"Highest symbol frequency {table.freq_max} Hz reaches the Nyquist limit {self.nyquist} Hz")

    @property
    def nyquist(self):
        return self.sample_rate / 2

    @property
    def spectrum_length(self):
        return self.fft_size // 2

    @property
    def tone_duration(self):
        """Time each tone is actually held inside its character slot."""
        return self.char_duration - self.char_gap

    def symbol_table(self):
        return SymbolTable(self.alphabet, self.freq_min, self.freq_step)
