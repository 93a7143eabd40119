# receiver.py
#
# Recovers characters from a stream of spectrum samples.
#
# Each tick runs the same pipeline over one spectrum sample:
#   1. Find the loudest bin at or above the lowest symbol frequency and map
#      it to a symbol if it clears the peak threshold.
#   2. Record the detection in the history buffer, or check for a timeout
#      if nothing was detected.
#   3. Confirm a symbol once it has been seen on more than min_run_length
#      consecutive detections, consuming that run from the history.
#   4. Drive the Idle/Receiving framing state machine with the confirmed
#      symbol and emit character and message events.
# Every health_check_interval ticks the spectrum is sanity checked and the
# capture pipeline is restarted if it looks stuck.

import logging
import threading
from dataclasses import dataclass
from enum import Enum

import numpy as np

from sonicwaves import dsp
from sonicwaves.config import ModemConfig, PINNED_BINS, PINNED_VALUE, SPECTRUM_FLOOR
from sonicwaves.errors import DeviceUnavailableError, SonicError
from sonicwaves.ring_buffer import Detection, HistoryBuffer

logger = logging.getLogger(__name__)


class FrameState(str, Enum):
    IDLE = "idle"
    RECEIVING = "receiving"


@dataclass(frozen=True)
class CharacterEvent:
    """A data character was confirmed inside a frame."""

    char: str


@dataclass(frozen=True)
class MessageEvent:
    """A frame was closed by the end delimiter."""

    text: str


class Receiver:
    """Spectral-peak receiver with debounce, framing and self-healing.

    ``source`` acquires and polls the microphone + FFT pipeline through
    ``capture()``, ``sample(handle)`` and ``release(handle)``; ``clock``
    provides ``now()``. Both are optional when the host feeds samples
    directly through :meth:`tick`.
    """

    def __init__(self, source=None, clock=None, config=None, table=None):
        self.config = config or ModemConfig()
        self.table = table or self.config.symbol_table()
        self.source = source
        self.clock = clock if clock is not None else source

        self.peak_threshold = self.config.peak_threshold
        self.min_run_length = self.config.min_run_length
        self.timeout = self.config.timeout
        self.debug = self.config.debug
        self.sample_rate = self.config.sample_rate
        self.spectrum_length = self.config.spectrum_length

        self.history = HistoryBuffer(self.config.history_size)
        self.state = FrameState.IDLE
        self.buffer = ""
        self.last_char = None
        self.last_message = None
        self.last_frequency = None
        self.last_peak_time = None
        self.spectrum = None
        self.iteration = 0
        self.restarts = 0
        self.running = False

        self._handle = None
        self._silent_ticks = 0
        self._subscribers = []
        self._tick_lock = threading.Lock()
        self._tick_thread = None

    # --- Lifecycle ---

    def start(self):
        """Acquires the spectrum source and enters the running state.

        Raises DeviceUnavailableError if no input device grants access; the
        receiver then stays stopped.
        """
        if self.running:
            return
        if self.source is not None:
            try:
                self._handle = self.source.capture()
            except DeviceUnavailableError as e:
                logger.error("Audio input error: %s", e)
                raise
        self.reset()
        self.iteration = 0
        self.running = True
        logger.info("Receiver started (%s)", self.table)

    def stop(self):
        """Stops ticking and releases the audio input. Safe to call from a callback."""
        was_running = self.running
        self.running = False
        self._release()
        if was_running:
            logger.info("Receiver stopped")

    def restart(self):
        """Tears down and re-acquires the capture pipeline from scratch.

        Returns False if the device could not be re-acquired, in which case
        the receiver is stopped.
        """
        self.restarts += 1
        self._release()
        self.reset()
        if self.source is None:
            return True
        try:
            self._handle = self.source.capture()
        except DeviceUnavailableError as e:
            logger.error("Could not reacquire audio input after restart: %s", e)
            self.running = False
            return False
        return True

    def reset(self):
        """Returns history and framing state to their initial values."""
        self.history.clear()
        self.state = FrameState.IDLE
        self.buffer = ""
        self.last_char = None
        self.last_peak_time = None
        self._silent_ticks = 0

    def _release(self):
        handle, self._handle = self._handle, None
        if handle is None or self.source is None:
            return
        try:
            self.source.release(handle)
        except SonicError as e:
            logger.warning("Error releasing audio input: %s", e)

    # --- Events ---

    def subscribe(self, callback, event_type=None):
        """Registers ``callback(event)``, optionally for one event class only."""
        self._subscribers.append((callback, event_type))
        return callback

    def unsubscribe(self, callback):
        self._subscribers = [(cb, kind) for cb, kind in self._subscribers if cb != callback]

    def set_debug(self, value):
        self.debug = bool(value)

    @property
    def is_receiving(self):
        return self.state is FrameState.RECEIVING

    def _emit(self, event, events):
        if not self.running:
            return
        events.append(event)
        for callback, event_type in list(self._subscribers):
            if event_type is None or isinstance(event, event_type):
                callback(event)
            if not self.running:
                break

    # --- Tick pipeline ---

    def step(self):
        """Samples the source once and runs a tick. Returns the emitted events."""
        if not self.running or self.source is None:
            return []
        try:
            spectrum = self.source.sample(self._handle)
        except SonicError as e:
            logger.warning("Failed to sample audio input: %s", e)
            return []
        return self.tick(spectrum, self.clock.now())

    def tick(self, spectrum, now):
        """Runs the pipeline over one spectrum sample taken at time ``now``.

        Ticks never overlap. A tick started from an event callback of the
        tick in progress is ignored and returns no events.
        """
        if self._tick_thread == threading.get_ident():
            logger.warning("Ignoring tick() called from inside a tick")
            return []
        with self._tick_lock:
            self._tick_thread = threading.get_ident()
            try:
                return self._tick(spectrum, now)
            finally:
                self._tick_thread = None

    def _tick(self, spectrum, now):
        if not self.running:
            return []
        events = []
        spectrum = np.asarray(spectrum, dtype=np.float64)
        self.spectrum = spectrum
        self.spectrum_length = len(spectrum)

        interval = self.config.health_check_interval
        if (self.iteration + 1) % interval == 0 and self._spectrum_is_stuck(spectrum):
            self.iteration += 1
            self.restart()
            return events

        char = self.get_peak_char(spectrum)
        if char is not None:
            if self.debug:
                logger.debug("Transcribed char: %r (%.1f Hz)", char, self.last_frequency)
            self.history.add(Detection(char, now))
            self.last_peak_time = now
            self._silent_ticks = 0
        else:
            self._silent_ticks += 1
            if self._silent_ticks >= self.config.gap_ticks:
                # A silent gap separates two tones of the same character.
                self.last_char = None
            self._check_timeout(now)

        confirmed = self.get_last_run()
        if confirmed is not None:
            self._analyse_symbol(confirmed, events)
        self.iteration += 1
        return events

    def index_to_freq(self, index):
        return dsp.index_to_freq(index, self.sample_rate, self.spectrum_length)

    def freq_to_index(self, frequency):
        return dsp.freq_to_index(frequency, self.sample_rate, self.spectrum_length)

    def get_peak_frequency(self, spectrum):
        """Frequency of the loudest in-band bin, or None if it is below threshold."""
        start = self.freq_to_index(self.table.freq_min)
        band = np.asarray(spectrum)[start:]
        if band.size == 0:
            return None
        index = int(np.argmax(band))
        if band[index] > self.peak_threshold:
            return self.index_to_freq(start + index)
        return None

    def get_peak_char(self, spectrum):
        freq = self.get_peak_frequency(spectrum)
        self.last_frequency = freq
        if freq is None:
            return None
        return self.table.freq_to_char(freq)

    def get_last_run(self):
        """Confirms the most recent symbol if it ends a long enough run.

        The confirmed run is removed from the history so one physical tone
        is not matched again by later ticks.
        """
        last = self.history.last()
        if last is None:
            return None
        run_length = 1
        for i in range(self.history.length() - 2, -1, -1):
            if self.history.get(i).symbol != last.symbol:
                break
            run_length += 1
        if run_length > self.min_run_length:
            self.history.remove_range(self.history.length() - run_length, run_length)
            return last.symbol
        return None

    def _check_timeout(self, now):
        # Confirmed runs are consumed from the history, so the time of the
        # last detection is tracked separately.
        if self.last_peak_time is None or now - self.last_peak_time <= self.timeout:
            return
        if self.state is FrameState.RECEIVING:
            logger.debug("Frame %r timed out after %.3fs", self.buffer, now - self.last_peak_time)
            self.state = FrameState.IDLE
            self.buffer = ""
        self.history.clear()
        self.last_peak_time = None

    def _analyse_symbol(self, char, events):
        if self.state is FrameState.IDLE:
            if char == self.table.start_char:
                self.buffer = ""
                self.last_char = None
                self.state = FrameState.RECEIVING
                logger.info("Start of frame detected")
            return

        if char != self.last_char and not self.table.is_delimiter(char):
            self.buffer += char
            self.last_char = char
            self._emit(CharacterEvent(char), events)
        if char == self.table.end_char:
            text, self.buffer = self.buffer, ""
            self.state = FrameState.IDLE
            self.last_message = text
            logger.info("Received message: %r", text)
            self._emit(MessageEvent(text), events)

    def _spectrum_is_stuck(self, spectrum):
        if spectrum.size == 0:
            return False
        # Input level decays slowly until the first bin settles far below any real signal.
        if spectrum[0] < SPECTRUM_FLOOR:
            logger.warning("First bin at %.1f dB is below %.1f dB. Restarting.", spectrum[0], SPECTRUM_FLOOR)
            return True
        head = spectrum[:PINNED_BINS]
        if head.size == PINNED_BINS and np.all(head == PINNED_VALUE):
            logger.warning("First %d bins are pinned at %.1f dB. Restarting.", PINNED_BINS, PINNED_VALUE)
            return True
        return False
