# audio.py
#
# The audio engine owns every sounddevice stream used by a session. It is
# created once and handed to both the transmitter (as tone scheduler and
# clock) and the receiver (as spectrum source and clock).
#
# Input: an InputStream callback pushes blocks onto a queue; sample()
# drains the queue without blocking into a rolling window and returns the
# analyser spectrum of the latest fft_size samples.
#
# Output: scheduled tones are kept in a list and mixed block by block in
# the OutputStream callback according to their absolute start times.

import logging
import queue
import threading
import time

import numpy as np

from sonicwaves import dsp
from sonicwaves.config import ModemConfig
from sonicwaves.errors import ChannelUnavailableError, DeviceUnavailableError

# sounddevice raises OSError at import time when the PortAudio library is missing.
HAS_AUDIO = False
try:
    import sounddevice as sd
    HAS_AUDIO = True
except (ImportError, OSError):
    sd = None

logger = logging.getLogger(__name__)

ANALYSER_SMOOTHING = 0.8


class CaptureHandle:
    """An open microphone stream and its rolling analysis window."""

    def __init__(self, stream, blocks, fft_size, smoothing):
        self.stream = stream
        self.blocks = blocks
        self.window = np.zeros(fft_size, dtype=np.float32)
        self.analyser = dsp.SpectrumAnalyser(fft_size, smoothing=smoothing)
        self.closed = False


class AudioEngine:
    """sounddevice-backed spectrum source, tone scheduler and clock."""

    def __init__(self, config=None, input_device=None, output_device=None, smoothing=ANALYSER_SMOOTHING):
        self.config = config or ModemConfig()
        self.sample_rate = self.config.sample_rate
        self.fft_size = self.config.fft_size
        self.input_device = input_device
        self.output_device = output_device
        self.smoothing = smoothing

        self._tones = []
        self._tones_lock = threading.Lock()
        self._output = None
        self._output_t0 = 0.0
        self._frames_out = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def now(self):
        return time.monotonic()

    # --- Spectrum source ---

    def capture(self):
        if not HAS_AUDIO:
            raise DeviceUnavailableError("sounddevice is not available (is PortAudio installed?)")

        blocks = queue.Queue()

        def audio_callback(indata, frames, time, status):
            if status:
                logger.warning("Input stream status: %s", status)
            blocks.put(indata[:, 0].copy())

        try:
            stream = sd.InputStream(samplerate=self.sample_rate, channels=1, callback=audio_callback,
                                    blocksize=self.fft_size // 4, device=self.input_device)
            stream.start()
        except sd.PortAudioError as e:
            raise DeviceUnavailableError(f"Could not open audio input: {e}") from e
        logger.info("Audio input opened at %d Hz", self.sample_rate)
        return CaptureHandle(stream, blocks, self.fft_size, self.smoothing)

    def sample(self, handle):
        """Returns the spectrum of the latest audio without waiting for new blocks."""
        if handle is None or handle.closed:
            raise DeviceUnavailableError("Audio input is not open")
        while True:
            try:
                block = handle.blocks.get_nowait()
            except queue.Empty:
                break
            if len(block) >= self.fft_size:
                handle.window = block[-self.fft_size:]
            else:
                handle.window = np.concatenate((handle.window[len(block):], block))
        return handle.analyser.analyse(handle.window)

    def release(self, handle):
        if handle is None or handle.closed:
            return
        handle.closed = True
        try:
            handle.stream.stop()
            handle.stream.close()
        except sd.PortAudioError as e:
            raise DeviceUnavailableError(f"Error closing audio input: {e}") from e
        logger.info("Audio input closed")

    # --- Tone scheduler ---

    def schedule(self, frequency, start_time, duration, ramp_duration):
        self._ensure_output()
        with self._tones_lock:
            self._tones.append(dsp.Tone(frequency, start_time, duration, ramp_duration))

    def pending_tones(self):
        with self._tones_lock:
            return list(self._tones)

    def _ensure_output(self):
        if self._output is not None:
            return
        if not HAS_AUDIO:
            raise ChannelUnavailableError("sounddevice is not available (is PortAudio installed?)")
        try:
            stream = sd.OutputStream(samplerate=self.sample_rate, channels=1, dtype="float32",
                                     callback=self._output_callback, device=self.output_device)
            self._frames_out = 0
            self._output_t0 = self.now()
            stream.start()
        except sd.PortAudioError as e:
            raise ChannelUnavailableError(f"Could not open audio output: {e}") from e
        self._output = stream
        logger.info("Audio output opened at %d Hz", self.sample_rate)

    def _output_callback(self, outdata, frames, time, status):
        if status:
            logger.warning("Output stream status: %s", status)
        block_start = self._output_t0 + self._frames_out / self.sample_rate
        block_end = block_start + frames / self.sample_rate
        with self._tones_lock:
            self._tones = [t for t in self._tones if t.start_time + t.duration > block_start]
            active = [t for t in self._tones if t.start_time < block_end]
        outdata[:, 0] = dsp.mix_tones(active, block_start, frames, self.sample_rate)
        self._frames_out += frames

    def close(self):
        """Stops the output stream and drops any tones not yet played."""
        with self._tones_lock:
            self._tones = []
        output, self._output = self._output, None
        if output is not None:
            output.stop()
            output.close()
            logger.info("Audio output closed")
