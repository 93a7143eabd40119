# dsp.py
#
# numpy helpers shared by the audio engine and the tests: conversions
# between spectrum bins and frequencies, the tone gain envelope, tone
# synthesis and an analyser that turns audio chunks into dB spectra.

from collections import namedtuple

import numpy as np

# A scheduled tone. start_time is on the same clock as the receiver ticks.
Tone = namedtuple("Tone", ["frequency", "start_time", "duration", "ramp_duration"])

DB_FLOOR = 1e-20  # Magnitude floor before taking the log (-400 dB)


def index_to_freq(index, sample_rate, spectrum_length):
    nyquist = sample_rate / 2
    return nyquist / spectrum_length * index


def freq_to_index(frequency, sample_rate, spectrum_length):
    nyquist = sample_rate / 2
    return int(round(frequency / nyquist * spectrum_length))


def tone_envelope(t, duration, ramp_duration):
    """Gain of a tone at local times ``t`` (seconds since its onset).

    Ramps linearly 0 -> 1 over ``ramp_duration``, holds at 1, then ramps
    1 -> 0 so it reaches zero exactly at ``duration``. Zero outside the tone.
    """
    t = np.asarray(t, dtype=np.float64)
    if ramp_duration > 0:
        gain = np.minimum(t / ramp_duration, (duration - t) / ramp_duration)
        gain = np.clip(gain, 0.0, 1.0)
    else:
        gain = np.ones_like(t)
    gain[(t < 0) | (t >= duration)] = 0.0
    return gain


def mix_tones(tones, start_time, n_samples, sample_rate):
    """Renders ``n_samples`` of all ``tones`` that overlap the block at ``start_time``."""
    t = start_time + np.arange(n_samples) / sample_rate
    out = np.zeros(n_samples)
    for tone in tones:
        local = t - tone.start_time
        mask = (local >= 0) & (local < tone.duration)
        if not np.any(mask):
            continue
        local = local[mask]
        out[mask] += (np.sin(2 * np.pi * tone.frequency * local)
                      * tone_envelope(local, tone.duration, tone.ramp_duration))
    return out.astype(np.float32)


def synthesize_tone(frequency, duration, ramp_duration, sample_rate):
    """Generates one enveloped sine tone starting at t=0."""
    tone = Tone(frequency, 0.0, duration, ramp_duration)
    return mix_tones([tone], 0.0, int(sample_rate * duration), sample_rate)


def render_schedule(tones, sample_rate, start_time=None):
    """Renders a whole tone schedule into a single waveform.

    The waveform begins at ``start_time`` (the earliest onset by default)
    and ends with the last tone.
    """
    tones = list(tones)
    if not tones:
        return np.array([], dtype=np.float32)
    if start_time is None:
        start_time = min(tone.start_time for tone in tones)
    end_time = max(tone.start_time + tone.duration for tone in tones)
    n_samples = int(round((end_time - start_time) * sample_rate))
    return mix_tones(tones, start_time, n_samples, sample_rate)


class SpectrumAnalyser:
    """Magnitude spectrum in dB of the latest ``fft_size`` samples.

    Mirrors a browser AnalyserNode: Blackman window, magnitude scaled by
    the FFT size, exponential smoothing between successive calls, and
    fft_size // 2 bins from DC up to just below Nyquist.
    """

    def __init__(self, fft_size, smoothing=0.8):
        if not 0 <= smoothing < 1:
            raise ValueError(f"smoothing must be in [0, 1), got {smoothing}")
        self.fft_size = fft_size
        self.smoothing = smoothing
        self.window = np.blackman(fft_size)
        self._previous = np.zeros(fft_size // 2)

    def reset(self):
        self._previous = np.zeros(self.fft_size // 2)

    def analyse(self, chunk):
        chunk = np.nan_to_num(np.asarray(chunk, dtype=np.float64), nan=0.0, posinf=0.0, neginf=0.0)
        if len(chunk) >= self.fft_size:
            chunk = chunk[-self.fft_size:]
        else:
            chunk = np.concatenate((np.zeros(self.fft_size - len(chunk)), chunk))

        magnitudes = np.abs(np.fft.rfft(chunk * self.window))[:self.fft_size // 2] / self.fft_size
        smoothed = self.smoothing * self._previous + (1 - self.smoothing) * magnitudes
        self._previous = smoothed
        return 20 * np.log10(np.maximum(smoothed, DB_FLOOR))


def compute_spectrum(chunk, fft_size):
    """One-shot unsmoothed dB spectrum of ``chunk``."""
    return SpectrumAnalyser(fft_size, smoothing=0.0).analyse(chunk)
