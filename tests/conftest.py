import numpy as np
import pytest

from sonicwaves import dsp
from sonicwaves.config import ModemConfig
from sonicwaves.receiver import Receiver

NOISE_FLOOR = -120.0
PEAK_LEVEL = -20.0


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start=0.0):
        self.time = start

    def now(self):
        return self.time

    def advance(self, seconds):
        self.time += seconds


class RecordingScheduler(FakeClock):
    """Tone scheduler that only records what it was asked to play."""

    def __init__(self, start=0.0):
        super().__init__(start)
        self.tones = []

    def schedule(self, frequency, start_time, duration, ramp_duration):
        self.tones.append(dsp.Tone(frequency, start_time, duration, ramp_duration))


class ToneSpectrumSource:
    """Reports every tone that is playing at time t as the spectral peak."""

    def __init__(self, tones, config):
        self.tones = list(tones)
        self.sample_rate = config.sample_rate
        self.spectrum_length = config.spectrum_length

    def spectrum_at(self, t):
        spectrum = np.full(self.spectrum_length, NOISE_FLOOR)
        for tone in self.tones:
            if tone.start_time <= t < tone.start_time + tone.duration:
                index = dsp.freq_to_index(tone.frequency, self.sample_rate, self.spectrum_length)
                spectrum[index] = PEAK_LEVEL
        return spectrum


def peak_spectrum(config, frequency, level=PEAK_LEVEL):
    """A flat spectrum with a single peak at ``frequency``."""
    spectrum = np.full(config.spectrum_length, NOISE_FLOOR)
    spectrum[dsp.freq_to_index(frequency, config.sample_rate, config.spectrum_length)] = level
    return spectrum


def run_ticks(receiver, spectrum_at, start, end, tick_rate=60.0):
    """Ticks ``receiver`` from ``start`` to ``end`` and collects every event."""
    events = []
    k = 0
    while True:
        t = start + k / tick_rate
        if t >= end:
            break
        events.extend(receiver.tick(spectrum_at(t), t))
        k += 1
    return events


@pytest.fixture
def config():
    return ModemConfig()


@pytest.fixture
def table(config):
    return config.symbol_table()


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def receiver(config):
    rx = Receiver(config=config)
    rx.start()
    return rx
