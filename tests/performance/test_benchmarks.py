import os
import time

import numpy as np
import psutil
import pytest

from conftest import RecordingScheduler, ToneSpectrumSource, run_ticks
from sonicwaves import dsp
from sonicwaves.config import ModemConfig
from sonicwaves.receiver import MessageEvent, Receiver
from sonicwaves.transmitter import Transmitter


class TestPerformance:
    """Performance and reliability test cases."""

    def get_memory_usage(self):
        """Get current memory usage in MB."""
        process = psutil.Process(os.getpid())
        return process.memory_info().rss / 1024 / 1024

    def test_tick_fits_in_frame_budget(self):
        """A tick must finish well inside one 60Hz frame."""
        config = ModemConfig()
        receiver = Receiver(config=config)
        receiver.start()
        spectrum = np.random.uniform(-140, -80, config.spectrum_length)

        num_ticks = 1000
        start_time = time.time()
        for i in range(num_ticks):
            receiver.tick(spectrum, i / 60)
        avg_time = (time.time() - start_time) / num_ticks

        assert avg_time < 1.0 / 60 / 10

    def test_analyser_throughput(self):
        config = ModemConfig()
        analyser = dsp.SpectrumAnalyser(config.fft_size)
        chunk = np.random.randn(config.fft_size).astype(np.float32)

        num_iterations = 200
        start_time = time.time()
        for _ in range(num_iterations):
            analyser.analyse(chunk)
        avg_time = (time.time() - start_time) / num_iterations

        assert avg_time < 0.005

    def test_long_session_memory_is_bounded(self):
        """History and state do not grow with the number of ticks."""
        config = ModemConfig()
        scheduler = RecordingScheduler()
        message = "the quick brown fox jumps over the lazy dog"
        duration = Transmitter(scheduler, config=config).send(message)
        source = ToneSpectrumSource(scheduler.tones, config)

        receiver = Receiver(config=config)
        receiver.start()
        initial_memory = self.get_memory_usage()

        events = []
        for _ in range(3):
            events += run_ticks(receiver, source.spectrum_at, 0.0, duration + 0.5)

        assert self.get_memory_usage() - initial_memory < 50
        assert receiver.history.length() <= config.history_size
        assert [e.text for e in events if isinstance(e, MessageEvent)] == [message] * 3

    @pytest.mark.parametrize("length", [10, 50, 100])
    def test_schedule_rendering_speed(self, length):
        config = ModemConfig()
        scheduler = RecordingScheduler()
        Transmitter(scheduler, config=config).send("a" * length)

        start_time = time.time()
        waveform = dsp.render_schedule(scheduler.tones, config.sample_rate)
        elapsed = time.time() - start_time

        assert len(waveform) == pytest.approx((length + 2) * config.char_duration * config.sample_rate, abs=2)
        assert elapsed < 0.05 * length
