# transmitter.py
#
# Encodes a text message as a sequence of pure tones. The message is
# framed with the start and end delimiters and every symbol is scheduled
# up front, one character slot after the other, with absolute start
# times. Transmission is open loop: nothing confirms delivery.

import logging
import threading

from sonicwaves.config import ModemConfig
from sonicwaves.errors import ChannelUnavailableError

logger = logging.getLogger(__name__)


class Transmitter:
    """Schedules the tones for a framed message on a tone scheduler.

    The scheduler must provide ``schedule(frequency, start_time, duration,
    ramp_duration)``; the clock must provide ``now()``. An AudioEngine is
    both, so the clock defaults to the scheduler.
    """

    def __init__(self, scheduler, clock=None, config=None, table=None):
        self.config = config or ModemConfig()
        self.table = table or self.config.symbol_table()
        self.scheduler = scheduler
        self.clock = clock if clock is not None else scheduler
        self.char_duration = self.config.char_duration
        self.tone_duration = self.config.tone_duration
        self.ramp_duration = self.config.ramp_duration

    def message_duration(self, message):
        """Nominal time needed to transmit ``message``, delimiters included."""
        return self.char_duration * (len(message) + 2)

    def send(self, message, on_complete=None):
        """Schedules ``message`` and returns its nominal duration in seconds.

        ``on_complete`` is called from a timer thread once that duration has
        elapsed. It is not synchronised with actual playback.
        """
        if self.scheduler is None:
            raise ChannelUnavailableError("No tone scheduler is available")

        freqs = self.table.encode(message)
        now = self.clock.now()
        for i, freq in enumerate(freqs):
            self.schedule_tone_at(freq, now + self.char_duration * i, self.tone_duration)

        total_time = self.message_duration(message)
        logger.info("Scheduled %d tones for %r (%.2fs)", len(freqs), message, total_time)

        if on_complete is not None:
            timer = threading.Timer(total_time, on_complete)
            timer.daemon = True
            timer.start()
        return total_time

    def schedule_tone_at(self, freq, start_time, duration):
        self.scheduler.schedule(freq, start_time, duration, self.ramp_duration)
