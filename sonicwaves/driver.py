# driver.py
#
# Drives a Receiver at a fixed tick rate from a background thread. The
# receiver itself holds no timer; this loop calls step() roughly
# tick_rate times per second until stopped.

import logging
import threading
import time

logger = logging.getLogger(__name__)


class ReceiverLoop:
    def __init__(self, receiver, tick_rate=None):
        self.receiver = receiver
        self.tick_rate = tick_rate or receiver.config.tick_rate
        self.stop_flag = threading.Event()
        self.thread = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.stop()

    @property
    def is_alive(self):
        return self.thread is not None and self.thread.is_alive()

    def start(self):
        """Starts the receiver and the tick thread.

        DeviceUnavailableError from the receiver propagates and no thread
        is started.
        """
        if self.is_alive:
            return
        self.receiver.start()
        self.stop_flag.clear()
        self.thread = threading.Thread(target=self._run, name="receiver-loop", daemon=True)
        self.thread.start()

    def stop(self):
        self.stop_flag.set()
        if self.thread is not None and self.thread is not threading.current_thread():
            self.thread.join()
        self.receiver.stop()

    def _run(self):
        interval = 1.0 / self.tick_rate
        while not self.stop_flag.is_set() and self.receiver.running:
            started = time.monotonic()
            try:
                self.receiver.step()
            except Exception as e:
                logger.exception("An error in the receive loop: %s", e)
            self.stop_flag.wait(max(0.0, interval - (time.monotonic() - started)))
