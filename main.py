# main.py
#
# Interactive front end for the sonicwaves acoustic modem. One machine
# sends a short text message as a sequence of near-ultrasonic tones; another
# listens through its microphone and prints the characters as they arrive.
#
# Dependencies:
# pip install sounddevice numpy

import logging

from sonicwaves.audio import AudioEngine
from sonicwaves.config import ModemConfig
from sonicwaves.driver import ReceiverLoop
from sonicwaves.errors import SonicError
from sonicwaves.receiver import CharacterEvent, MessageEvent, Receiver
from sonicwaves.transmitter import Transmitter


def start_sending(engine, config):
    transmitter = Transmitter(engine, config=config)
    text = input("Enter text to send: ")
    if not text:
        print("Input is empty.")
        return
    try:
        duration = transmitter.send(text.lower(), on_complete=lambda: print("Transmission finished."))
    except SonicError as e:
        print(f"Error: {e}")
        return
    print(f"Sending {len(text)} characters ({duration:.1f}s)... Press Enter to continue.")
    input()


def start_receiving(engine, config):
    receiver = Receiver(engine, config=config)

    def on_event(event):
        if isinstance(event, CharacterEvent):
            print(event.char, end="", flush=True)
        elif isinstance(event, MessageEvent):
            print(f"\n--- Message: {event.text} ---")

    receiver.subscribe(on_event)
    loop = ReceiverLoop(receiver)
    try:
        loop.start()
    except SonicError as e:
        print(f"Error: {e}")
        return
    print("\nListening for data... Press Enter to stop.")
    try:
        input()
    except KeyboardInterrupt:
        print("\nStopping receiver.")
    loop.stop()
    print("Receiver stopped.")


def main():
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    config = ModemConfig()
    print("--- Sonic Waves Modem ---")
    with AudioEngine(config) as engine:
        while True:
            choice = input("\nChoose an option:\n1. Send text\n2. Receive data\n3. Toggle debug\n4. Exit\n> ").strip()
            if choice == '1':
                start_sending(engine, config)
            elif choice == '2':
                start_receiving(engine, config)
            elif choice == '3':
                config.debug = not config.debug
                logging.getLogger("sonicwaves").setLevel(logging.DEBUG if config.debug else logging.WARNING)
                print(f"Debug output {'enabled' if config.debug else 'disabled'}.")
            elif choice == '4':
                break
            else:
                print("Invalid choice. Please enter 1, 2, 3 or 4.")
    print("Goodbye!")


if __name__ == '__main__':
    main()
