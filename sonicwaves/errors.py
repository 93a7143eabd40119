# errors.py
#
# Exceptions raised by the sonicwaves modem. Absence of a spectral peak is
# never an error; these cover bad configuration and missing audio devices.


class SonicError(Exception):
    """Base class for all modem errors."""


class ConfigurationError(SonicError, ValueError):
    """Raised when a symbol table or modem configuration is invalid."""


class UnknownSymbolError(SonicError, KeyError):
    """Raised when a character has no slot in the symbol table."""

    def __init__(self, char):
        super().__init__(char)
        self.char = char

    def __str__(self):
        return f"Character {self.char!r} is not in the alphabet"


class DeviceUnavailableError(SonicError):
    """No audio input device granted access."""


class ChannelUnavailableError(SonicError):
    """No audio output channel is available for scheduling tones."""
