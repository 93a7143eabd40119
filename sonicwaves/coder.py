# coder.py
#
# Maps characters to tone frequencies and back. Every symbol owns one slot
# on an evenly spaced frequency grid:
#
#   slot 0         -> start delimiter, at freq_min
#   slot 1 .. N    -> alphabet characters, in alphabet order
#   slot N + 1     -> end delimiter
#
# so the delimiters sit at the two extremes of the band and can never
# collide with a data symbol.

from sonicwaves.errors import ConfigurationError, UnknownSymbolError

START_CHAR = "^"
END_CHAR = "$"


class SymbolTable:
    """Bijective character <-> frequency table shared by both ends of a link."""

    def __init__(self, alphabet, freq_min, freq_step, start_char=START_CHAR, end_char=END_CHAR):
        alphabet = "".join(alphabet)
        if not alphabet:
            raise ConfigurationError("Alphabet must contain at least one character")
        if len(set(alphabet)) != len(alphabet):
            dupes = sorted({c for c in alphabet if alphabet.count(c) > 1})
            raise ConfigurationError(f"Alphabet contains duplicate characters: {dupes!r}")
        if freq_step <= 0:
            raise ConfigurationError(f"freq_step must be positive, got {freq_step}")
        if freq_min <= 0:
            raise ConfigurationError(f"freq_min must be positive, got {freq_min}")
        if start_char == end_char:
            raise ConfigurationError("Start and end delimiters must differ")
        for delimiter in (start_char, end_char):
            if delimiter in alphabet:
                raise ConfigurationError(f"Delimiter {delimiter!r} is also an alphabet character")

        self.alphabet = alphabet
        self.freq_min = float(freq_min)
        self.freq_step = float(freq_step)
        self.start_char = start_char
        self.end_char = end_char

        self._symbols = start_char + alphabet + end_char
        self._slots = {char: slot for slot, char in enumerate(self._symbols)}

    def __len__(self):
        return len(self._symbols)

    def __contains__(self, char):
        return char in self._slots

    def __repr__(self):
        return (f"SymbolTable({len(self.alphabet)} chars, "
                f"{self.freq_min:.1f}-{self.freq_max:.1f} Hz, step {self.freq_step:.1f} Hz)")

    @property
    def symbols(self):
        """All symbols in slot order, delimiters included."""
        return self._symbols

    @property
    def freq_max(self):
        return self.freq_min + self.freq_step * (len(self._symbols) - 1)

    def is_delimiter(self, char):
        return char == self.start_char or char == self.end_char

    def char_to_freq(self, char):
        try:
            slot = self._slots[char]
        except KeyError:
            raise UnknownSymbolError(char) from None
        return self.freq_min + self.freq_step * slot

    def freq_to_char(self, freq):
        """Returns the symbol whose slot is nearest to ``freq``.

        Frequencies more than one step outside the band belong to no symbol
        and yield None.
        """
        if freq < self.freq_min - self.freq_step or freq > self.freq_max + self.freq_step:
            return None
        slot = int(round((freq - self.freq_min) / self.freq_step))
        slot = min(max(slot, 0), len(self._symbols) - 1)
        return self._symbols[slot]

    def encode(self, message):
        """Frames ``message`` with delimiters and returns its tone frequencies."""
        return [self.char_to_freq(c) for c in self.frame(message)]

    def frame(self, message):
        for char in message:
            if char not in self._slots or self.is_delimiter(char):
                raise UnknownSymbolError(char)
        return self.start_char + message + self.end_char
