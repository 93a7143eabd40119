import pytest

from sonicwaves.config import ModemConfig
from sonicwaves.errors import ConfigurationError, SonicError


class TestModemConfig:
    """Test cases for configuration defaults and validation."""

    def test_defaults(self):
        config = ModemConfig()

        assert config.char_duration == 0.2
        assert config.ramp_duration == 0.001
        assert config.peak_threshold == -65.0
        assert config.min_run_length == 2
        assert config.timeout == 0.3
        assert config.history_size == 16
        assert config.health_check_interval == 300
        assert config.spectrum_length == 1024
        assert config.tone_duration == 0.2
        assert not config.debug

    def test_symbol_table_matches_config(self):
        config = ModemConfig(alphabet="abc", freq_min=1000.0, freq_step=50.0)
        table = config.symbol_table()

        assert table.alphabet == "abc"
        assert table.freq_min == 1000.0
        assert table.freq_max == 1200.0

    @pytest.mark.parametrize("kwargs", [
        {"alphabet": "aab"},
        {"freq_step": 0},
        {"char_duration": 0},
        {"timeout": -1},
        {"tick_rate": 0},
        {"ramp_duration": -0.001},
        {"ramp_duration": 0.15},
        {"char_gap": 0.2},
        {"char_gap": -0.01},
        {"char_gap": 0.19, "ramp_duration": 0.01},
        {"min_run_length": 0},
        {"history_size": 2},
        {"fft_size": 1000},
        {"sample_rate": 32000},
        {"freq_min": 21500.0},
    ])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ConfigurationError):
            ModemConfig(**kwargs)

    def test_errors_share_base_class(self):
        with pytest.raises(SonicError):
            ModemConfig(history_size=1)

    def test_small_fft(self):
        config = ModemConfig(fft_size=256)
        assert config.spectrum_length == 128

    def test_char_gap_tone_duration(self):
        config = ModemConfig(char_gap=0.05)
        assert config.tone_duration == pytest.approx(0.15)

