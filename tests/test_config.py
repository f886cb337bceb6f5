"""
Unit tests for economic allocation parameters.
"""

import pytest
from cogniecan.config import EconomicAllocation


class TestEconomicAllocation:
    """Test EconomicAllocation validation and loading."""

    def test_defaults(self):
        """Test default parameters."""
        params = EconomicAllocation()

        assert params.total_sti == 1000.0
        assert params.total_lti == 1000.0
        assert params.total_vlti == 500.0
        assert params.min_threshold == 10.0
        assert params.decay_rate == 0.05
        assert params.spreading_rate == 0.1
        assert params.max_concurrent_tasks == 5
        assert params.total_budget == 2500.0

    @pytest.mark.parametrize('overrides', [
        {'decay_rate': 1.5},
        {'spreading_rate': -0.1},
        {'total_sti': -1},
        {'max_concurrent_tasks': 0},
    ])
    def test_invalid_values(self, overrides):
        """Test that out-of-range parameters are rejected."""
        with pytest.raises(ValueError):
            EconomicAllocation(**overrides)

    def test_with_overrides_validates(self):
        """Test that overriding fields validates again."""
        params = EconomicAllocation().with_overrides(total_sti=200)
        assert params.total_sti == 200

        with pytest.raises(ValueError):
            params.with_overrides(decay_rate=2.0)

    def test_from_env(self, monkeypatch):
        """Test reading parameters from environment variables."""
        monkeypatch.setenv('ECAN_TOTAL_STI', '250')
        monkeypatch.setenv('ECAN_MAX_CONCURRENT_TASKS', '3')

        params = EconomicAllocation.from_env()

        assert params.total_sti == 250.0
        assert params.max_concurrent_tasks == 3
        assert params.total_lti == 1000.0

    def test_from_env_file(self, tmp_path, monkeypatch):
        """Test loading a .env file before reading."""
        monkeypatch.delenv('ECANFILE_DECAY_RATE', raising=False)
        env_file = tmp_path / '.env'
        env_file.write_text('ECANFILE_DECAY_RATE=0.2\n')

        params = EconomicAllocation.from_env(prefix='ECANFILE_', env_file=env_file)

        assert params.decay_rate == 0.2


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
