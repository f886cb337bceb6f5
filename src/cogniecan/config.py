"""
Economic attention allocation parameters.

All parameters are constructor-time with defaults. ``from_env`` reads the
same fields from ``ECAN_*`` environment variables, optionally loading a
``.env`` file first.
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv


@dataclass(frozen=True)
class EconomicAllocation:
    """
    Budget and dynamics parameters for the attention kernel.

    Attributes:
        total_sti: Total short-term importance budget
        total_lti: Total long-term importance budget
        total_vlti: Total very long-term importance budget
        min_threshold: Minimum attention threshold after allocation
        decay_rate: Attention/activation decay per cycle (0-1)
        spreading_rate: Global activation spreading coefficient (0-1)
        max_concurrent_tasks: Running-task limit for admission
    """
    total_sti: float = 1000.0
    total_lti: float = 1000.0
    total_vlti: float = 500.0
    min_threshold: float = 10.0
    decay_rate: float = 0.05
    spreading_rate: float = 0.1
    max_concurrent_tasks: int = 5

    def __post_init__(self):
        for name in ('total_sti', 'total_lti', 'total_vlti', 'min_threshold'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        for name in ('decay_rate', 'spreading_rate'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.max_concurrent_tasks < 1:
            raise ValueError(f"max_concurrent_tasks must be positive, got {self.max_concurrent_tasks}")

    @property
    def total_budget(self) -> float:
        return self.total_sti + self.total_lti + self.total_vlti

    def with_overrides(self, **overrides) -> 'EconomicAllocation':
        """Copy with some fields replaced (validated again)."""
        return replace(self, **overrides)

    @classmethod
    def from_env(cls, prefix: str = 'ECAN_',
                 env_file: Optional[Union[str, Path]] = None) -> 'EconomicAllocation':
        """
        Build parameters from environment variables.

        Each field is read from ``<prefix><FIELD NAME>``, e.g.
        ``ECAN_TOTAL_STI``. Missing variables keep their defaults.

        Args:
            prefix: Variable name prefix
            env_file: Optional .env file loaded before reading (does not
                override variables already set)

        Returns:
            EconomicAllocation: Validated parameters
        """
        if env_file is not None:
            load_dotenv(env_file)

        values = {}
        for f in fields(cls):
            raw = os.getenv(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            values[f.name] = int(raw) if f.name == 'max_concurrent_tasks' else float(raw)
        return cls(**values)
