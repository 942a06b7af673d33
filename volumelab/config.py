"""volumelab — analysis configuration.

Typed, defaulted configuration structs for each component, plus a loader
that reads overrides from ``.env`` / environment variables.
Invalid values fail fast with ``ValueError`` at construction.
"""

import os
from dataclasses import dataclass, field, replace

from dotenv import load_dotenv


# ── Volume profile ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProfileConfig:
    """Binning and node-detection parameters for volume profile statistics."""

    num_bins: int = 50
    value_area_fraction: float = 0.70
    hvn_threshold: float = 1.5
    lvn_threshold: float = 0.5

    def __post_init__(self) -> None:
        if self.num_bins < 1:
            raise ValueError(f"num_bins must be >= 1, got {self.num_bins}")
        if not 0 < self.value_area_fraction <= 1:
            raise ValueError(
                f"value_area_fraction must be in (0, 1], got {self.value_area_fraction}"
            )
        if self.hvn_threshold < 0 or self.lvn_threshold < 0:
            raise ValueError("hvn_threshold and lvn_threshold must be non-negative")


@dataclass(frozen=True)
class EvolutionConfig:
    """Sliding-window parameters for profile evolution tracking."""

    window_size: int = 30
    step_size: int = 5
    num_bins: int = 50

    def __post_init__(self) -> None:
        if self.window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {self.window_size}")
        if self.step_size < 1:
            raise ValueError(f"step_size must be >= 1, got {self.step_size}")
        if self.num_bins < 1:
            raise ValueError(f"num_bins must be >= 1, got {self.num_bins}")


# ── Breakout detector ────────────────────────────────────────────────────


@dataclass(frozen=True)
class BreakoutConfig:
    """Zone layout and signal gating for the windowed breakout detector.

    ``continuous()`` keeps one window scanning after each break;
    ``split_window()`` ends the window at its first break and merges
    adjacent support zones when testing the differential.
    """

    warmup_size: int = 75
    min_zones: int = 15
    max_zones: int = 20
    points_per_zone: int = 15
    differential: float = 0.04
    support_volume_threshold: float = 0.10
    lookback_zones: int = 10
    lookahead_zones: int = 3
    merge_adjacent: bool = False
    end_window_on_break: bool = False
    detect_down_breaks: bool = True

    def __post_init__(self) -> None:
        if self.warmup_size < 0:
            raise ValueError(f"warmup_size must be >= 0, got {self.warmup_size}")
        if self.min_zones < 1 or self.max_zones < self.min_zones:
            raise ValueError(
                f"Need 1 <= min_zones <= max_zones, got {self.min_zones}..{self.max_zones}"
            )
        if self.points_per_zone < 1:
            raise ValueError(f"points_per_zone must be >= 1, got {self.points_per_zone}")
        if self.lookback_zones < 2:
            raise ValueError(f"lookback_zones must be >= 2, got {self.lookback_zones}")
        if self.lookahead_zones < 0:
            raise ValueError(f"lookahead_zones must be >= 0, got {self.lookahead_zones}")

    @classmethod
    def continuous(cls) -> "BreakoutConfig":
        return cls()

    @classmethod
    def split_window(cls) -> "BreakoutConfig":
        return cls(differential=0.08, merge_adjacent=True, end_window_on_break=True)


# ── Trade simulation ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class SimulationConfig:
    """Fees, stops and gating for the long-only trade simulator."""

    transaction_fee: float = 0.003
    cutoff_percent: float = 0.12
    trailing_factor: float = 0.08
    min_bars_between_trades: int = 75
    ath_reset: bool = False
    min_points_since_reset: int = 75
    exit_below_heaviest_zone: bool = False
    apply_fees_to_open: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.transaction_fee < 1:
            raise ValueError(f"transaction_fee must be in [0, 1), got {self.transaction_fee}")
        if not 0 < self.cutoff_percent < 1:
            raise ValueError(f"cutoff_percent must be in (0, 1), got {self.cutoff_percent}")
        if not 0 < self.trailing_factor < 1:
            raise ValueError(f"trailing_factor must be in (0, 1), got {self.trailing_factor}")
        if self.min_bars_between_trades < 0 or self.min_points_since_reset < 0:
            raise ValueError("Bar-count gates must be non-negative")

    @classmethod
    def continuous(cls) -> "SimulationConfig":
        return cls()

    @classmethod
    def split_window(cls) -> "SimulationConfig":
        return cls(cutoff_percent=0.08, ath_reset=True)


# ── Channel finder ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ChannelConfig:
    """Grid and scoring parameters for the regression channel search.

    ``max_start_index=None`` means ``max(0, len(series) - 20)``;
    ``max_length=None`` means "up to the end of the series".
    """

    min_start_index: int = 0
    max_start_index: int | None = None
    min_length: int = 20
    max_length: int | None = None
    start_step: int = 5
    length_step: int = 5
    stdev_multipliers: tuple[float, ...] = (1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0)
    touch_tolerance: float = 0.05
    similarity_threshold: float = 0.9
    overlap_threshold: float = 0.5
    turning_point_window: int = 3
    max_outside_fraction: float | None = None
    volume_filter: bool = False

    def __post_init__(self) -> None:
        if self.min_length < 2:
            raise ValueError(f"min_length must be >= 2, got {self.min_length}")
        if self.start_step < 1 or self.length_step < 1:
            raise ValueError("start_step and length_step must be >= 1")
        if not self.stdev_multipliers:
            raise ValueError("stdev_multipliers must not be empty")
        if not 0 <= self.similarity_threshold <= 1:
            raise ValueError(
                f"similarity_threshold must be in [0, 1], got {self.similarity_threshold}"
            )
        if not 0 <= self.overlap_threshold <= 1:
            raise ValueError(
                f"overlap_threshold must be in [0, 1], got {self.overlap_threshold}"
            )
        if self.touch_tolerance < 0:
            raise ValueError(f"touch_tolerance must be >= 0, got {self.touch_tolerance}")
        if self.turning_point_window < 1:
            raise ValueError(
                f"turning_point_window must be >= 1, got {self.turning_point_window}"
            )
        if self.min_start_index < 0:
            raise ValueError(f"min_start_index must be >= 0, got {self.min_start_index}")
        if self.max_outside_fraction is not None and not 0 <= self.max_outside_fraction <= 1:
            raise ValueError(
                f"max_outside_fraction must be in [0, 1], got {self.max_outside_fraction}"
            )


# ── Aggregate ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AnalysisConfig:
    """All component configs plus the log level used by scripts."""

    profile: ProfileConfig = field(default_factory=ProfileConfig)
    evolution: EvolutionConfig = field(default_factory=EvolutionConfig)
    breakout: BreakoutConfig = field(default_factory=BreakoutConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    channels: ChannelConfig = field(default_factory=ChannelConfig)
    log_level: str = "INFO"


_VARIANTS = ("continuous", "split_window")


def _env_number(name: str, cast, default):
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from exc


def load_config(env_path: str | None = None, variant: str | None = None) -> AnalysisConfig:
    """Load configuration from ``VOLUMELAB_*`` environment variables.

    Every variable is optional; unset ones keep the struct defaults.
    ``VOLUMELAB_BREAKOUT_VARIANT`` (or *variant*, which wins over it)
    selects the ``continuous`` or ``split_window`` presets for both the
    detector and the simulator before the individual overrides are applied.

    Raises ``ValueError`` naming the variable when a value cannot be parsed.
    """
    load_dotenv(dotenv_path=env_path)

    if variant is None:
        variant = os.environ.get("VOLUMELAB_BREAKOUT_VARIANT", "continuous")
    if variant not in _VARIANTS:
        raise ValueError(
            f"Unknown VOLUMELAB_BREAKOUT_VARIANT '{variant}'. "
            f"Available: {', '.join(_VARIANTS)}"
        )
    breakout = getattr(BreakoutConfig, variant)()
    simulation = getattr(SimulationConfig, variant)()

    profile = ProfileConfig(
        num_bins=_env_number("VOLUMELAB_NUM_BINS", int, 50),
        value_area_fraction=_env_number("VOLUMELAB_VALUE_AREA_FRACTION", float, 0.70),
        hvn_threshold=_env_number("VOLUMELAB_HVN_THRESHOLD", float, 1.5),
        lvn_threshold=_env_number("VOLUMELAB_LVN_THRESHOLD", float, 0.5),
    )
    breakout = replace(
        breakout,
        warmup_size=_env_number("VOLUMELAB_WARMUP_SIZE", int, breakout.warmup_size),
    )
    simulation = replace(
        simulation,
        transaction_fee=_env_number(
            "VOLUMELAB_TRANSACTION_FEE", float, simulation.transaction_fee,
        ),
        cutoff_percent=_env_number(
            "VOLUMELAB_CUTOFF_PERCENT", float, simulation.cutoff_percent,
        ),
        trailing_factor=_env_number(
            "VOLUMELAB_TRAILING_FACTOR", float, simulation.trailing_factor,
        ),
    )
    channels = ChannelConfig(
        overlap_threshold=_env_number("VOLUMELAB_OVERLAP_THRESHOLD", float, 0.5),
    )

    return AnalysisConfig(
        profile=profile,
        evolution=EvolutionConfig(num_bins=profile.num_bins),
        breakout=breakout,
        simulation=simulation,
        channels=channels,
        log_level=os.environ.get("VOLUMELAB_LOG_LEVEL", "INFO"),
    )
