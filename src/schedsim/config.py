"""Configuration and policy constants for schedsim."""

from dataclasses import dataclass

# System resource limits (MB)
MAX_MEMORY = 16384
MAX_SWAP = 8192

# Simulation speed bounds
DEFAULT_SIMULATION_SPEED = 1.0
MIN_SIMULATION_SPEED = 0.5
MAX_SIMULATION_SPEED = 5.0

# Reporting
HISTORY_LIMIT = 150
SNAPSHOT_PERIOD = 0.5  # Seconds
METRIC_UPDATE_INTERVAL = 1.0  # Seconds
AVG_LOOKBACK_WINDOW = 20


class ConfigurationError(ValueError):
    """Raised when a scheduler configuration is invalid."""


@dataclass(slots=True, frozen=True)
class SchedulerConfig:
    """
    Immutable configuration of a scheduler engine.

    All durations are in seconds of the engine clock. Validation happens at
    construction, so an invalid configuration never reaches the engine.
    """

    max_memory: int = MAX_MEMORY
    max_swap: int = MAX_SWAP
    base_tick_duration: float = 1.0
    min_speed: float = MIN_SIMULATION_SPEED
    max_speed: float = MAX_SIMULATION_SPEED
    default_speed: float = DEFAULT_SIMULATION_SPEED
    aging_interval: float = 5.0
    max_quantum: int = 5
    io_probability: float = 0.05
    io_ticks: tuple[int, int] = (1, 3)
    max_priority: int | None = None  # None = unbounded aging
    history_limit: int = HISTORY_LIMIT
    snapshot_period: float = SNAPSHOT_PERIOD
    idle_wait: float = 1.0
    pause_poll_interval: float = 0.1

    def __post_init__(self) -> None:
        """Validate capacities and policy parameters."""
        if self.max_memory <= 0 or self.max_swap < 0 or self.max_memory < self.max_swap:
            raise ConfigurationError(
                "Invalid memory or swap size: main memory must be > 0, swap >= 0, "
                f"and main memory must be >= swap (got {self.max_memory}/{self.max_swap})"
            )
        if self.base_tick_duration <= 0:
            raise ConfigurationError("base_tick_duration must be positive")
        if not 0 < self.min_speed <= self.max_speed:
            raise ConfigurationError("speed bounds must satisfy 0 < min_speed <= max_speed")
        if not self.min_speed <= self.default_speed <= self.max_speed:
            raise ConfigurationError("default_speed must lie within the speed bounds")
        if self.aging_interval <= 0:
            raise ConfigurationError("aging_interval must be positive")
        if self.max_quantum < 1:
            raise ConfigurationError("max_quantum must be at least 1")
        if not 0.0 <= self.io_probability <= 1.0:
            raise ConfigurationError("io_probability must be within [0, 1]")
        low, high = self.io_ticks
        if not 1 <= low <= high:
            raise ConfigurationError("io_ticks must be an increasing pair of positive ints")
        if self.history_limit < 1:
            raise ConfigurationError("history_limit must be at least 1")
        if self.snapshot_period <= 0 or self.idle_wait <= 0 or self.pause_poll_interval <= 0:
            raise ConfigurationError("periods and waits must be positive")

    def clamp_speed(self, speed: float) -> float:
        """Clamp a simulation speed to the configured bounds."""
        return min(self.max_speed, max(self.min_speed, speed))
