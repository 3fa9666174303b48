"""Pydantic schemas for profiler configuration and per-function options."""

import os

from pydantic import BaseModel, Field


DEFAULT_CONFIG = {
    "hot_percentile": 0.95,
    "min_time_ms": 1.0,
    "safe_optimizations": True,
}


class ProfilerConfig(BaseModel):
    """Registry-wide defaults, applied to every function registered after construction."""

    hot_percentile: float = Field(
        0.95, ge=0.0, le=1.0, description="Percentile used for hot detection"
    )
    min_time_ms: float = Field(
        1.0, ge=0.0, description="Hot value (ms) above which a function is hot"
    )
    safe_optimizations: bool = Field(
        True, description="Only apply optimization kinds declared safe"
    )
    history_size: int = Field(
        1000, gt=0, description="Rolling history length per function"
    )
    profile_after: int = Field(
        0, ge=0, description="Calls served untimed before profiling starts"
    )

    @classmethod
    def from_env(cls, prefix: str = "JACHE_") -> "ProfilerConfig":
        """Build a config from environment variables, falling back to defaults."""
        values = {}
        for field_name in cls.model_fields:
            raw = os.getenv(f"{prefix}{field_name.upper()}")
            if raw is not None:
                values[field_name] = raw
        return cls(**values)


class ThresholdOverride(BaseModel):
    """Per-function analysis thresholds stored via set_thresholds()."""

    min_time_ms: float | None = Field(None, ge=0.0)
    percentile: float | None = Field(None, ge=0.0, le=1.0)


class ProfileOptions(BaseModel):
    """Options supplied when registering a single function."""

    memoize: bool = Field(False, description="Allow memoization once hot")
    min_time_ms: float | None = Field(None, ge=0.0)
    percentile: float | None = Field(None, ge=0.0, le=1.0)
    history_size: int | None = Field(None, gt=0)
    profile_after: int | None = Field(None, ge=0)
    pure: bool | None = Field(
        None, description="Explicit purity declaration, overrides the heuristic"
    )

    def thresholds(self) -> ThresholdOverride | None:
        """Threshold part of these options, or None when neither is set."""
        if self.min_time_ms is None and self.percentile is None:
            return None
        return ThresholdOverride(
            min_time_ms=self.min_time_ms, percentile=self.percentile
        )


class ResolvedSettings(BaseModel):
    """Analysis parameters fixed for one wrapper at registration time."""

    memoize: bool
    min_time_ms: float
    hot_percentile: float
    history_size: int
    profile_after: int
    pure: bool | None = None
    safe_optimizations: bool = True


def resolve_settings(
    config: ProfilerConfig,
    options: ProfileOptions,
    override: ThresholdOverride | None = None,
) -> ResolvedSettings:
    """Merge options > stored override > registry config. Zero is a real value."""

    def pick(*candidates):
        for value in candidates:
            if value is not None:
                return value
        return None

    return ResolvedSettings(
        memoize=options.memoize,
        min_time_ms=pick(
            options.min_time_ms,
            override.min_time_ms if override else None,
            config.min_time_ms,
        ),
        hot_percentile=pick(
            options.percentile,
            override.percentile if override else None,
            config.hot_percentile,
        ),
        history_size=pick(options.history_size, config.history_size),
        profile_after=pick(options.profile_after, config.profile_after),
        pure=options.pure,
        safe_optimizations=config.safe_optimizations,
    )
