"""Config sub-models for retry policy."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class RetryConfig(BaseModel):
    """Retry configuration for enrichment calls.

    ``max_attempts`` counts the first call, so 5 means one call plus up to
    four retries.
    """

    max_attempts: int = Field(default=5, ge=1)
    initial_delay: float = Field(default=1.0, ge=0.0)
    backoff_factor: float = Field(default=2.0, ge=1.0)
    max_delay: float = Field(default=30.0, ge=0.0)

    @model_validator(mode="after")
    def _check_delays(self) -> RetryConfig:
        if self.max_delay < self.initial_delay:
            msg = "max_delay must be greater than or equal to initial_delay"
            raise ValueError(msg)
        return self


__all__ = ["RetryConfig"]
