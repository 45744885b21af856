"""Configuration models for the Forge.

ForgeConfig holds every tunable constant: retry budget, backoff, the
generation loop's turn cap, tool result caps, and harness timeouts.
Values can come from keyword arguments or ``SNAPFORGE_*`` environment
variables (see :meth:`ForgeConfig.from_env`).
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from snapforge.exceptions import ConfigError

ENV_PREFIX = "SNAPFORGE_"


class ForgeConfig(BaseModel):
    """Tunable parameters for generation, execution, and retry."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Retry orchestrator
    max_retries: int = Field(default=3, ge=1)
    backoff_seconds: float = Field(default=2.0, ge=0.0)

    # Generation loop
    max_turns: int = Field(default=10, ge=1)
    nudge_after_turn: int = Field(default=5, ge=1)
    model: Optional[str] = None
    temperature: float = 0.1
    max_tokens: Optional[int] = 4096
    entry_point: str = "extract"

    # Exploration tools
    tool_result_max_chars: int = Field(default=12000, ge=200)
    default_max_results: int = Field(default=5, ge=1)
    max_results_limit: int = Field(default=50, ge=1)
    text_preview_chars: int = Field(default=200, ge=10)
    html_preview_chars: int = Field(default=300, ge=10)
    node_visit_limit: int = Field(default=5000, ge=1)

    # Harness
    execution_timeout: float = Field(default=10.0, gt=0.0)

    # Service
    poll_interval: float = Field(default=10.0, gt=0.0)

    @model_validator(mode="after")
    def _check_nudge(self) -> ForgeConfig:
        if self.nudge_after_turn > self.max_turns:
            raise ValueError("nudge_after_turn cannot exceed max_turns")
        return self

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: object,
    ) -> ForgeConfig:
        """Build a config from ``SNAPFORGE_<FIELD>`` variables.

        Explicit ``overrides`` win over the environment. Unset variables
        keep their defaults.

        Raises:
            ConfigError: If a value fails validation.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc
