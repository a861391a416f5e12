"""Planner and experiment configuration schemas."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from typing import Optional, Literal
from pathlib import Path
import yaml


class PlannerConfig(BaseModel):
    """
    Options recognised by the online planner.

    Both snake_case names and the camelCase option names used by problem
    setup code (``beliefSize``, ``explorationConstant``, ``maxDepth``, ...)
    are accepted.
    """
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    belief_size: int = Field(
        default=1000, gt=0,
        validation_alias=AliasChoices("belief_size", "beliefSize"),
        description="Particle-set target size",
    )
    iterations: int = Field(default=1000, gt=0, description="Simulation budget per decision")
    exploration_constant: float = Field(
        default=200.0, ge=0,
        validation_alias=AliasChoices("exploration_constant", "explorationConstant"),
        description="UCB coefficient c; scale it to the spread of returns (R_max - R_min)",
    )
    horizon: int = Field(
        default=100, gt=0,
        validation_alias=AliasChoices("horizon", "maxDepth", "max_depth"),
        description="Search and rollout depth cap",
    )
    rollout: Literal["fixed", "adaptive"] = Field(default="fixed", description="Rollout estimator")
    min_depth: int = Field(
        default=10, ge=0,
        validation_alias=AliasChoices("min_depth", "minDepth"),
        description="Adaptive rollout: depth before convergence checks start",
    )
    window_size: int = Field(
        default=5, gt=0,
        validation_alias=AliasChoices("window_size", "windowSize"),
        description="Adaptive rollout: sliding reward window length",
    )
    threshold: float = Field(default=0.01, ge=0, description="Adaptive rollout: convergence threshold")
    time_limit: Optional[float] = Field(
        default=None, gt=0,
        validation_alias=AliasChoices("time_limit", "timeLimit"),
        description="Wall-clock cap per decision (seconds)",
    )
    workers: int = Field(default=1, ge=1, description="Simulation worker threads")
    max_update_attempts: Optional[int] = Field(
        default=None, gt=0,
        validation_alias=AliasChoices("max_update_attempts", "maxUpdateAttempts"),
        description="Rejection-sampling budget per belief update (default 20 * belief_size)",
    )
    reinvigoration_attempts: int = Field(
        default=3, ge=0,
        validation_alias=AliasChoices("reinvigoration_attempts", "reinvigorationAttempts"),
        description="Prior redraw rounds before depletion is fatal",
    )

    @property
    def update_budget(self) -> int:
        """Rejection-sampling attempts allowed per belief update."""
        return self.max_update_attempts or 20 * self.belief_size


class OutputsConfig(BaseModel):
    """Output configuration."""
    out_dir: Optional[str] = Field(default=None, description="Output directory (defaults to Config.RUNS_DIR)")
    save_csv: bool = Field(default=True, description="Save per-episode CSV")


class ExperimentConfig(BaseModel):
    """Schema for episode-batch configuration files."""

    name: str = Field(..., description="Experiment name")
    problem: Literal["tiger", "rocksample", "corridor"] = Field(..., description="Problem to plan on")
    seed: int = Field(..., description="Random seed for reproducibility")
    description: Optional[str] = Field(default=None, description="Experiment description")
    episodes: int = Field(default=10, gt=0, description="Number of episodes")
    steps: int = Field(default=20, gt=0, description="Real steps per episode")
    planner: PlannerConfig = Field(default_factory=PlannerConfig, description="Planner options")
    outputs: OutputsConfig = Field(default_factory=OutputsConfig, description="Output configuration")

    @model_validator(mode="after")
    def validate_horizon(self):
        """Search depth beyond the episode length is wasted work."""
        if self.planner.horizon > self.steps:
            self.planner = self.planner.model_copy(update={"horizon": self.steps})
        return self


def load_planner_config(path: str) -> PlannerConfig:
    """Load and validate planner options from a YAML file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Planner config not found: {path}")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    # Accept both a bare options mapping and an experiment file
    if "planner" in data and isinstance(data["planner"], dict):
        data = data["planner"]

    return PlannerConfig(**data)


def load_experiment(path: str) -> ExperimentConfig:
    """Load and validate an experiment from a YAML file."""
    experiment_path = Path(path)
    if not experiment_path.exists():
        raise FileNotFoundError(f"Experiment file not found: {path}")

    with open(experiment_path, "r") as f:
        data = yaml.safe_load(f)

    return ExperimentConfig(**data)
