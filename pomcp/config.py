"""
Configuration management for the planning library.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


class Config:
    """Application configuration settings."""

    # Base paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    CONFIGS_DIR: Path = PROJECT_ROOT / "configs"
    RUNS_DIR: Path = Path(os.getenv("RUNS_DIR", str(PROJECT_ROOT / "runs")))

    # Logging settings
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Planner settings
    DEFAULT_RANDOM_SEED: int = int(os.getenv("RANDOM_SEED", "42"))

    @classmethod
    def ensure_runs_dir(cls) -> Path:
        """Create the output directory for episode runs on demand."""
        cls.RUNS_DIR.mkdir(parents=True, exist_ok=True)
        return cls.RUNS_DIR
