"""Configuration management for Budgetwise.

Reads configuration from ~/.config/budgetwise.toml and creates default config if needed.
"""

from pathlib import Path
from dataclasses import dataclass
from typing import Optional
import tomllib
import tomli_w


@dataclass
class Config:
    """Application configuration."""

    base_dir: Path
    db_data_dir: Path
    db_filename: str
    log_level: str
    log_dir: Path
    user_id: str = "default"
    similarity_threshold: float = 0.7
    learned_threshold: float = 0.5
    keyword_confidence: float = 0.3
    keywords_file: Optional[Path] = None

    @property
    def db_path(self) -> Path:
        """Get the full database path (data_dir/filename)."""
        return self.db_data_dir / self.db_filename

    @classmethod
    def default(cls) -> "Config":
        """Create a Config with default values."""
        home = Path.home()
        base_dir = home / "data" / "budgetwise"
        return cls(
            base_dir=base_dir,
            db_data_dir=base_dir / "db",
            db_filename="budgetwise.db",
            log_level="INFO",
            log_dir=base_dir / "logs",
        )


def get_config_path() -> Path:
    """Get the path to the config file."""
    return Path.home() / ".config" / "budgetwise.toml"


def get_migrations_dir() -> Path:
    """Get the path to the migrations directory.

    This is always relative to the code location, not configurable.
    """
    return Path(__file__).parent / "db" / "migrations"


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file, creating default if it doesn't exist.

    Args:
        config_path: Optional explicit config file. Defaults to get_config_path().

    Returns:
        Config object with loaded or default values.
    """
    config_path = config_path or get_config_path()

    # If config doesn't exist, create it with defaults
    if not config_path.exists():
        config = Config.default()
        _write_config(config, config_path)
        return config

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse with defaults for any missing values
    base_dir = Path(data.get("base_dir", Path.home() / "data" / "budgetwise"))

    db_config = data.get("database", {})
    db_data_dir = Path(db_config.get("data_dir", base_dir / "db"))
    db_filename = db_config.get("filename", "budgetwise.db")

    log_config = data.get("logging", {})
    log_level = log_config.get("level", "INFO")
    log_dir = Path(log_config.get("log_dir", base_dir / "logs"))

    user_config = data.get("user", {})
    user_id = user_config.get("id", "default")

    classifier_config = data.get("classifier", {})
    keywords_file = classifier_config.get("keywords_file")

    return Config(
        base_dir=base_dir,
        db_data_dir=db_data_dir,
        db_filename=db_filename,
        log_level=log_level,
        log_dir=log_dir,
        user_id=user_id,
        similarity_threshold=float(
            classifier_config.get("similarity_threshold", 0.7)
        ),
        learned_threshold=float(classifier_config.get("learned_threshold", 0.5)),
        keyword_confidence=float(classifier_config.get("keyword_confidence", 0.3)),
        keywords_file=Path(keywords_file) if keywords_file else None,
    )


def _write_config(config: Config, config_path: Path) -> None:
    """Write config to the config file.

    Args:
        config: Config object to write.
        config_path: Destination file.
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)

    classifier = {
        "similarity_threshold": config.similarity_threshold,
        "learned_threshold": config.learned_threshold,
        "keyword_confidence": config.keyword_confidence,
    }
    # TOML has no null, so an unset keywords file is simply omitted
    if config.keywords_file:
        classifier["keywords_file"] = str(config.keywords_file)

    data = {
        "base_dir": str(config.base_dir),
        "database": {
            "data_dir": str(config.db_data_dir),
            "filename": config.db_filename,
        },
        "logging": {
            "level": config.log_level,
            "log_dir": str(config.log_dir),
        },
        "user": {
            "id": config.user_id,
        },
        "classifier": classifier,
    }

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
