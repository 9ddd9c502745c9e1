import tomllib
from dataclasses import dataclass
from pathlib import Path

CONFIG_DIR = Path.home() / ".podscribe"
CONFIG_FILE = CONFIG_DIR / "config.toml"

DEFAULT_LANGUAGE = "sl"
DEFAULT_ENGINES = ("open", "elab", "groq")
DEFAULT_TIMELINE_ENGINE = "groq"
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RECONCILE_MODEL = "anthropic/claude-sonnet-4-5"
DEFAULT_OPENAI_MODEL = "gpt-4o-transcribe"
DEFAULT_GROQ_MODEL = "whisper-large-v3"
DEFAULT_ELEVENLABS_MODEL = "scribe_v1"
DEFAULT_TRIM_PADDING = 2.0
DEFAULT_MIN_SAVINGS = 5.0
DEFAULT_SKIP_INTRO = 0.0


@dataclass(frozen=True)
class Config:
    language: str = DEFAULT_LANGUAGE
    target_language: str | None = None
    engines: tuple[str, ...] = DEFAULT_ENGINES
    timeline_engine: str = DEFAULT_TIMELINE_ENGINE
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    reconcile_model: str = DEFAULT_RECONCILE_MODEL
    openai_model: str = DEFAULT_OPENAI_MODEL
    groq_model: str = DEFAULT_GROQ_MODEL
    elevenlabs_model: str = DEFAULT_ELEVENLABS_MODEL
    trim_padding: float = DEFAULT_TRIM_PADDING
    min_savings: float = DEFAULT_MIN_SAVINGS
    skip_intro: float = DEFAULT_SKIP_INTRO

    @property
    def prompt_language(self) -> str:
        """Language the reconciled transcript is written in."""
        return self.target_language or self.language


def load_config(path: Path = CONFIG_FILE) -> Config:
    """Load configuration from TOML file, falling back to defaults for missing values."""
    if not path.exists():
        return Config()

    with open(path, "rb") as f:
        data = tomllib.load(f)

    defaults = data.get("defaults", {})
    models = data.get("models", {})
    trim = data.get("trim", {})

    return Config(
        language=defaults.get("language", DEFAULT_LANGUAGE),
        target_language=defaults.get("target_language"),
        engines=tuple(defaults.get("engines", DEFAULT_ENGINES)),
        timeline_engine=defaults.get("timeline_engine", DEFAULT_TIMELINE_ENGINE),
        max_attempts=defaults.get("max_attempts", DEFAULT_MAX_ATTEMPTS),
        reconcile_model=models.get("reconcile", DEFAULT_RECONCILE_MODEL),
        openai_model=models.get("open", DEFAULT_OPENAI_MODEL),
        groq_model=models.get("groq", DEFAULT_GROQ_MODEL),
        elevenlabs_model=models.get("elab", DEFAULT_ELEVENLABS_MODEL),
        trim_padding=float(trim.get("padding", DEFAULT_TRIM_PADDING)),
        min_savings=float(trim.get("min_savings", DEFAULT_MIN_SAVINGS)),
        skip_intro=float(trim.get("skip_intro", DEFAULT_SKIP_INTRO)),
    )
