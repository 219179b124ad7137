import os
from pathlib import Path


# Load env vars from local files without overriding existing variables
def _load_env_from_files() -> None:
    """Load key=value lines from optional local files into os.environ if not already set.
    Priority: repo/.env, ENV_FILE path, data/secrets.env.
    Comments (#) and blank lines are ignored. Does not override existing env vars.
    """
    repo_root = Path(__file__).resolve().parents[1]
    candidates = [
        repo_root / ".env",
        Path(os.getenv("ENV_FILE", "")) if os.getenv("ENV_FILE") else None,
        repo_root / "data" / "secrets.env",
    ]
    for p in [c for c in candidates if c]:
        try:
            if p.exists() and p.is_file():
                for line in p.read_text().splitlines():
                    line = line.strip()
                    if not line or line.startswith("#"):
                        continue
                    if "=" not in line:
                        continue
                    k, v = line.split("=", 1)
                    k = k.strip()
                    v = v.strip().strip('"').strip("'")
                    if k and (k not in os.environ):
                        os.environ[k] = v
        except OSError:
            # Best-effort; an unreadable file is skipped
            pass


# Load local env before reading values into Settings
_load_env_from_files()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class Settings:
    # Networking
    APP_HOST: str = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))

    # Paths
    _REPO_ROOT: Path = Path(__file__).resolve().parents[1] # Anchor default to repo root: <repo>/data
    DATA_DIR: Path = Path(os.getenv("DATA_DIR", str(_REPO_ROOT / "data")))
    LOGS_DIR: Path = DATA_DIR / "logs"

    # Model API (OpenAI-compatible chat completions)
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4-turbo")
    OPENAI_TIMEOUT: int = int(os.getenv("OPENAI_TIMEOUT", "120")) # measured in seconds

    # Reply budgets for the two calls. The extraction reply is two short lines;
    # the comparison reply carries one block per lab.
    EXTRACT_MAX_TOKENS: int = int(os.getenv("EXTRACT_MAX_TOKENS", "150"))
    COMPARE_MAX_TOKENS: int = int(os.getenv("COMPARE_MAX_TOKENS", "1000"))
    # Image detail hint per call: "auto", "low" or "high"
    EXTRACT_IMAGE_DETAIL: str = os.getenv("EXTRACT_IMAGE_DETAIL", "auto")
    COMPARE_IMAGE_DETAIL: str = os.getenv("COMPARE_IMAGE_DETAIL", "high")

    # Hosted lab table (Supabase REST)
    SUPABASE_URL: str | None = os.getenv("SUPABASE_URL")
    SUPABASE_KEY: str | None = os.getenv("SUPABASE_KEY")
    SUPABASE_TABLE: str = os.getenv("SUPABASE_TABLE", "labconnect")
    SUPABASE_TIMEOUT: int = int(os.getenv("SUPABASE_TIMEOUT", "20"))

    # Resume image normalization before upload to the model.
    # Longest side is capped at IMAGE_MAX_SIDE pixels (0 = keep original size).
    IMAGE_MAX_SIDE: int = int(os.getenv("IMAGE_MAX_SIDE", "2048"))
    IMAGE_JPEG_QUALITY: int = int(os.getenv("IMAGE_JPEG_QUALITY", "90"))

    # Debugging
    DEBUG: bool = _env_bool("DEBUG", "false")


settings = Settings()

# Ensure directories exist at import time
for p in (settings.DATA_DIR, settings.LOGS_DIR):
    p.mkdir(parents=True, exist_ok=True)
