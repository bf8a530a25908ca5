import os
from dataclasses import dataclass
from typing import List, Optional
import pathlib
import yaml


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str]
    openai_model: str
    openai_image_model: str
    openai_max_tokens: int
    openai_timeout_s: float
    openai_retry_attempts: int
    max_image_rounds: int
    cors_allow_origins: List[str]
    public_base_url: Optional[str]
    storage_dir: pathlib.Path
    publish_ttl_s: int
    log_level: str
    prompts: dict


def load_settings() -> Settings:
    cors_env = os.getenv("CORS_ALLOW_ORIGINS", "*")
    cors = [o.strip() for o in cors_env.split(",") if o.strip()] or ["*"]
    base_url = (os.getenv("PUBLIC_BASE_URL") or "").strip().rstrip("/") or None
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
        openai_image_model=os.getenv("OPENAI_IMAGE_MODEL", "gpt-image-1"),
        openai_max_tokens=_env_int("OPENAI_MAX_TOKENS", 16000),
        openai_timeout_s=_env_float("OPENAI_TIMEOUT_SECONDS", 120.0),
        openai_retry_attempts=max(1, _env_int("OPENAI_RETRY_ATTEMPTS", 2)),
        max_image_rounds=max(1, _env_int("MAX_IMAGE_ROUNDS", 3)),
        cors_allow_origins=cors,
        public_base_url=base_url,
        storage_dir=pathlib.Path(os.getenv("STORAGE_DIR", "var")).resolve(),
        publish_ttl_s=_env_int("PUBLISH_TTL_SECONDS", 60 * 60 * 24 * 30),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        prompts=_load_prompts(),
    )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _load_prompts() -> dict:
    # Look for prompts.yml in backend root (parent of restyler/)
    backend_root = pathlib.Path(__file__).resolve().parents[1]
    prompts_path = backend_root / "prompts.yml"
    try:
        with open(prompts_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    if not isinstance(data, dict):
        return {}
    return data


# Opening line of the system instruction, overridable via prompts.yml
DEFAULT_PREAMBLE = "You are an expert frontend developer who specialises in building beautiful, custom HTML forms."
