import os
from dataclasses import dataclass, field
from typing import List


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "blog"
    jwt_secret: str = "supersecretkey"
    jwt_alg: str = "HS256"
    jwt_expires_min: int = 60 * 24 * 7  # 7 days
    request_timeout_ms: int = 10000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    enforce_ownership: bool = False
    log_level: str = "INFO"
    bcrypt_rounds: int = 12
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
            database_name=os.getenv("DATABASE_NAME", "blog"),
            jwt_secret=os.getenv("JWT_SECRET", "supersecretkey"),
            jwt_expires_min=int(os.getenv("JWT_EXPIRES_MIN", 60 * 24 * 7)),
            request_timeout_ms=int(os.getenv("REQUEST_TIMEOUT_MS", 10000)),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            enforce_ownership=_env_bool("ENFORCE_OWNERSHIP"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", 12)),
            port=int(os.getenv("PORT", 8000)),
        )
