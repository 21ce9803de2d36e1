from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./data/db.sqlite3"
    api_key: str = ""  # empty = no auth check (local dev)

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = ""
    judge_timeout_seconds: float = 20.0
    # False = judge failures surface as 503 and nothing is stored
    record_failed_judgements: bool = True

    data_dir: str = "./data"
    storage_backend: str = "local"  # "local" or "s3"
    s3_bucket: str = ""
    s3_region: str = ""
    s3_prefix: str = ""
    max_photo_size_bytes: int = 10 * 1024 * 1024  # 10MB

    session_ttl_days: int = 7
    session_cookie_name: str = "auth_token"
    session_cookie_secure: bool = False
    # Only used to seed User.is_admin at startup
    admin_usernames: list[str] = []

    reaction_sample_size: int = 3
    reaction_detail_limit: int = 25

    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
