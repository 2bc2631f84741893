from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = "sqlite:///./health_analytics.db"
    app_env: str = "dev"
    log_level: str = "INFO"

    metabase_url: str | None = None
    metabase_session: str | None = None
    card_timeout_seconds: float = 30.0
    force_supabase: bool = False

    fallback_tables: str = "blood,blood_long_v"
    source_row_cap: int = 1000
    default_analyte: str = "Cholesterol LDL"
    strict_dates: bool = False

    openai_api_key: str | None = None
    summary_model: str = "gpt-4o-mini"
    summary_max_tokens: int = 440
    summary_temperature: float = 0.6
    summary_timeout_seconds: float = 60.0
    summary_max_payload_chars: int = 12000
    smart_blurb_prompt: str | None = None
    custom_analysis_model: str = "gpt-4"
    custom_analysis_temperature: float = 0.7
    genetic_analysis_max_tokens: int = 400
    gut_health_max_tokens: int = 350

    allowed_origins: str = "http://localhost:3000"

    @property
    def fallback_table_list(self) -> list[str]:
        return [name.strip() for name in self.fallback_tables.split(",") if name.strip()]


settings = Settings()
