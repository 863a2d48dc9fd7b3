from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'Campus Counselling'
    app_env: str = 'local'
    app_timezone: str = 'Asia/Kolkata'
    app_base_url: str = 'http://127.0.0.1:5000'
    host: str = '0.0.0.0'
    port: int = 5000
    database_url: str = 'sqlite:///./counselling.db'
    auth_secret: str = 'change-me'
    auth_token_expiry_hours: int = 24 * 7
    rate_limit_window_seconds: int = 15 * 60
    rate_limit_max_requests: int = 100
    cors_origins: list[str] = ['*']
    db_slow_query_ms: int = 100
    request_slow_ms: int = 200


settings = Settings()
