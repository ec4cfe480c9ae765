from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'School Communications'
    app_env: str = 'local'
    app_base_url: str = 'http://127.0.0.1:8000'
    database_url: str = 'sqlite:///./schoolcomms.db'
    db_slow_query_ms: int = 100
    metrics_slow_ms: int = 200
    feed_limit: int = 50
    inbox_limit: int = 20
    notice_feed_limit: int = 10
    student_update_poll_seconds: float = 30.0
    presence_channel_name: str = 'online-users'
    message_max_length: int = 10000
    subject_max_length: int = 200
    badge_cap: int = 9
    unknown_admin_name: str = 'Unknown Admin'
    unknown_staff_name: str = 'Unknown Staff'
    typing_timeout_seconds: float = 3.0
    typing_stale_seconds: float = 5.0


settings = Settings()
