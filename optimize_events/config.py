"""Optimize events configuration."""
from pydantic_settings import BaseSettings

class OptimizeEventsConfig(BaseSettings):
    """Optimize events configuration."""
    solution_name: str = "optimize"
    follow_interval_seconds: float = 60.0
    max_count: int = 1000
    log_level: str = "WARNING"
    json_logs: bool = False
    output: str = "table"  # table, detail, json

    class Config:
        env_file = ".env"
        env_prefix = "OPTIMIZE_EVENTS_"
