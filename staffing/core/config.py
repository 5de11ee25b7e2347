"""Configuration settings for the application.

A small Settings container read by other components. Values default from
the environment so deployments can point the service at another database.
"""
import os
from dataclasses import dataclass, field


@dataclass
class Settings:
    DB_PATH: str = field(default_factory=lambda: os.getenv("STAFFING_DB_PATH", "data/staffing.db"))
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("STAFFING_LOG_LEVEL", "INFO"))


settings = Settings()
