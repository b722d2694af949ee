from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    APP_NAME: str = "Certificate Authority Manager"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Store (base directory holding one folder per CA common name)
    CAPATH: str = "."

    # Certificate defaults
    DEFAULT_KEY_SIZE: int = 2048
    DEFAULT_VALIDITY_DAYS: int = 397
    MAX_VALIDITY_DAYS: int = 825
    CRL_VALIDITY_DAYS: int = 7

    # Bootstrap root CA (Optional)
    BOOTSTRAP_CA_COMMON_NAME: Optional[str] = None
    BOOTSTRAP_CA_ORGANIZATION: Optional[str] = None
    BOOTSTRAP_CA_ORGANIZATIONAL_UNIT: Optional[str] = None
    BOOTSTRAP_CA_COUNTRY: Optional[str] = None
    BOOTSTRAP_CA_LOCALITY: Optional[str] = None
    BOOTSTRAP_CA_PROVINCE: Optional[str] = None
    BOOTSTRAP_CA_VALID_DAYS: int = 0


settings = Settings()
