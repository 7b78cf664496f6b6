from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    ENV: str = "dev"                # "dev" / "staging" / "prod"
    SERVICE_NAME: str = "vexa"
    DATABASE_URL: str = "sqlite+aiosqlite:///./vexa.db"
    DB_ECHO: bool = False
    DB_CREATE_ALL: bool = True      # create tables on startup (no migrations run here)
    DEFAULT_CURRENCY: str = "EUR"
    MAX_ITEM_QTY: int = 1000        # upper bound for a single cart line

    class Config:
        env_file = ".env"
        extra="ignore"

config_settings = Settings()
