from dotenv import load_dotenv
import os
from sqlalchemy.engine import URL


load_dotenv()

class Settings:
    DB_HOST = os.getenv("POSTGRES_HOST")
    DB_PORT = int(os.getenv("POSTGRES_PORT", 5432))
    DB_NAME = os.getenv("POSTGRES_DB")
    DB_USER = os.getenv("POSTGRES_USER")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD")

    # Full override, e.g. sqlite:// for local runs
    DATABASE_URL = os.getenv("DATABASE_URL")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    NO_DATA_VALUES = os.getenv("NO_DATA_VALUES", "-9999,-9999.0,-999,NaN")
    DEFAULT_LOCALE = os.getenv("DEFAULT_LOCALE", "en")
    DEFAULT_TIMESPAN = os.getenv("DEFAULT_TIMESPAN", "P1D")
    DEFAULT_LIMIT = int(os.getenv("DEFAULT_LIMIT", 100))
    REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", 0))

    @property
    def database_url(self):
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return URL.create(
            drivername="postgresql+psycopg2",
            username=self.DB_USER,
            password=self.DB_PASSWORD,
            host=self.DB_HOST,
            port=self.DB_PORT,
            database=self.DB_NAME,
        )

    @property
    def no_data_values(self) -> list[str]:
        return [v.strip() for v in self.NO_DATA_VALUES.split(",") if v.strip()]

settings = Settings()
