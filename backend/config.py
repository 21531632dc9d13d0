import os
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field
import platformdirs

APP_NAME = "Roadie"
APP_AUTHOR = "RoadieDev"

class Settings(BaseSettings):
    # App Info
    APP_NAME: str = APP_NAME
    APP_AUTHOR: str = APP_AUTHOR
    ENV: str = "prod"

    # Paths
    # デフォルトは platformdirs を使用するが、環境変数 DB_PATH があればそれを優先する
    USER_DATA_DIR: str = Field(default_factory=lambda: platformdirs.user_data_dir(APP_NAME, APP_AUTHOR))
    DB_PATH: str | None = None

    # Network
    ROADIE_PORT: int = 8001
    FRONTEND_PORT: int = 3000
    ALLOWED_ORIGINS: List[str] = Field(default_factory=list)

    # Logging
    ROADIE_LOG_DIR: str | None = None
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    def model_post_init(self, __context):
        # DB_PATHが未設定ならデフォルト値を設定
        if not self.DB_PATH:
            self.DB_PATH = os.path.join(self.USER_DATA_DIR, "roadie.sqlite3")

        # ログディレクトリ
        if not self.ROADIE_LOG_DIR:
            self.ROADIE_LOG_DIR = os.path.join(self.USER_DATA_DIR, "logs")

        if not self.ALLOWED_ORIGINS:
            self.ALLOWED_ORIGINS = [
                f"http://localhost:{self.FRONTEND_PORT}",
                f"http://127.0.0.1:{self.FRONTEND_PORT}",
            ]

    @property
    def DATABASE_URL(self) -> str:
        return f"sqlite:///{self.DB_PATH}"

    def setup_environment(self):
        """ロガーが参照する環境変数を設定する"""
        if self.ROADIE_LOG_DIR:
            os.environ["ROADIE_LOG_DIR"] = self.ROADIE_LOG_DIR
        os.environ["ROADIE_LOG_LEVEL"] = self.LOG_LEVEL

settings = Settings()
