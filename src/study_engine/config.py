from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_DB_PATH = ".data/study.sqlite3"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    環境変数から読み込まれる学習エンジンの設定クラス。
    - study_db_path: 回答履歴とカードを保存する SQLite DB
    - due_list_limit / history_limit: 一覧取得の既定件数
    - due_most_overdue_first: 復習カードの並び順（製品判断用スイッチ）
    """

    environment: str = Field(
        default="development",
        description="Runtime environment / 実行環境",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level / ログレベル",
    )

    # --- データ永続化設定 ---
    study_db_path: str = Field(
        default=DEFAULT_DB_PATH,
        description="Path to SQLite database for attempts and cards / 回答履歴・カード用SQLite DBパス",
    )

    # --- 一覧取得の既定値 ---
    due_list_limit: int = Field(
        default=20,
        ge=1,
        description="Default number of due cards to return / 復習対象カードの既定件数",
    )
    history_limit: int = Field(
        default=50,
        ge=1,
        description="Default number of attempts in history / 履歴表示の既定件数",
    )
    weakness_top_n: int = Field(
        default=10,
        ge=1,
        description="Number of worst items/tags in weakness analytics / 苦手分析の上位件数",
    )
    due_most_overdue_first: bool = Field(
        default=False,
        description=(
            "Return the most overdue cards first instead of the least overdue / "
            "期限切れの長いカードから返す（既定は期限切れの短い順）"
        ),
    )

    # Pydantic v2 settings config
    # - env_file: .env を読み込む
    # - extra: .env に存在する未使用キーを無視
    # - case_sensitive: 環境変数キーの大小文字を区別しない
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )


settings = Settings()
