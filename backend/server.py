import os
import uvicorn

if __name__ == "__main__":
    # 設定の読み込みと環境変数のセットアップ
    # ロガーが ROADIE_LOG_DIR を参照するため、アプリのインポートより先に行う
    from config import settings
    settings.setup_environment()

    # アプリケーションデータディレクトリの確保
    os.makedirs(settings.USER_DATA_DIR, exist_ok=True)

    from main import app

    # ポート番号を環境変数から取得（デフォルトは開発用の8001）
    port = int(os.environ.get("ROADIE_PORT", settings.ROADIE_PORT))

    print(f"Starting Roadie Backend Server on port {port}...")
    print(f"User Data Directory: {settings.USER_DATA_DIR}")
    uvicorn.run(app, host="127.0.0.1", port=port, reload=False, workers=1)
