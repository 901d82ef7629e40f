import logging
import os
from datetime import datetime, timezone

from dotenv import load_dotenv
from flask import Flask, current_app, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from cwa_forecast import ForecastError, fetch_and_process_forecast, setup_logging


def create_app(api_key=None):
    """Builds the Flask app; the CWA credential is fixed at construction."""
    app = Flask(__name__)
    app.config["CWA_API_KEY"] = api_key
    app.json.ensure_ascii = False
    CORS(app, send_wildcard=True)

    @app.route("/")
    def home():
        return jsonify({
            "message": "歡迎使用 CWA 天氣預報 API",
            "endpoints": {
                "taiwan36h": "/api/weather/taiwan-36h",
                "health": "/api/health",
            },
        })

    @app.route("/api/health")
    def health():
        timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        return jsonify({
            "status": "OK",
            "timestamp": timestamp.replace("+00:00", "Z"),
        })

    @app.route("/api/weather/taiwan-36h")
    def taiwan_36h_weather():
        try:
            cities = fetch_and_process_forecast(current_app.config["CWA_API_KEY"])
        except ForecastError as e:
            logging.error(f"取得天氣資料失敗: {e.message}")
            return jsonify(e.to_dict()), e.status_code
        return jsonify({"success": True, "data": cities})

    # unmatched method on a known path answers like an unknown path
    @app.errorhandler(404)
    @app.errorhandler(405)
    def not_found(e):
        return jsonify({"error": "找不到此路徑"}), 404

    @app.errorhandler(Exception)
    def server_error(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.name, "message": e.description}), e.code
        logging.exception("Unhandled error while serving request")
        return jsonify({"error": "伺服器錯誤", "message": str(e)}), 500

    return app


load_dotenv()
app = create_app(os.environ.get("CWA_API_KEY"))

if __name__ == "__main__":
    setup_logging()
    port = int(os.environ.get("PORT", 3000))
    logging.info(f"伺服器運行已運作，PORT: {port}")
    logging.info(f"環境: {os.environ.get('APP_ENV', 'development')}")
    app.run(host="0.0.0.0", port=port)
