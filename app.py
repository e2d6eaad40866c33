from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
import logging
import os

# === Service Routes ===
from routes.images import images_bp
from services.errors import ImageOperationError

SERVICE_NAME = "sharp-api"
MAX_UPLOAD_BYTES = 50 * 1024 * 1024

# ✅ Setup logging
logging.basicConfig(level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO))

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_BYTES
CORS(app)

# === Global Health and Error Routes ===
@app.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "service": SERVICE_NAME}), 200

@app.errorhandler(ImageOperationError)
def handle_operation_error(e):
    # Missing uploads and library failures are reported the same way
    return jsonify({"error": e.message}), 500

@app.errorhandler(HTTPException)
def handle_http_error(e):
    return jsonify({"error": e.description}), e.code

@app.errorhandler(Exception)
def handle_error(e):
    logging.error(f"Unhandled exception: {e}")
    return jsonify({"error": str(e)}), 500

# === Register Image Operation Blueprint ===
app.register_blueprint(images_bp)


# === Launch ===
if __name__ == '__main__':
    port = int(os.environ.get("PORT", 3000))
    logging.info(f"Sharp API running on port {port}")
    app.run(host='0.0.0.0', port=port)
