import os

from app import app
from config_loader import get_config

if __name__ == "__main__":
    server = get_config().get("server", {}) or {}
    host = os.getenv("HOST") or server.get("host", "0.0.0.0")
    port = int(os.getenv("PORT") or server.get("port", 4000))
    debug = os.getenv("FLASK_DEBUG", "false").lower() in ("1", "true", "yes", "y")
    app.run(host=host, port=port, debug=debug)
