import logging
import os

from flask import Flask
from flask_pymongo import PyMongo

from bountyexpo.backend.config.settings import Settings

app = Flask(__name__)
settings = Settings.from_env()

# MongoDB config
app.config["MONGO_URI"] = settings.mongo_uri
# Signs the session cookie that identifies the caller on /session endpoints
app.secret_key = settings.secret_key
mongo = PyMongo(app)

# Import and register blueprints after mongo is initialized
from bountyexpo.backend.api.bounty_request_controller import bp as bounty_request_controller_bp  # noqa: E402
from bountyexpo.backend.api.cache_controller import bp as cache_controller_bp  # noqa: E402
from bountyexpo.backend.api.profile_controller import bp as profile_controller_bp  # noqa: E402

app.register_blueprint(bounty_request_controller_bp)
app.register_blueprint(profile_controller_bp)
app.register_blueprint(cache_controller_bp)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 8000)), debug=False)
