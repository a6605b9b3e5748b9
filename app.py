"""
Project: Restaurant POS Service (RPOS)

Description:
Main application entry point. Initializes Flask, the database, Socket.IO
and the injectable POS collaborators (data gateway and identity resolver),
then registers the handler blueprint and the supporting routes.
"""

from flask import Flask, request
from werkzeug.security import check_password_hash

from config import Config, get_settings
from envelope import fail, ok
from events import socketio
from gateway import SqlAlchemyGateway
from handlers import bp as handlers_bp, resolve_caller, services
from identity import TokenIdentityResolver, bearer_token
from logs import configure_logging, get_logger
from models import User, db

logger = get_logger(__name__)


def create_app(testing: bool = False, gateway=None, identity=None, settings=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    app.config.from_mapping((settings or get_settings()).flask_config())

    if testing:
        app.config["TESTING"] = True
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
        app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    configure_logging(app.config["LOG_LEVEL"])
    db.init_app(app)
    socketio.init_app(app, async_mode=app.config["SOCKETIO_ASYNC_MODE"])

    tokens = TokenIdentityResolver(
        app.config["SECRET_KEY"], app.config["TOKEN_MAX_AGE"], salt=app.config["TOKEN_SALT"]
    )
    app.extensions["pos"] = {
        "gateway": gateway or SqlAlchemyGateway(db),
        "identity": identity or tokens,
        "tokens": tokens,
    }

    app.register_blueprint(handlers_bp)

    # --------- core routes ---------
    @app.post("/login")
    def login():
        data = request.get_json(silent=True) or {}
        username = (data.get("username") or "").strip()
        password = data.get("password") or ""
        user = User.query.filter_by(username=username).first()
        if user and check_password_hash(user.password_hash, password):
            token = app.extensions["pos"]["tokens"].issue(user.id)
            logger.info("user %s logged in", user.id)
            return ok({"token": token, "user_id": user.id, "role": user.role})
        logger.warning("failed login for %r", username)
        return fail(401, "Invalid credentials")

    # ---------- TABLES ----------
    @app.get("/api/tables")
    def list_tables():
        token = bearer_token(request.headers.get("Authorization"))
        if token is None:
            return fail(401, "Unauthorized")
        gw, resolver = services()
        caller = resolve_caller(gw, resolver, token)
        return ok([
            {
                "id": t.id,
                "label": t.label,
                "capacity": t.capacity,
                "status": t.status,
                "order_id": t.open_order_id,
            }
            for t in gw.list_tables(caller.restaurant_id)
        ])

    # ---------- HEALTH ----------
    @app.get("/api/health")
    def health():
        return ok({"status": "ok"})

    return app


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()
    socketio.run(app, host="0.0.0.0", port=5013, debug=True)
