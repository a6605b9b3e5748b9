"""
Live updates for floor screens: every successful mutation is broadcast on
the Socket.IO "event" channel as {"type": ..., ...}.
"""
from flask_socketio import SocketIO

from logs import get_logger

logger = get_logger(__name__)

# Create SocketIO once (no app yet), then bind inside the factory
socketio = SocketIO(cors_allowed_origins="*")


def publish(event_type, **payload):
    try:
        socketio.emit("event", {"type": event_type, **payload})
    except Exception:
        # called after commit: log and carry on
        logger.exception("failed to broadcast %s", event_type)
