import logging

from partyboard.config import Config
from partyboard.server import create_app

logging.basicConfig(level=Config.LOG_LEVEL.upper())

app, socketio = create_app()
