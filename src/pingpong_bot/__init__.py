"""
PingPong bot package.

Answers every Ping event emitted by a contract with a Pong confirmation
transaction, surviving restarts without losing or repeating responses.
"""

from .bot import PingPongBot
from .config import BotConfig
from .event_processor import EventProcessor
from .models import Checkpoint, PingEvent

__all__ = ["BotConfig", "PingPongBot", "EventProcessor", "PingEvent", "Checkpoint"]
__version__ = "0.1.0"
