"""Initialize database tables."""
import logging

from sqlmodel import SQLModel

from alumnet.db.config import engine
from alumnet.models.user import User  # noqa: F401
from alumnet.models.connection import Connection, ConnectionRequest  # noqa: F401
from alumnet.models.conversation import Conversation, ConversationUnread  # noqa: F401
from alumnet.models.message import Message, MessageRead  # noqa: F401

logger = logging.getLogger(__name__)


def init_db():
    """Create all tables in the database."""
    logger.info("[DB INIT] Creating all tables...")
    SQLModel.metadata.create_all(engine)
    logger.info("[DB INIT] Tables created successfully.")


def drop_db():
    """Drop every table. Only used by the test-suite and local resets."""
    SQLModel.metadata.drop_all(engine)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
