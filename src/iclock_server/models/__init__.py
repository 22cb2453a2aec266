"""SQLAlchemy ORM models."""

# Import all models so Base.metadata registers them for create_all().
from iclock_server.models.command import CommandLogEntry as CommandLogEntry
from iclock_server.models.command import CommandQueueDocument as CommandQueueDocument
from iclock_server.models.device import Device as Device
from iclock_server.models.user import User as User
