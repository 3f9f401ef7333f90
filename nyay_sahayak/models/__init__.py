# Import models here so Alembic can discover them via metadata
from .base import Base  # noqa: F401
from .application import Application  # noqa: F401
from .document import ApplicationDocument  # noqa: F401
from .audit_log import AuditLog  # noqa: F401
