from conduct_log.db.base import Base  # noqa: F401

from . import reference       # noqa: F401
from . import user            # noqa: F401
from . import incident        # noqa: F401
from . import status_history  # noqa: F401
from . import comment         # noqa: F401
from . import audit_log       # noqa: F401
