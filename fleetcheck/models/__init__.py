# fleetcheck/models/__init__.py
from fleetcheck.db.base import Base  # noqa: F401

from . import machine             # noqa: F401
from . import checklist_template  # noqa: F401
from . import checklist_response  # noqa: F401
from . import non_conformity      # noqa: F401
from . import nc_audit            # noqa: F401
from . import kpi_cache           # noqa: F401
