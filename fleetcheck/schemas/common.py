# fleetcheck/schemas/common.py
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator

from fleetcheck.core.timeutils import to_naive_utc

# Every timestamp crossing the API boundary is normalised to naive UTC.
UtcDateTime = Annotated[datetime, AfterValidator(to_naive_utc)]
