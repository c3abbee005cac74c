"""Domain modules package."""

from app.modules.audit import models as audit_models  # noqa: F401
from app.modules.availability import models as availability_models  # noqa: F401
from app.modules.booking import models as booking_models  # noqa: F401
from app.modules.identity import models as identity_models  # noqa: F401
from app.modules.mentors import models as mentors_models  # noqa: F401
