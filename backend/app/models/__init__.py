from app.models.user import User
from app.models.essay import Essay
from app.models.correction import Correction

__all__ = ["User", "Essay", "Correction"]
