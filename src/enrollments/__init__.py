"""Learning path enrollment module.

Provides:
- Enrollment with one ACTIVE enrollment per user and path
- Drop (single and bulk)
- Path progress recompute and completion with certificate
- Progress summary
"""

from .models import ENROLLMENTS_TABLES_CQL, Enrollment, EnrollmentStatus


__all__ = [
    "ENROLLMENTS_TABLES_CQL",
    "Enrollment",
    "EnrollmentStatus",
]
