"""ORM Models — SQLAlchemy declarative models for all persisted entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Membership is the aggregate this service owns; profiles, assets, activities,
      segments and requirements are read-only from its perspective

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from crewgate.models.profile import Profile  # noqa: F401
from crewgate.models.asset import Asset  # noqa: F401
from crewgate.models.activity import Activity  # noqa: F401
from crewgate.models.segment import Segment  # noqa: F401
from crewgate.models.requirement import ActivityRequirement  # noqa: F401
from crewgate.models.membership import Membership  # noqa: F401
from crewgate.models.membership_answer import MembershipAnswer  # noqa: F401
from crewgate.models.document import Document  # noqa: F401
from crewgate.models.notification import Notification  # noqa: F401
