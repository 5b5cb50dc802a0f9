"""
Scoutlete – SQLAlchemy ORM models package.

Imports all model classes so the app can discover them through a single
``from scoutlete.models import *`` import before ``create_all`` runs.
"""

from scoutlete.models.user import User                                          # noqa: F401
from scoutlete.models.team import Team                                          # noqa: F401
from scoutlete.models.team_membership import TeamMembership                     # noqa: F401
from scoutlete.models.conversation import Conversation                          # noqa: F401
from scoutlete.models.conversation_participant import ConversationParticipant   # noqa: F401
from scoutlete.models.message import Message                                    # noqa: F401
from scoutlete.models.notification import Notification                          # noqa: F401
from scoutlete.models.user_connection import UserConnection                     # noqa: F401
