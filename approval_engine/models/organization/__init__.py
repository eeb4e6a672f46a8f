from .organization import Organization
from .team_member import TeamMember

__all__ = ["Organization", "TeamMember"]
