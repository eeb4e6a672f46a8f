from .team_member_repository import TeamMemberRepository, OrganizationRepository

__all__ = ["TeamMemberRepository", "OrganizationRepository"]
