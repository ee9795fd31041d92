"""
Core dependencies for route protection and service wiring
"""

from fastapi import Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.database.supabase_client import get_supabase, get_service_supabase
from app.modules.auth.service import AuthService
from app.modules.groups.leaderboard import LeaderboardService
from app.modules.groups.membership import MembershipService
from app.modules.groups.repository import GroupRepository
from app.modules.groups.service import GroupService
from app.modules.steps.service import StepService
from app.modules.users.service import UserService
from supabase import Client

security = HTTPBearer()


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> str:
    """Extract the authenticated user's id from the JWT bearer token"""
    user_data = auth_service.get_current_user(credentials.credentials)
    return user_data["id"]


def get_group_repository(supabase: Client = Depends(get_service_supabase)) -> GroupRepository:
    """Authorization is decided by the role matrix in the services, so storage uses the service client"""
    return GroupRepository(supabase)


def get_user_service(supabase: Client = Depends(get_service_supabase)) -> UserService:
    return UserService(supabase)


def get_step_service(supabase: Client = Depends(get_service_supabase)) -> StepService:
    return StepService(supabase)


def get_group_service(repository: GroupRepository = Depends(get_group_repository)) -> GroupService:
    return GroupService(repository)


def get_membership_service(
    repository: GroupRepository = Depends(get_group_repository),
    groups: GroupService = Depends(get_group_service),
    users: UserService = Depends(get_user_service)
) -> MembershipService:
    return MembershipService(repository, groups, users)


def get_leaderboard_service(
    repository: GroupRepository = Depends(get_group_repository),
    groups: GroupService = Depends(get_group_service),
    steps: StepService = Depends(get_step_service),
    users: UserService = Depends(get_user_service)
) -> LeaderboardService:
    return LeaderboardService(repository, groups, steps, users)
