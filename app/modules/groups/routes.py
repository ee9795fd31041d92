from fastapi import APIRouter, Depends
from app.modules.groups.schemas import (
    GroupCreate, GroupUpdate, GroupResponse, GroupListResponse, GroupSearchResponse,
    JoinGroupRequest, JoinByCodeRequest, InviteMemberRequest, UpdateMemberRoleRequest,
    GroupMemberResponse, LeaderboardResponse
)
from app.modules.groups.service import GroupService
from app.modules.groups.membership import MembershipService
from app.modules.groups.leaderboard import LeaderboardService
from app.core.dependencies import (
    get_current_user_id, get_group_service, get_membership_service, get_leaderboard_service
)
from typing import List, Optional

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("", response_model=GroupResponse, status_code=201)
async def create_group(
    group_data: GroupCreate,
    user_id: str = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Create a new group with the current user as owner"""
    return service.create_group(user_id, group_data)


@router.get("", response_model=GroupListResponse)
async def list_my_groups(
    user_id: str = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """List groups the current user is a member of"""
    return service.list_user_groups(user_id)


@router.get("/search", response_model=List[GroupSearchResponse])
async def search_public_groups(
    query: str,
    limit: Optional[int] = None,
    user_id: str = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Search public groups by name"""
    return service.search_public_groups(query, limit)


@router.post("/join", response_model=GroupResponse)
async def join_by_code(
    request: JoinByCodeRequest,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """Join the group a join code belongs to"""
    return service.join_by_code(user_id, request.code)


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Get group by ID (members only)"""
    return service.get_group(user_id, group_id)


@router.put("/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: str,
    group_data: GroupUpdate,
    user_id: str = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Update group settings (owner or admin)"""
    return service.update_group(user_id, group_id, group_data)


@router.delete("/{group_id}", status_code=204)
async def delete_group(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Delete group (owner only)"""
    service.delete_group(user_id, group_id)
    return None


@router.post("/{group_id}/join", response_model=GroupResponse)
async def join_group(
    group_id: str,
    request: Optional[JoinGroupRequest] = None,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """Join a public group, or a private group with its join code"""
    join_code = request.join_code if request else None
    return service.join(user_id, group_id, join_code)


@router.post("/{group_id}/leave", status_code=204)
async def leave_group(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """Leave a group"""
    service.leave(user_id, group_id)
    return None


@router.post("/{group_id}/join-code", response_model=GroupResponse)
async def regenerate_join_code(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    service: GroupService = Depends(get_group_service)
):
    """Regenerate a private group's join code (owner or admin)"""
    return service.regenerate_join_code(user_id, group_id)


@router.get("/{group_id}/members", response_model=List[GroupMemberResponse])
async def list_members(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """List all members of a group (members only)"""
    return service.list_members(user_id, group_id)


@router.post("/{group_id}/members", response_model=GroupMemberResponse, status_code=201)
async def invite_member(
    group_id: str,
    invite: InviteMemberRequest,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """Add a user to the group (owner or admin)"""
    return service.invite_member(user_id, group_id, invite)


@router.delete("/{group_id}/members/{target_user_id}", status_code=204)
async def remove_member(
    group_id: str,
    target_user_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """Remove a member from the group"""
    service.remove_member(user_id, group_id, target_user_id)
    return None


@router.put("/{group_id}/members/{target_user_id}/role", response_model=GroupMemberResponse)
async def update_member_role(
    group_id: str,
    target_user_id: str,
    request: UpdateMemberRoleRequest,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """Promote a member to admin or demote an admin (owner only)"""
    return service.update_member_role(user_id, group_id, target_user_id, request.role)


@router.post("/{group_id}/members/{target_user_id}/approve", response_model=GroupMemberResponse)
async def approve_member(
    group_id: str,
    target_user_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MembershipService = Depends(get_membership_service)
):
    """Approve a member (owner or admin)"""
    return service.approve_member(user_id, group_id, target_user_id)


@router.get("/{group_id}/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    """Leaderboard for the group's current competition period"""
    return service.get_leaderboard(user_id, group_id)
