import pytest

from scoutlete.exceptions import NotFoundError
from scoutlete.models.conversation_participant import ParticipantRole
from scoutlete.models.team_membership import MemberStatus, TeamMembership, TeamRole
from scoutlete.services.membership import entitled_role, is_captain, is_entitled, team_participant_roles


@pytest.mark.asyncio
async def test_creator_without_captain_row_is_entitled(db, make_user, make_team):
    captain = await make_user("Captain")
    team = await make_team(captain, captain_row=False)

    assert await is_entitled(db, captain.id, team.id) is True
    assert await is_captain(db, captain.id, team) is True
    assert await entitled_role(db, team, captain.id) == ParticipantRole.admin


@pytest.mark.asyncio
async def test_active_member_entitled_outsider_not(db, make_user, make_team):
    captain, member, outsider = await make_user(), await make_user(), await make_user()
    team = await make_team(captain, members=[member])

    assert await is_entitled(db, member.id, team.id) is True
    assert await is_entitled(db, outsider.id, team.id) is False
    assert await is_captain(db, member.id, team) is False


@pytest.mark.asyncio
async def test_pending_membership_is_not_entitled(db, make_user, make_team):
    captain, pending = await make_user(), await make_user()
    team = await make_team(captain)
    db.add(TeamMembership(team_id=team.id, user_id=pending.id, role=TeamRole.member, status=MemberStatus.pending))
    await db.commit()

    assert await is_entitled(db, pending.id, team.id) is False


@pytest.mark.asyncio
async def test_captain_membership_row_grants_admin(db, make_user, make_team):
    creator, co_captain = await make_user(), await make_user()
    team = await make_team(creator)
    db.add(TeamMembership(team_id=team.id, user_id=co_captain.id, role=TeamRole.captain, status=MemberStatus.active))
    await db.commit()

    assert await is_captain(db, co_captain.id, team) is True
    roles = await team_participant_roles(db, team)
    assert roles == {creator.id: ParticipantRole.admin, co_captain.id: ParticipantRole.admin}


@pytest.mark.asyncio
async def test_unknown_team_raises_not_found(db, make_user):
    user = await make_user()
    with pytest.raises(NotFoundError):
        await is_entitled(db, user.id, 4242)
