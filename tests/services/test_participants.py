import pytest
from sqlalchemy import delete, func, select

from scoutlete.exceptions import ForbiddenError
from scoutlete.models.conversation import ConversationKind
from scoutlete.models.conversation_participant import ConversationParticipant, ParticipantRole
from scoutlete.models.team_membership import TeamMembership
from scoutlete.services import conversations, participants
from scoutlete.services.participants import (
    ensure_participant,
    participant_ids,
    prune_stale_participants,
    sync_team_participants,
)


async def _rows_for(db, conversation_id, user_id):
    return (await db.execute(
        select(func.count()).select_from(ConversationParticipant).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
        )
    )).scalar()


@pytest.mark.asyncio
async def test_member_missing_row_is_auto_joined_once(db, make_user, make_team):
    captain, member = await make_user(), await make_user()
    team = await make_team(captain)
    chat, _ = await conversations.get_or_create_team_conversation(db, team.id, ConversationKind.chat)

    # Joined after the conversation was seeded.
    db.add(TeamMembership(team_id=team.id, user_id=member.id))
    await db.commit()

    first = await ensure_participant(db, chat, member.id)
    second = await ensure_participant(db, chat, member.id)

    assert first.id == second.id
    assert first.role == ParticipantRole.member
    assert await _rows_for(db, chat.id, member.id) == 1


@pytest.mark.asyncio
async def test_creator_without_captain_row_auto_joins_as_admin(db, make_user, make_team):
    captain = await make_user()
    team = await make_team(captain, captain_row=False)
    chat, _ = await conversations.get_or_create_team_conversation(db, team.id, ConversationKind.chat)
    await db.execute(delete(ConversationParticipant))
    await db.commit()

    participant = await ensure_participant(db, chat, captain.id)
    assert participant.role == ParticipantRole.admin


@pytest.mark.asyncio
async def test_outsider_is_denied_and_nothing_written(db, make_user, make_team):
    captain, outsider = await make_user(), await make_user()
    team = await make_team(captain)
    chat, _ = await conversations.get_or_create_team_conversation(db, team.id, ConversationKind.chat)

    with pytest.raises(ForbiddenError):
        await ensure_participant(db, chat, outsider.id)
    assert await _rows_for(db, chat.id, outsider.id) == 0


@pytest.mark.asyncio
async def test_direct_conversation_never_auto_joins(db, make_user):
    a, b, c = await make_user(), await make_user(), await make_user()
    direct, _ = await conversations.get_or_create_direct(db, a.id, b.id)

    assert (await ensure_participant(db, direct, a.id)).user_id == a.id
    with pytest.raises(ForbiddenError):
        await ensure_participant(db, direct, c.id)


@pytest.mark.asyncio
async def test_sync_and_prune_follow_team_membership(db, make_user, make_team):
    captain, stays, leaves, late = await make_user(), await make_user(), await make_user(), await make_user()
    team = await make_team(captain, members=[stays, leaves])
    chat, _ = await conversations.get_or_create_team_conversation(db, team.id, ConversationKind.chat)

    await db.execute(delete(TeamMembership).where(TeamMembership.user_id == leaves.id))
    db.add(TeamMembership(team_id=team.id, user_id=late.id))
    await db.commit()

    assert await sync_team_participants(db, chat) == 1
    assert await sync_team_participants(db, chat) == 0
    assert await prune_stale_participants(db, chat) == 1
    assert await participant_ids(db, chat.id) == {captain.id, stays.id, late.id}


@pytest.mark.asyncio
async def test_concurrent_auto_join_recovers_the_winning_row(db, session_factory, make_user, make_team, monkeypatch):
    captain, member = await make_user(), await make_user()
    team = await make_team(captain)
    chat, _ = await conversations.get_or_create_team_conversation(db, team.id, ConversationKind.chat)
    db.add(TeamMembership(team_id=team.id, user_id=member.id))
    await db.commit()
    chat_id, member_id = chat.id, member.id

    real_lookup = participants.get_participant
    calls = []

    async def lookup_then_lose_race(session, conversation_id, user_id):
        calls.append(user_id)
        if len(calls) == 1:
            # Another request inserts the row right after our read.
            async with session_factory() as other:
                other.add(ConversationParticipant(
                    conversation_id=conversation_id, user_id=user_id, role=ParticipantRole.member,
                ))
                await other.commit()
            return None
        return await real_lookup(session, conversation_id, user_id)

    monkeypatch.setattr(participants, "get_participant", lookup_then_lose_race)

    row = await participants.ensure_participant(db, chat, member_id)

    assert row.user_id == member_id
    assert row.conversation_id == chat_id
    assert len(calls) == 2
    assert await _rows_for(db, chat_id, member_id) == 1
