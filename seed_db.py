import asyncio

from scoutlete import models  # noqa: F401
from scoutlete.database import Base, async_session, engine
from scoutlete.models.conversation import ConversationKind
from scoutlete.models.message import MessageType, Priority
from scoutlete.services import conversations, identity, messages, teams


async def async_main():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        # Create athletes
        athletes = []
        for sub, name, email in [
            ("seed_alice", "Alice Sprinter", "alice@example.com"),
            ("seed_bob", "Bob Keeper", "bob@example.com"),
            ("seed_charlie", "Charlie Rower", "charlie@example.com"),
            ("seed_diana", "Diana Coach", "diana@example.com"),
        ]:
            athletes.append(await identity.sync_user(session, {"sub": sub, "name": name, "email": email, "email_verified": True}))
        alice, bob, charlie, diana = (a.id for a in athletes)

        # Alice captains a team, Bob and Charlie join
        team = await teams.create_team(session, alice, "Harbour Harriers", description="Tuesday and Thursday track sessions", max_members=6)
        team_id = team.id
        await teams.join_team(session, team_id, bob)
        await teams.join_team(session, team_id, charlie)

        # Team chat and announcements
        chat, _ = await conversations.get_or_create_team_conversation(session, team_id, ConversationKind.chat, actor_id=alice)
        news, _ = await conversations.get_or_create_team_conversation(session, team_id, ConversationKind.announcement, actor_id=alice)
        await messages.post_message(session, chat.id, bob, "Who's bringing the hurdles?")
        await messages.post_message(session, chat.id, charlie, "I can, see you at six.")
        await messages.post_message(
            session, news.id, alice, "Regional qualifiers moved to Saturday 9am.",
            MessageType.announcement, Priority.high,
        )

        # Diana reaches out to Alice directly
        direct, _ = await conversations.get_or_create_direct(session, diana, alice)
        await messages.post_message(session, direct.id, diana, "Saw your 200m split, want to talk training plans?")

    print("Database seeded with athletes, a team and conversations.")

asyncio.run(async_main())
