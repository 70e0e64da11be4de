import asyncio
import os
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from arena.models import Game, Profile, Team, TeamMember
from arena.routers.auth import pwd_context

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable is required")
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)

engine = create_async_engine(DATABASE_URL, echo=False, pool_pre_ping=True)
Session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

DEMO_PASSWORD = os.getenv("SEED_DEMO_PASSWORD", "Demo!Pass123")


async def main():
    async with Session() as s:
        existing = {x.slug for x in (await s.execute(select(Game))).scalars().all()}
        games = [
            Game(
                id="call-of-duty",
                name="Call of Duty",
                slug="call-of-duty",
                # Empty pool: the veto falls back to the per-mode defaults.
                map_pool=None,
            ),
            Game(
                id="csgo",
                name="Counter-Strike",
                slug="csgo",
                map_pool=[
                    "Mirage",
                    "Inferno",
                    "Nuke",
                    "Overpass",
                    "Vertigo",
                    "Ancient",
                    "Anubis",
                ],
            ),
            Game(
                id="valorant",
                name="Valorant",
                slug="valorant",
                map_pool=["Ascent", "Bind", "Haven", "Lotus", "Split", "Sunset", "Icebox"],
            ),
            Game(
                id="league-of-legends",
                name="League of Legends",
                slug="league-of-legends",
                map_pool=["Summoner's Rift"],
            ),
        ]
        for g in games:
            if g.slug not in existing:
                s.add(g)
        await s.commit()

        # demo profiles, each owning one team
        existing_profiles = {
            x.id for x in (await s.execute(select(Profile))).scalars().all()
        }
        demo = [
            ("demo-captain-a", "captain_a", "demo-team-a", "Demo Team A"),
            ("demo-captain-b", "captain_b", "demo-team-b", "Demo Team B"),
        ]
        for pid, username, tid, team_name in demo:
            if pid in existing_profiles:
                continue
            s.add(
                Profile(
                    id=pid,
                    username=username,
                    password_hash=pwd_context.hash(DEMO_PASSWORD),
                    display_name=username.replace("_", " ").title(),
                    is_admin=False,
                )
            )
            await s.flush()
            s.add(Team(id=tid, name=team_name, created_by=pid))
            await s.flush()
            s.add(TeamMember(id=f"{tid}-owner", team_id=tid, profile_id=pid, role="owner"))
        await s.commit()

if __name__ == "__main__":
    asyncio.run(main())
