from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

from ..config import RIOT_DEFAULT_REGION
from .base import BaseGameService, GameServiceConfig
from .types import (
    ApiResponse,
    GameLeaderboard,
    GameLeaderboardEntry,
    GameMatch,
    GameMatchParticipant,
    GameProfile,
    GameStats,
)

# Platform region -> regional routing host used by match-v5.
REGION_ROUTING = {
    "na1": "americas",
    "br1": "americas",
    "la1": "americas",
    "la2": "americas",
    "euw1": "europe",
    "eun1": "europe",
    "tr1": "europe",
    "ru": "europe",
    "kr": "asia",
    "jp1": "asia",
    "oc1": "sea",
}

TIER_VALUES = {
    "IRON": 1,
    "BRONZE": 2,
    "SILVER": 3,
    "GOLD": 4,
    "PLATINUM": 5,
    "EMERALD": 6,
    "DIAMOND": 7,
    "MASTER": 8,
    "GRANDMASTER": 9,
    "CHALLENGER": 10,
}

SOLO_QUEUE = "RANKED_SOLO_5x5"
# Detail requests per call to get_recent_matches; each costs one rate-limit slot.
MAX_MATCH_DETAILS = 5
PROFILE_ICON_URL = "https://ddragon.leagueoflegends.com/cdn/13.10.1/img/profileicon/{icon}.png"
RANK_EMBLEM_URL = (
    "https://raw.communitydragon.org/latest/plugins/rcp-fe-lol-static-assets/"
    "global/default/ranked-emblems/emblem-{tier}.png"
)


def _iso(ms: int | None) -> str | None:
    if ms is None:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


def _win_rate(wins: int, total: int) -> float:
    return round(wins / total * 100, 2) if total else 0.0


class LeagueOfLegendsService(BaseGameService):
    game_id = "league-of-legends"

    def __init__(self, config: GameServiceConfig, **kwargs: Any) -> None:
        super().__init__(config, **kwargs)
        self.region = config.region or RIOT_DEFAULT_REGION

    def auth_headers(self) -> dict[str, str]:
        if not self.config.api_key:
            return {}
        return {"X-Riot-Token": self.config.api_key}

    def regional_url(self, endpoint: str, region: str | None = None) -> str:
        return f"https://{region or self.region}.api.riotgames.com{endpoint}"

    def routing_url(self, endpoint: str) -> str:
        routing = REGION_ROUTING.get(self.region, "americas")
        return f"https://{routing}.api.riotgames.com{endpoint}"

    def _to_match(self, raw: dict[str, Any], puuid: str | None = None) -> GameMatch:
        info = raw["info"]
        participants = info.get("participants", [])
        result = None
        if puuid is not None:
            me = next((p for p in participants if p.get("puuid") == puuid), None)
            if me is not None:
                result = "win" if me.get("win") else "loss"
        return GameMatch(
            id=raw["metadata"]["matchId"],
            gameId=self.game_id,
            startTime=_iso(info.get("gameStartTimestamp")) or "",
            endTime=_iso(info.get("gameEndTimestamp")),
            duration=info.get("gameDuration"),
            mode=info.get("gameMode"),
            result=result,
            participants=[
                GameMatchParticipant(
                    id=p["puuid"],
                    profileId=p.get("summonerId", ""),
                    username=p.get("summonerName", ""),
                    teamId=str(p.get("teamId")),
                    champion=p.get("championName"),
                    role=p.get("teamPosition"),
                    stats={
                        "kills": p.get("kills", 0),
                        "deaths": p.get("deaths", 0),
                        "assists": p.get("assists", 0),
                        "score": p.get("kills", 0) + p.get("assists", 0),
                    },
                )
                for p in participants
            ],
            gameSpecificData={
                "queueId": info.get("queueId"),
                "mapId": info.get("mapId"),
                "gameVersion": info.get("gameVersion"),
            },
        )

    async def get_player_profile(self, player_id: str) -> ApiResponse:
        # Encrypted summoner ids are long; anything shorter is a summoner name.
        if len(player_id) > 30:
            endpoint = f"/lol/summoner/v4/summoners/{player_id}"
        else:
            endpoint = f"/lol/summoner/v4/summoners/by-name/{quote(player_id)}"
        response = await self.api_client.get(self.regional_url(endpoint))
        if response.error or not response.data:
            return response
        try:
            summoner = response.data
            profile = GameProfile(
                id=summoner["id"],
                username=summoner["name"],
                displayName=summoner["name"],
                avatarUrl=PROFILE_ICON_URL.format(icon=summoner.get("profileIconId")),
                level=summoner.get("summonerLevel"),
                region=self.region,
                gameSpecificData={
                    "puuid": summoner.get("puuid"),
                    "accountId": summoner.get("accountId"),
                },
            )
        except (KeyError, TypeError, ValueError) as exc:
            return self.handle_error(exc)
        return ApiResponse(data=profile.model_dump(), status=response.status)

    async def get_player_stats(self, player_id: str) -> ApiResponse:
        endpoint = f"/lol/league/v4/entries/by-summoner/{player_id}"
        response = await self.api_client.get(self.regional_url(endpoint))
        if response.error or response.data is None:
            return response
        entries = response.data or []
        entry = next((e for e in entries if e.get("queueType") == SOLO_QUEUE), None)
        if entry is None and entries:
            entry = entries[0]
        if entry is None:
            return ApiResponse(data=GameStats().model_dump(), status=response.status)

        try:
            wins, losses = entry["wins"], entry["losses"]
            tier = entry["tier"]
            stats = GameStats(
                wins=wins,
                losses=losses,
                winRate=_win_rate(wins, wins + losses),
                totalMatches=wins + losses,
                rank=tier,
                rankTier=TIER_VALUES.get(tier.upper(), 0),
                rankDivision=entry.get("rank"),
                rankIconUrl=RANK_EMBLEM_URL.format(tier=tier.lower()),
                eloRating=entry.get("leaguePoints"),
                gameSpecificStats={
                    "queueType": entry.get("queueType"),
                    "leaguePoints": entry.get("leaguePoints"),
                    "hotStreak": entry.get("hotStreak"),
                    "veteran": entry.get("veteran"),
                    "freshBlood": entry.get("freshBlood"),
                    "inactive": entry.get("inactive"),
                },
            )
        except (KeyError, TypeError, AttributeError) as exc:
            return self.handle_error(exc)
        return ApiResponse(data=stats.model_dump(), status=response.status)

    async def get_recent_matches(self, player_id: str, limit: int = 10) -> ApiResponse:
        ids_endpoint = f"/lol/match/v5/matches/by-puuid/{player_id}/ids"
        ids_response = await self.api_client.get(
            self.routing_url(ids_endpoint), params={"start": 0, "count": limit}
        )
        if ids_response.error or ids_response.data is None:
            return ids_response

        matches: list[dict[str, Any]] = []
        for match_id in list(ids_response.data)[:MAX_MATCH_DETAILS]:
            detail = await self.api_client.get(
                self.routing_url(f"/lol/match/v5/matches/{match_id}")
            )
            # Individual detail failures drop that match only.
            if detail.error or not detail.data:
                continue
            try:
                matches.append(self._to_match(detail.data, player_id).model_dump())
            except (KeyError, TypeError) as exc:
                return self.handle_error(exc)
        return ApiResponse(data=matches, status=200)

    async def get_match(self, match_id: str) -> ApiResponse:
        response = await self.api_client.get(
            self.routing_url(f"/lol/match/v5/matches/{match_id}")
        )
        if response.error or not response.data:
            return response
        try:
            match = self._to_match(response.data)
        except (KeyError, TypeError) as exc:
            return self.handle_error(exc)
        return ApiResponse(data=match.model_dump(), status=response.status)

    async def get_leaderboard(
        self, region: str | None = None, limit: int = 100
    ) -> ApiResponse:
        use_region = region or self.region
        endpoint = f"/lol/league/v4/challengerleagues/by-queue/{SOLO_QUEUE}"
        response = await self.api_client.get(self.regional_url(endpoint, use_region))
        if response.error or not response.data:
            return response
        try:
            league = response.data
            entries = sorted(
                league.get("entries", []),
                key=lambda e: e.get("leaguePoints", 0),
                reverse=True,
            )[:limit]
            board = GameLeaderboard(
                id=league["leagueId"],
                name=f"{league.get('tier', '')} {SOLO_QUEUE}".strip(),
                region=use_region,
                entries=[
                    GameLeaderboardEntry(
                        rank=index,
                        profileId=e.get("summonerId", ""),
                        username=e.get("summonerName", ""),
                        score=e.get("leaguePoints", 0),
                        wins=e.get("wins"),
                        losses=e.get("losses"),
                        gameSpecificData={
                            "tier": league.get("tier"),
                            "rank": e.get("rank"),
                            "hotStreak": e.get("hotStreak"),
                        },
                    )
                    for index, e in enumerate(entries, start=1)
                ],
                updatedAt=datetime.now(timezone.utc).isoformat(),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            return self.handle_error(exc)
        return ApiResponse(data=board.model_dump(), status=response.status)

    async def search_player(self, username: str) -> ApiResponse:
        # Riot has no search endpoint; an exact name lookup is the best available.
        response = await self.get_player_profile(username)
        if response.error or not response.data:
            return ApiResponse(data=[], error=response.error, status=response.status)
        return ApiResponse(data=[response.data], status=response.status)
