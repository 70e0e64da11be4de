from __future__ import annotations

from datetime import datetime, timezone

from .base import BaseGameService, not_implemented
from .types import ApiResponse, GameProfile, GameStats

CSGO_APP_ID = 730


def _percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


class CSGOService(BaseGameService):
    """Steam Web API backed provider.

    Steam exposes profiles and lifetime stats only; match history,
    leaderboards and search answer 501.
    """

    game_id = "csgo"

    def auth_headers(self) -> dict[str, str]:
        # Steam takes the key as a query parameter.
        return {}

    def _params(self, **params: object) -> dict[str, object]:
        if self.config.api_key:
            params["key"] = self.config.api_key
        return params

    async def resolve_steam_id(self, player_id: str) -> str | None:
        if player_id.isdigit():
            return player_id
        response = await self.api_client.get(
            "/ISteamUser/ResolveVanityURL/v1",
            params=self._params(vanityurl=player_id),
        )
        data = response.data if isinstance(response.data, dict) else {}
        return (data.get("response") or {}).get("steamid")

    async def get_player_profile(self, player_id: str) -> ApiResponse:
        steam_id = await self.resolve_steam_id(player_id)
        if steam_id is None:
            return ApiResponse(
                data=None,
                error="Could not resolve vanity URL to Steam ID",
                status=400,
            )

        response = await self.api_client.get(
            "/ISteamUser/GetPlayerSummaries/v2",
            params=self._params(steamids=steam_id),
        )
        players = []
        if isinstance(response.data, dict):
            players = (response.data.get("response") or {}).get("players") or []
        if response.error or not players:
            return ApiResponse(
                data=None,
                error=response.error or "Player not found",
                status=response.status or 404,
            )

        player = players[0]
        last_logoff = player.get("lastlogoff")
        profile = GameProfile(
            id=player["steamid"],
            username=player.get("personaname", ""),
            displayName=player.get("personaname", ""),
            avatarUrl=player.get("avatarfull"),
            region=player.get("loccountrycode"),
            gameSpecificData={
                "profileUrl": player.get("profileurl"),
                "visibility": player.get("communityvisibilitystate"),
                "lastLogoff": (
                    datetime.fromtimestamp(last_logoff, tz=timezone.utc).isoformat()
                    if last_logoff
                    else None
                ),
            },
        )
        return ApiResponse(data=profile.model_dump(), status=response.status)

    async def get_player_stats(self, player_id: str) -> ApiResponse:
        response = await self.api_client.get(
            "/ISteamUserStats/GetUserStatsForGame/v2",
            params=self._params(appid=CSGO_APP_ID, steamid=player_id),
        )
        raw_stats = None
        if isinstance(response.data, dict):
            raw_stats = (response.data.get("playerstats") or {}).get("stats")
        if response.error or not raw_stats:
            return ApiResponse(
                data=GameStats().model_dump(),
                error=response.error or "Stats not available",
                status=response.status,
            )

        # Steam returns stats as [{"name": ..., "value": ...}].
        if isinstance(raw_stats, list):
            stats = {s.get("name"): s.get("value", 0) for s in raw_stats}
        else:
            stats = dict(raw_stats)
        wins = int(stats.get("total_wins", 0))
        total = int(stats.get("total_matches_played", 0))
        shots_fired = stats.get("total_shots_fired", 0)
        shots_hit = stats.get("total_shots_hit", 0)
        result = GameStats(
            wins=wins,
            losses=max(total - wins, 0),
            winRate=_percent(wins, total),
            totalMatches=total,
            gameSpecificStats={
                "kills": stats.get("total_kills"),
                "deaths": stats.get("total_deaths"),
                "timePlayed": stats.get("total_time_played"),
                "accuracy": _percent(shots_hit, shots_fired),
                "mvps": stats.get("total_mvps"),
                "headshots": stats.get("total_kills_headshot"),
            },
        )
        return ApiResponse(data=result.model_dump(), status=response.status)

    async def get_recent_matches(self, player_id: str, limit: int = 10) -> ApiResponse:
        return ApiResponse(
            data=[], error="Match history not available through Steam API", status=501
        )

    async def get_match(self, match_id: str) -> ApiResponse:
        return not_implemented("Match details not available through Steam API")

    async def get_leaderboard(
        self, region: str | None = None, limit: int = 100
    ) -> ApiResponse:
        return not_implemented("Leaderboards not available through Steam API")

    async def search_player(self, username: str) -> ApiResponse:
        return ApiResponse(
            data=[], error="Player search not available through Steam API", status=501
        )
