from __future__ import annotations

from .service import RoomRegistry


def game_statistics(registry: RoomRegistry) -> dict:
    rooms = registry.list_rooms()

    total_players = sum(len(r.players) for r in rooms)
    average = round(total_players / len(rooms), 1) if rooms else 0

    recent = sorted(rooms, key=lambda r: r.created_at_ms, reverse=True)[:10]

    return {
        "totalGames": len(rooms),
        "activeGames": sum(1 for r in rooms if r.status == "PLAYING"),
        "completedGames": sum(1 for r in rooms if r.status == "FINISHED"),
        "gamesInWaiting": sum(1 for r in rooms if r.status == "WAITING"),
        "totalPlayers": total_players,
        "averagePlayersPerGame": average,
        "recentGames": [
            {
                "id": r.id,
                "code": r.code,
                "status": r.status,
                "playerCount": len(r.players),
                "createdAt": r.created_at_ms,
            }
            for r in recent
        ],
    }
