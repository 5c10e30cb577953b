from typing import Dict

from quizroom.models import GameSession, Player


def project(session: GameSession) -> Dict:
    """Ranked view of a session's players, recomputed on every call.

    Highest score first; ties keep join order.
    """
    players = (
        Player.query
        .filter_by(session_id=session.id)
        .order_by(Player.score.desc(), Player.joined_at.asc(), Player.id.asc())
        .all()
    )
    ranked = []
    for position, player in enumerate(players, start=1):
        entry = player.to_dict()
        entry['position'] = position
        ranked.append(entry)
    return {'players': ranked, 'total_players': len(ranked)}
