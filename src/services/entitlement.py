def available_rolls(total_votes: int, votes_per_roll: int, rolls_made: int, rolls_bonuses: int) -> int:
    """
    Cantidad de tiradas disponibles para un visitante.

    Cada `votes_per_roll` votos desbloquean una tirada; los bonos ganados suman
    y las tiradas ya hechas restan. Nunca devuelve un valor negativo.
    Recibe siempre el total de votos recién consultado (no se cachea).
    """
    if votes_per_roll <= 0:
        raise ValueError(f"votes_per_roll debe ser positivo (recibido {votes_per_roll})")
    return max(0, base_rolls(total_votes, votes_per_roll) + rolls_bonuses - rolls_made)


def base_rolls(total_votes: int, votes_per_roll: int) -> int:
    """Tiradas desbloqueadas sólo por votos."""
    if votes_per_roll <= 0:
        raise ValueError(f"votes_per_roll debe ser positivo (recibido {votes_per_roll})")
    return max(total_votes, 0) // votes_per_roll
