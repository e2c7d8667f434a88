def weighted_support(tied, ballots, first_round_tallies):
    scores = {option_id: 0 for option_id in tied}
    for ballot in ballots:
        length = len(ballot)
        counted = set()
        for index, option_id in enumerate(ballot):
            if option_id in scores and option_id not in counted:
                scores[option_id] += max(length - index, 0)
                counted.add(option_id)
    return scores


def first_round_total(tied, ballots, first_round_tallies):
    return {option_id: first_round_tallies.get(option_id, 0) for option_id in tied}


def lexicographic(tied, ballots, first_round_tallies):
    # Rank by position in sorted order so the lowest id is the unique minimum.
    return {option_id: index for index, option_id in enumerate(sorted(tied))}


# Each stage scores the still-tied options; the lowest score survives to the
# next stage. Reordering or adding stages only touches this tuple.
TIE_BREAK_STAGES = (
    ("weighted_support", weighted_support),
    ("first_round_total", first_round_total),
    ("lexicographic", lexicographic),
)


def resolve_elimination(tied_at_minimum, ballots, first_round_tallies, stages=None):
    """Pick the single option to eliminate from those sharing the round minimum.

    Returns ``(eliminated_id, detail)`` where ``detail["cause"]`` names the stage
    that settled it and ``detail["stages"]`` keeps every stage's scores for the
    results audit view.
    """
    tied = sorted(set(tied_at_minimum))
    if len(tied) == 1:
        return tied[0], {"cause": "fewest_votes", "tied": tied, "stages": []}

    stages = TIE_BREAK_STAGES if stages is None else stages
    applied = []
    remaining = tied

    for cause, stage in stages:
        scores = stage(remaining, ballots, first_round_tallies)
        lowest = min(scores.values())
        narrowed = sorted(
            option_id for option_id in remaining if scores[option_id] == lowest
        )
        applied.append(
            {
                "stage": cause,
                "scores": {option_id: scores[option_id] for option_id in remaining},
            }
        )
        if len(narrowed) == 1:
            return narrowed[0], {"cause": cause, "tied": tied, "stages": applied}
        remaining = narrowed

    # Only reachable with a custom stage list lacking a total order.
    return remaining[0], {"cause": "lexicographic", "tied": tied, "stages": applied}
