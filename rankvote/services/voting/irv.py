from rankvote.services.voting.tie_break import resolve_elimination


def _unique_options(options):
    seen = set()
    ordered = []
    for option_id in options:
        if option_id not in seen:
            seen.add(option_id)
            ordered.append(option_id)
    return ordered


def _count_round(ballots, standing):
    standing_set = set(standing)
    tallies = {option_id: 0 for option_id in standing}
    active = 0
    for ballot in ballots:
        for option_id in ballot:
            if option_id in standing_set:
                tallies[option_id] += 1
                active += 1
                break
    return tallies, active


def _round(number, tallies, active, eliminated=None, winner=None, tied=None, tie_break=None):
    return {
        "round": number,
        "tallies": tallies,
        "active_ballot_count": active,
        "eliminated": eliminated,
        "winner": winner,
        "is_tie": tied is not None,
        "tied_options": list(tied) if tied is not None else [],
        "tie_break": tie_break,
    }


def _result(winner, rounds, total_ballots, tied=None):
    return {
        "winner": winner,
        "is_tie": tied is not None,
        "tied_options": list(tied) if tied is not None else [],
        "total_ballots": total_ballots,
        "rounds": rounds,
    }


def tabulate(options, ballots):
    """Run a single-winner instant-runoff count.

    ``options`` is any iterable of option ids (order only affects how tallies
    are listed) and ``ballots`` a list of rankings, most preferred first.
    Entries naming unknown options are skipped. The function never raises for
    well-formed input and returns identical output for identical input.
    """
    standing = _unique_options(options)
    ballots = [list(ballot) for ballot in ballots]
    total_ballots = len(ballots)

    if not standing:
        return _result(None, [], total_ballots)

    if not ballots:
        return _result(None, [], 0, tied=sorted(standing))

    rounds = []
    first_round_tallies = None

    while standing:
        number = len(rounds) + 1
        tallies, active = _count_round(ballots, standing)
        if first_round_tallies is None:
            first_round_tallies = dict(tallies)

        # Strict majority of the active ballots; an exact half is not enough.
        threshold = active / 2
        for option_id in standing:
            if tallies[option_id] > threshold:
                rounds.append(_round(number, tallies, active, winner=option_id))
                return _result(option_id, rounds, total_ballots)

        lowest_count = min(tallies.values())
        lowest = [option_id for option_id in standing if tallies[option_id] == lowest_count]

        if len(lowest) == len(standing):
            tied = sorted(standing)
            rounds.append(_round(number, tallies, active, tied=tied))
            return _result(None, rounds, total_ballots, tied=tied)

        eliminated, tie_break = resolve_elimination(lowest, ballots, first_round_tallies)
        rounds.append(
            _round(number, tallies, active, eliminated=eliminated, tie_break=tie_break)
        )
        standing = [option_id for option_id in standing if option_id != eliminated]

        if len(standing) == 1:
            (survivor,) = standing
            final_tallies, final_active = _count_round(ballots, standing)
            rounds.append(
                _round(len(rounds) + 1, final_tallies, final_active, winner=survivor)
            )
            return _result(survivor, rounds, total_ballots)

    return _result(None, rounds, total_ballots)


def build_ballots_for_contest(contest):
    return [list(ballot.rankings) for ballot in contest.ballots]


def tabulate_contest(contest):
    return tabulate(contest.options, build_ballots_for_contest(contest))
