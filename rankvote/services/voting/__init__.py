from rankvote.services.voting.irv import tabulate, tabulate_contest
from rankvote.services.voting.tie_break import TIE_BREAK_STAGES, resolve_elimination

__all__ = [
    "tabulate",
    "tabulate_contest",
    "resolve_elimination",
    "TIE_BREAK_STAGES",
]
