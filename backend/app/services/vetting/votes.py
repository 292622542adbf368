"""
Board vote tally.

Plurality of substantive votes decides the endorsement result.
Abstentions are counted but never win; ties and empty tallies fall back
to NO_POSITION.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, Union

from ...models.db_models import BoardVoteChoice, Recommendation


SUBSTANTIVE_VOTES = {
    BoardVoteChoice.VOTE_ENDORSE: Recommendation.ENDORSE,
    BoardVoteChoice.VOTE_DO_NOT_ENDORSE: Recommendation.DO_NOT_ENDORSE,
    BoardVoteChoice.VOTE_NO_POSITION: Recommendation.NO_POSITION,
}


@dataclass
class VoteTally:
    counts: Dict[BoardVoteChoice, int] = field(
        default_factory=lambda: {choice: 0 for choice in BoardVoteChoice}
    )
    total: int = 0

    @property
    def substantive(self) -> int:
        return self.total - self.counts[BoardVoteChoice.VOTE_ABSTAIN]

    def to_dict(self) -> Dict[str, int]:
        result = {choice.value: count for choice, count in self.counts.items()}
        result["total"] = self.total
        return result


def tally_votes(votes: Iterable[Union[BoardVoteChoice, str]]) -> VoteTally:
    """Count votes by choice."""
    tally = VoteTally()
    for vote in votes:
        tally.counts[BoardVoteChoice(vote)] += 1
        tally.total += 1
    return tally


def endorsement_result_from_tally(tally: VoteTally) -> Recommendation:
    """Plurality wins; ties between the top two default to NO_POSITION."""
    ranked = sorted(
        ((tally.counts[choice], result) for choice, result in SUBSTANTIVE_VOTES.items()),
        key=lambda pair: pair[0],
        reverse=True,
    )
    top_count, top_result = ranked[0]
    if top_count == 0:
        return Recommendation.NO_POSITION
    if top_count == ranked[1][0]:
        return Recommendation.NO_POSITION
    return top_result
