from enum import Enum

from xspfsync.domain.entities import Candidate, Track


class MatchPolicy(str, Enum):
    """Verification policy applied to the first search result of a platform.

    STRICT compares title and artist byte for byte. CASE_FOLDED lowercases
    both sides before comparing. FIRST_RESULT trusts the remote ranking and
    accepts whatever the search returned.
    """

    STRICT = "strict"
    CASE_FOLDED = "casefold"
    FIRST_RESULT = "first"


def verify_strict(requested: Track, candidate: Candidate) -> bool:
    return (
        candidate.title == requested.title
        and candidate.primary_artist == requested.creator
    )


def verify_case_folded(requested: Track, candidate: Candidate) -> bool:
    return (
        candidate.title.lower() == requested.title.lower()
        and candidate.primary_artist.lower() == requested.creator.lower()
    )


_VERIFIERS = {
    MatchPolicy.STRICT: verify_strict,
    MatchPolicy.CASE_FOLDED: verify_case_folded,
    MatchPolicy.FIRST_RESULT: lambda requested, candidate: True,
}


def verify(requested: Track, candidate: Candidate, policy: MatchPolicy = MatchPolicy.STRICT) -> bool:
    """Decide whether a search candidate is accepted as the resolution of a track.

    Args:
        requested: Track read from the playlist source
        candidate: First result returned by the platform search
        policy: Verification policy configured on the adapter

    Returns:
        True if the candidate is accepted
    """
    return _VERIFIERS[MatchPolicy(policy)](requested, candidate)
