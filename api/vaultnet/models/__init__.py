from .base import Base
from .login_attempt import LoginAttempt
from .purchase import Purchase
from .trust_score import TrustScore
from .vote import UserVote, VoteAggregate, VoteType

__all__ = [
    "Base",
    "Purchase",
    "VoteAggregate",
    "UserVote",
    "VoteType",
    "TrustScore",
    "LoginAttempt",
]
