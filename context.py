# Author      : Tyson Limato
# Date        : 2025-7-2
# File Name   : context.py
from enum import Enum
from typing import NamedTuple

NAMELEN = 80  # Max length of a host label sent to the coordinator


class Phase(Enum):
    """Protocol phases every participant walks through, in this order."""
    INIT = "init"
    CONFIGURED = "configured"
    DISTRIBUTING = "distributing"
    COMPUTING = "computing"
    COLLECTING = "collecting"  # coordinator only
    REPORTING = "reporting"    # coordinator only
    DONE = "done"


class ParticipantIdentity(NamedTuple):
    """Who produced a local result: rank in the group plus host label."""
    rank: int
    host: str

    @classmethod
    def create(cls, rank: int, host: str):
        # Host labels travel in a fixed-size name buffer
        return cls(int(rank), str(host)[:NAMELEN])

    def __str__(self):
        return f"Process {self.rank} on host {self.host}"


class ParticipantContext:
    """
    Everything a phase function needs to know about the calling process.

    Parameters:
    -----------
    identity : ParticipantIdentity
        Rank and host label of this process.
    size : int
        Number of participants in the group.
    manager : MPIManager
        Transport wrapper used for every collective and point-to-point call.
    root : int
        Rank of the coordinator (default is 0).
    """

    def __init__(self, identity: ParticipantIdentity, size: int, manager, root: int = 0):
        self.identity = identity
        self.size = size
        self.manager = manager
        self.root = root

    @property
    def rank(self) -> int:
        return self.identity.rank

    @property
    def is_coordinator(self) -> bool:
        return self.identity.rank == self.root

    def __repr__(self):
        return f"ParticipantContext(rank={self.rank}, size={self.size}, host={self.identity.host!r})"
