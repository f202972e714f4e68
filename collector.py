# Author      : Tyson Limato
# Date        : 2025-7-4
# File Name   : collector.py
import logging

import numpy as np
import pandas as pd

from context import ParticipantIdentity
from errors import TransportError

logger = logging.getLogger(__name__)


class FinalResult:
    """
    Local results of the whole group, merged in rank order.

    Attributes:
    -----------
    values : np.ndarray
        Concatenation of every rank's local result, rank 0 first.
    origins : list of ParticipantIdentity
        origins[r] produced values[r * chunk:(r + 1) * chunk].
    chunk : int
        Number of values contributed by each rank.
    """

    def __init__(self, values: np.ndarray, origins: list, chunk: int):
        self.values = values
        self.origins = origins
        self.chunk = chunk

    def __len__(self):
        return len(self.values)

    def slice_for(self, rank: int) -> np.ndarray:
        return self.values[rank * self.chunk:(rank + 1) * self.chunk]

    def to_frame(self) -> pd.DataFrame:
        """One row per value, tagged with the rank and host that computed it."""
        return pd.DataFrame({
            "index": np.arange(len(self.values)),
            "value": self.values,
            "rank": np.repeat([o.rank for o in self.origins], self.chunk),
            "host": np.repeat([o.host for o in self.origins], self.chunk),
        })

    def to_csv(self, path: str):
        self.to_frame().to_csv(path, index=False)


class Collector:
    """
    Gather every rank's (identity, local result) on the coordinator.

    Non-coordinators call `send`; the coordinator calls `collect`, which
    receives from rank 1, then rank 2, ... up to size - 1. Receives are
    blocking and ordered by rank, not by arrival, so the merged result never
    depends on delivery timing. A rank that never sends blocks the
    coordinator for good.

    Parameters:
    -----------
    ctx : ParticipantContext
        Calling process.
    chunk : int
        Length of every local result.
    dtype : np.dtype
        Element type of the local results.
    """

    def __init__(self, ctx, chunk: int, dtype):
        self.ctx = ctx
        self.chunk = chunk
        self.dtype = np.dtype(dtype)

    def send(self, local_result: np.ndarray):
        """Send this rank's identity and local result to the coordinator."""
        result = np.asarray(local_result, dtype=self.dtype)
        if result.shape != (self.chunk,):
            raise TransportError(f"local result has shape {result.shape}, expected ({self.chunk},)")
        self.ctx.manager.send_result(self.ctx.identity, result, dest=self.ctx.root)

    def collect(self, local_result: np.ndarray, on_receive=None) -> FinalResult:
        """
        Merge the coordinator's own result with every other rank's.

        Parameters:
        -----------
        local_result : np.ndarray
            Result the coordinator computed over its own partition.
        on_receive : callable, optional
            Called as on_receive(identity, result) after each receive.

        Returns:
        --------
        FinalResult
            Complete and in rank order.
        """
        if not self.ctx.is_coordinator:
            raise RuntimeError("collect() runs on the coordinator only")

        size = self.ctx.size
        values = np.empty(size * self.chunk, dtype=self.dtype)
        origins = [None] * size

        own = np.asarray(local_result, dtype=self.dtype)
        if own.shape != (self.chunk,):
            raise TransportError(f"local result has shape {own.shape}, expected ({self.chunk},)")
        root = self.ctx.root
        values[root * self.chunk:(root + 1) * self.chunk] = own
        origins[root] = self.ctx.identity

        for source in range(size):
            if source == root:
                continue
            identity, result = self.ctx.manager.recv_result(source, (self.chunk,), self.dtype)
            # a name from one rank paired with data from another means the tags got crossed
            if not isinstance(identity, ParticipantIdentity):
                raise TransportError(f"rank {source} sent a malformed identity: {identity!r}")
            if identity.rank != source:
                raise TransportError(
                    f"result from rank {source} is labelled as rank {identity.rank} ({identity.host})"
                )
            logger.debug("collected %d values from %s", result.size, identity)
            values[source * self.chunk:(source + 1) * self.chunk] = result
            origins[source] = identity
            if on_receive is not None:
                on_receive(identity, result)

        return FinalResult(values, origins, self.chunk)
