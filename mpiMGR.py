# Author      : Tyson Limato
# Date        : 2025-6-18
# File Name   : mpiMGR.py
import logging

import numpy as np
from mpi4py import MPI

from context import ParticipantIdentity
from errors import TransportError

ROOT = 0       # Root process in scatter/broadcast
NAME_TAG = 42  # Tag value for sending the host identity
DATA_TAG = 43  # Tag value for sending numeric results

# numpy dtype -> MPI datatype for buffer based communication
_MPI_TYPES = {
    np.dtype(np.int64): MPI.INT64_T,
    np.dtype(np.float64): MPI.DOUBLE,
}

logger = logging.getLogger(__name__)


def _buffer(arr: np.ndarray):
    """Build the [buffer, datatype] pair mpi4py expects for `arr`."""
    try:
        return [arr, _MPI_TYPES[arr.dtype]]
    except KeyError:
        raise TransportError(f"no MPI datatype registered for dtype {arr.dtype}") from None


class MPIManager:
    """
    A utility class to handle MPI operations for the scatter/collect protocol using `mpi4py`.

    Every numeric exchange goes through the buffer based calls (`Scatter`,
    `Bcast`, `Send`, `Recv`) with explicit datatypes. The host identity is a
    small Python object and travels through the pickle based `send`/`recv`.
    Any `MPI.Exception` is turned into a `TransportError`.

    Parameters:
    -----------
    comm : MPI.Comm
        Communicator of the group (default is MPI.COMM_WORLD).
    host : str
        Host label of this process (default is MPI.Get_processor_name()).

    Methods:
    --------
    identity()
        Rank and host label of this process.
    scatter(sendbuf, recv_shape, dtype, root=0)
        Hand every rank its contiguous slice of the root's buffer.
    broadcast(payload, shape, dtype, root=0)
        Replicate the root's buffer on every rank.
    send_result(identity, result, dest=0)
        Send (identity, local result) to the coordinator on two tags.
    recv_result(source, shape, dtype)
        Receive (identity, local result) from one rank.
    all_agree(ok)
        Combine a per-rank flag so every rank takes the same branch.
    abort(code)
        Terminate every process of the group.
    """

    def __init__(self, comm=None, host=None):
        # Initialize the MPI communicator
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        # Get the rank (ID) of the current process
        self.rank = self.comm.Get_rank()
        # Get the total number of processes
        self.size = self.comm.Get_size()
        # Host label, resolved by the MPI runtime unless given
        self.host = host if host is not None else MPI.Get_processor_name()

    def identity(self) -> ParticipantIdentity:
        return ParticipantIdentity.create(self.rank, self.host)

    def scatter(self, sendbuf, recv_shape, dtype, root: int = ROOT) -> np.ndarray:
        """
        Scatter equal contiguous slices of the root's buffer to all ranks.

        Parameters:
        -----------
        sendbuf : list of np.ndarray or None
            Per-rank slices in rank order on the root, ignored on every other rank.
        recv_shape : tuple
            Shape of one rank's slice, known to every rank from the configuration.
        dtype : np.dtype
            Element type on the wire.
        root : int
            The rank that owns the dataset.

        Returns:
        --------
        np.ndarray
            This rank's slice (the root gets its own slice back too).
        """
        recvbuf = np.empty(recv_shape, dtype=dtype)
        send = None
        if self.rank == root:
            if len(sendbuf) != self.size:
                raise TransportError(f"scatter got {len(sendbuf)} slices for {self.size} ranks")
            for r, part in enumerate(sendbuf):
                if np.shape(part) != tuple(recv_shape):
                    raise TransportError(
                        f"slice for rank {r} has shape {np.shape(part)}, expected {tuple(recv_shape)}"
                    )
            # one contiguous buffer laid out rank by rank
            data = np.ascontiguousarray(np.concatenate(sendbuf), dtype=dtype)
            send = _buffer(data)

        try:
            self.comm.Scatter(send, _buffer(recvbuf), root=root)
        except MPI.Exception as exc:
            raise TransportError(f"scatter from rank {root} failed: {exc}") from exc

        logger.debug("rank %d received %d elements from scatter", self.rank, recvbuf.size)
        return recvbuf

    def broadcast(self, payload, shape, dtype, root: int = ROOT) -> np.ndarray:
        """
        Broadcast a buffer from the root; every rank gets its own copy.
        """
        if self.rank == root:
            # root gets its own copy as well
            buf = np.array(payload, dtype=dtype, order="C")
            if buf.shape != tuple(shape):
                raise TransportError(f"broadcast payload has shape {buf.shape}, expected {tuple(shape)}")
        else:
            buf = np.empty(shape, dtype=dtype)

        try:
            self.comm.Bcast(_buffer(buf), root=root)
        except MPI.Exception as exc:
            raise TransportError(f"broadcast from rank {root} failed: {exc}") from exc
        return buf

    def broadcast_shape(self, shape=None, root: int = ROOT) -> tuple:
        """Broadcast a (rows, cols) pair so non-root ranks can size their buffers."""
        out = self.broadcast(shape if self.rank == root else None, (2,), np.int64, root=root)
        return int(out[0]), int(out[1])

    def send_result(self, identity: ParticipantIdentity, result: np.ndarray, dest: int = ROOT):
        """
        Send this rank's identity, then its local result, to the coordinator.
        The coordinator receives them in the same order on the same tags.
        """
        try:
            self.comm.send(identity, dest=dest, tag=NAME_TAG)
            self.comm.Send(_buffer(np.ascontiguousarray(result)), dest=dest, tag=DATA_TAG)
        except MPI.Exception as exc:
            raise TransportError(f"rank {self.rank} could not send its result: {exc}") from exc

    def recv_result(self, source: int, shape, dtype):
        """
        Blocking receive of (identity, local result) from `source`.

        Returns:
        --------
        tuple (ParticipantIdentity, np.ndarray)
        """
        buf = np.empty(shape, dtype=dtype)
        spec = _buffer(buf)
        status = MPI.Status()
        try:
            identity = self.comm.recv(source=source, tag=NAME_TAG)
            self.comm.Recv(spec, source=source, tag=DATA_TAG, status=status)
        except MPI.Exception as exc:
            raise TransportError(f"receive from rank {source} failed: {exc}") from exc

        count = status.Get_count(spec[1])
        if count != buf.size:
            raise TransportError(f"rank {source} sent {count} elements, expected {buf.size}")
        return identity, buf

    def all_agree(self, ok: bool) -> bool:
        """True on every rank only if `ok` holds on every rank."""
        try:
            return bool(self.comm.allreduce(int(ok), op=MPI.MIN))
        except MPI.Exception as exc:
            raise TransportError(f"rank {self.rank} could not reach agreement: {exc}") from exc

    def abort(self, code: int):
        """Tear down the whole group; used after a fatal transport error."""
        logger.error("rank %d aborting the group with code %d", self.rank, code)
        self.comm.Abort(code)
