"""Shared fixtures: an in-process MPI group with one thread per rank.

``FakeComm`` implements the slice of the mpi4py ``Comm`` API the project
uses. Collectives are matched by call order: the n-th collective of every
rank must be the same operation with the same root as the n-th collective
of the root, otherwise the receiving rank gets an ``MPI.Exception``. Any
wait longer than the group deadline raises ``ProtocolStallError`` instead
of hanging the test session.
"""

import copy
import functools
import queue
import threading
from collections import defaultdict

import numpy as np
import pytest
from mpi4py import MPI

from context import ParticipantContext
from errors import ProtocolStallError
from mpiMGR import MPIManager
from participant import Participant

DEADLINE = 5.0


def _array(spec):
    """Array part of an mpi4py buffer spec: ``[arr, datatype]`` or a bare array."""
    if isinstance(spec, (list, tuple)):
        return spec[0]
    return spec


class FakeWorld:
    def __init__(self, size, deadline=DEADLINE):
        self.size = size
        self.deadline = deadline
        # rank -> names of the collectives it issued, in order
        self.trace = defaultdict(list)
        # (source, dest, tag) of every point-to-point message
        self.sent = []
        self.aborted = None
        self._mailboxes = defaultdict(queue.Queue)
        self._rounds = {}
        self._gathers = defaultdict(dict)
        self._cond = threading.Condition()
        self._lock = threading.Lock()

    def comm(self, rank):
        return FakeComm(self, rank)

    def publish(self, seq, op, root, payload):
        with self._cond:
            self._rounds[seq] = (op, root, payload)
            self._cond.notify_all()

    def wait_round(self, seq, rank):
        with self._cond:
            if not self._cond.wait_for(lambda: seq in self._rounds, timeout=self.deadline):
                raise ProtocolStallError(f"rank {rank} stalled in collective #{seq}")
            return self._rounds[seq]

    def gather_round(self, seq, rank, value):
        """Every rank contributes to round `seq`; returns all values by rank."""
        with self._cond:
            self._gathers[seq][rank] = value
            self._cond.notify_all()
            if not self._cond.wait_for(lambda: len(self._gathers[seq]) == self.size, timeout=self.deadline):
                raise ProtocolStallError(f"rank {rank} stalled in reduction #{seq}")
            return [self._gathers[seq][r] for r in range(self.size)]

    def _mailbox(self, source, dest, tag):
        with self._lock:
            return self._mailboxes[(source, dest, tag)]

    def post(self, source, dest, tag, item):
        with self._lock:
            self.sent.append((source, dest, tag))
        self._mailbox(source, dest, tag).put(item)

    def take(self, source, dest, tag):
        try:
            return self._mailbox(source, dest, tag).get(timeout=self.deadline)
        except queue.Empty:
            raise ProtocolStallError(f"rank {dest} stalled waiting for rank {source} on tag {tag}") from None


class FakeComm:
    def __init__(self, world, rank):
        self.world = world
        self.rank = rank
        self.size = world.size
        self._seq = 0

    def Get_rank(self):
        return self.rank

    def Get_size(self):
        return self.size

    def _collective(self, op, root, payload=None):
        seq = self._seq
        self._seq += 1
        self.world.trace[self.rank].append(op)
        if self.rank == root:
            self.world.publish(seq, op, root, payload)
            return payload
        root_op, root_rank, data = self.world.wait_round(seq, self.rank)
        if root_op != op or root_rank != root:
            raise MPI.Exception(MPI.ERR_OTHER)
        return data

    def Scatter(self, sendbuf, recvbuf, root=0):
        recv = _array(recvbuf)
        payload = None
        if self.rank == root:
            payload = np.array(_array(sendbuf), copy=True).ravel()
        data = self._collective("scatter", root, payload)
        count = recv.size
        if data.size != count * self.size:
            raise MPI.Exception(MPI.ERR_COUNT)
        np.copyto(recv, data[self.rank * count:(self.rank + 1) * count].reshape(recv.shape))

    def Bcast(self, buf, root=0):
        arr = _array(buf)
        data = self._collective("bcast", root, np.array(arr, copy=True) if self.rank == root else None)
        if self.rank != root:
            if data.size != arr.size:
                raise MPI.Exception(MPI.ERR_TRUNCATE)
            np.copyto(arr, data.reshape(arr.shape))

    def allreduce(self, sendobj, op=MPI.SUM):
        seq = self._seq
        self._seq += 1
        self.world.trace[self.rank].append("allreduce")
        return functools.reduce(op, self.world.gather_round(seq, self.rank, sendobj))

    def Send(self, buf, dest, tag=0):
        self.world.post(self.rank, dest, tag, np.array(_array(buf), copy=True).ravel())

    def Recv(self, buf, source, tag=0, status=None):
        arr = _array(buf)
        data = self.world.take(source, self.rank, tag)
        if data.size > arr.size:
            raise MPI.Exception(MPI.ERR_TRUNCATE)
        arr.reshape(-1)[:data.size] = data
        if status is not None:
            status.Set_elements(buf[1], data.size)

    def send(self, obj, dest, tag=0):
        self.world.post(self.rank, dest, tag, copy.deepcopy(obj))

    def recv(self, buf=None, source=0, tag=0, status=None):
        return self.world.take(source, self.rank, tag)

    def Abort(self, errorcode=0):
        self.world.aborted = errorcode
        raise SystemExit(errorcode)


def _run_group(size, target, deadline=DEADLINE):
    """Run ``target(comm)`` on ``size`` threads; returns (world, results, errors) by rank."""
    world = FakeWorld(size, deadline)
    results = [None] * size
    errors = [None] * size

    def worker(rank):
        try:
            results[rank] = target(world.comm(rank))
        except BaseException as exc:  # collected and asserted on by the test
            errors[rank] = exc

    threads = [threading.Thread(target=worker, args=(r,), daemon=True) for r in range(size)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=deadline * 4)
    assert not any(t.is_alive() for t in threads), "simulated group did not finish"
    return world, results, errors


@pytest.fixture
def run_group():
    return _run_group


def host_label(rank):
    return f"node-{rank:02d}.test"


@pytest.fixture
def host_of():
    return host_label


@pytest.fixture
def make_participant():
    """Build a Participant on a fake communicator with a synthetic host label per rank."""

    def factory(comm, workload, **kwargs):
        mgr = MPIManager(comm, host=host_label(comm.Get_rank()))
        ctx = ParticipantContext(mgr.identity(), mgr.size, mgr)
        return Participant(ctx, workload, **kwargs)

    return factory


@pytest.fixture
def rng():
    return np.random.default_rng(42)
