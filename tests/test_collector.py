"""Tests for result collection on the coordinator."""

import time

import numpy as np
import pandas as pd
import pytest

from collector import Collector, FinalResult
from context import ParticipantContext, ParticipantIdentity
from errors import TransportError
from mpiMGR import DATA_TAG, NAME_TAG, MPIManager


def _ctx(comm, host):
    mgr = MPIManager(comm, host=host)
    return ParticipantContext(mgr.identity(), mgr.size, mgr)


def test_collect_orders_by_rank_and_tags_origins(run_group, host_of):
    chunk = 3

    def target(comm):
        rank = comm.Get_rank()
        collector = Collector(_ctx(comm, host_of(rank)), chunk, np.int64)
        local = np.full(chunk, rank * 10, dtype=np.int64)
        if rank == 0:
            return collector.collect(local)
        collector.send(local)
        return None

    world, results, errors = run_group(4, target)
    assert errors == [None] * 4

    final = results[0]
    np.testing.assert_array_equal(final.values, np.repeat([0, 10, 20, 30], chunk))
    assert final.origins == [ParticipantIdentity(r, host_of(r)) for r in range(4)]
    for rank in range(4):
        np.testing.assert_array_equal(final.slice_for(rank), np.full(chunk, rank * 10))
    # identity before data, one pair per worker
    assert sorted(world.sent) == sorted(
        [(r, 0, NAME_TAG) for r in range(1, 4)] + [(r, 0, DATA_TAG) for r in range(1, 4)]
    )


def test_collect_order_independent_of_arrival(run_group, host_of):
    def target(comm):
        rank = comm.Get_rank()
        collector = Collector(_ctx(comm, host_of(rank)), 1, np.float64)
        if rank == 0:
            return collector.collect(np.array([0.0]))
        if rank == 1:
            # rank 1 arrives last
            time.sleep(0.2)
        collector.send(np.array([float(rank)]))
        return None

    _, results, errors = run_group(3, target)
    assert errors == [None] * 3
    np.testing.assert_array_equal(results[0].values, [0.0, 1.0, 2.0])


def test_on_receive_callback(run_group, host_of):
    seen = []

    def target(comm):
        rank = comm.Get_rank()
        collector = Collector(_ctx(comm, host_of(rank)), 2, np.int64)
        if rank == 0:
            return collector.collect(np.zeros(2, dtype=np.int64),
                                     on_receive=lambda ident, res: seen.append((ident.rank, res.tolist())))
        collector.send(np.array([rank, rank], dtype=np.int64))
        return None

    _, _, errors = run_group(3, target)
    assert errors == [None] * 3
    assert seen == [(1, [1, 1]), (2, [2, 2])]


def test_mislabelled_identity_rejected(run_group):
    def target(comm):
        mgr = MPIManager(comm, host="h")
        ctx = ParticipantContext(mgr.identity(), mgr.size, mgr)
        if mgr.rank == 0:
            return Collector(ctx, 1, np.float64).collect(np.array([0.0]))
        # claims to be rank 7
        mgr.send_result(ParticipantIdentity(7, "impostor"), np.array([1.0]))
        return None

    _, _, errors = run_group(2, target)
    assert isinstance(errors[0], TransportError)
    assert "labelled as rank 7" in str(errors[0])


def test_malformed_identity_rejected(run_group):
    def target(comm):
        mgr = MPIManager(comm, host="h")
        ctx = ParticipantContext(mgr.identity(), mgr.size, mgr)
        if mgr.rank == 0:
            return Collector(ctx, 1, np.float64).collect(np.array([0.0]))
        mgr.send_result("node-1", np.array([1.0]))
        return None

    _, _, errors = run_group(2, target)
    assert isinstance(errors[0], TransportError)
    assert "malformed identity" in str(errors[0])


def test_send_checks_result_shape(run_group):
    def target(comm):
        Collector(_ctx(comm, "h"), 4, np.float64).send(np.zeros(3))

    world, _, errors = run_group(2, target)
    assert all(isinstance(e, TransportError) for e in errors)
    assert world.sent == []


def test_collect_only_on_coordinator(run_group):
    def target(comm):
        return Collector(_ctx(comm, "h"), 1, np.float64).collect(np.zeros(1))

    _, _, errors = run_group(2, target, deadline=0.3)
    assert isinstance(errors[1], RuntimeError)
    assert "coordinator only" in str(errors[1])


@pytest.fixture
def final_result():
    origins = [ParticipantIdentity(0, "a"), ParticipantIdentity(1, "b")]
    return FinalResult(np.array([1.0, 2.0, 3.0, 4.0]), origins, 2)


def test_final_result_frame(final_result):
    df = final_result.to_frame()
    assert list(df.columns) == ["index", "value", "rank", "host"]
    assert df["rank"].tolist() == [0, 0, 1, 1]
    assert df["host"].tolist() == ["a", "a", "b", "b"]
    assert len(final_result) == 4


def test_final_result_csv(final_result, tmp_path):
    path = tmp_path / "result.csv"
    final_result.to_csv(str(path))
    df = pd.read_csv(path)
    np.testing.assert_array_equal(df["value"].to_numpy(), [1.0, 2.0, 3.0, 4.0])
    assert df["host"].tolist() == ["a", "a", "b", "b"]
