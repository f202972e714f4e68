# ------------------------------------------------------------
# Author      : Tyson Limato
# Date        : 2025-7-6
# File Name   : main.py
# Description : Runs a scatter/compute/collect round over an MPI group.
#               Rank 0 builds the dataset, scatters equal contiguous
#               chunks (and broadcasts shared data), every rank runs the
#               same local kernel, and rank 0 collects the results in
#               rank order together with the host that produced them.
#
# Usage       : mpirun -np 4 python main.py --workload add
#               mpirun -np 4 python main.py --workload matvec
#               mpirun -np 4 python main.py -w matvec --matrix matrix.csv --vector vector.csv
#               (example_data_generator.py writes matrix.csv and vector.csv)
#
# Dependencies:
#       - mpi4py
#       - numpy
#       - pandas
#       - cupy (only for --gpu, I used the Cuda 12x variant)
# ------------------------------------------------------------
import argparse
import logging
import sys

from context import ParticipantContext
from errors import EXIT_CONFIG, EXIT_TRANSPORT, ConfigurationError, TransportError
from kernels import select_gpu
from mpiMGR import MPIManager
from participant import Participant
from partitioner import MAX_PARTICIPANTS
from workloads import WORKLOADS, get_workload

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scatter a dataset over an MPI group and collect the results on rank 0.")
    parser.add_argument('--workload', '-w', choices=sorted(WORKLOADS), default="add",
                        help="add: A + B elementwise, matvec: A * X by row blocks")
    parser.add_argument('--length', '-n', type=int, default=None,
                        help="vector length (add, default 48) or matrix size N (matvec, default 16)")
    parser.add_argument('--max-procs', type=int, default=MAX_PARTICIPANTS,
                        help="largest group size accepted")
    parser.add_argument('--gpu', action='store_true', help="run the local kernel with CuPy")
    parser.add_argument('--matrix', type=str, help="CSV file with a square matrix (matvec)")
    parser.add_argument('--vector', type=str, help="CSV file with the vector X (matvec, needs --matrix)")
    parser.add_argument('--output', '-o', type=str, help="write the final result to this CSV file")
    parser.add_argument('--quiet', '-q', action='store_true', help="do not dump inputs and partitions")
    parser.add_argument('--log-level', default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def _select_gpu(mpi_mgr, ctx) -> bool:
    """Pin every rank to a device; the group succeeds only if every rank did."""
    ok = True
    try:
        device = select_gpu(ctx.rank)
        logger.info("rank %d using GPU %d", ctx.rank, device)
    except (ImportError, ConfigurationError) as exc:
        logger.error("rank %d cannot use the GPU: %s", ctx.rank, exc)
        ok = False
    # agreed before the first scatter so no rank is left waiting in it
    return mpi_mgr.all_agree(ok)


def main(argv=None, comm=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    # every rank parses the same command line, so these exit everywhere
    if args.vector and not args.matrix:
        parser.error("--vector requires --matrix")
    if args.matrix and args.workload != "matvec":
        parser.error("--matrix is only used by the matvec workload")

    mpi_mgr = MPIManager(comm)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format=f"[rank {mpi_mgr.rank}] %(levelname)s %(name)s: %(message)s")

    workload = get_workload(args.workload, length=args.length, use_gpu=args.gpu,
                            matrix_path=args.matrix, vector_path=args.vector)
    ctx = ParticipantContext(mpi_mgr.identity(), mpi_mgr.size, mpi_mgr)
    logger.info("%s of %d, workload %r", ctx.identity, ctx.size, workload)

    participant = Participant(ctx, workload, max_participants=args.max_procs, quiet=args.quiet)
    try:
        if args.gpu and not _select_gpu(mpi_mgr, ctx):
            return EXIT_CONFIG
        code = participant.run()
    except TransportError as exc:
        logger.error("rank %d: %s", ctx.rank, exc)
        mpi_mgr.abort(EXIT_TRANSPORT)
        return EXIT_TRANSPORT

    if participant.final is not None and args.output:
        participant.final.to_csv(args.output)
        print(f"Final result saved as '{args.output}'")
    return code


if __name__ == "__main__":
    sys.exit(main())
