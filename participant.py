# Author      : Tyson Limato
# Date        : 2025-7-5
# File Name   : participant.py
import logging
import time

from collector import Collector
from context import Phase
from distributor import Distributor
from errors import EXIT_CONFIG, EXIT_OK, ConfigurationError
from partitioner import MAX_PARTICIPANTS, validate_group
import report

logger = logging.getLogger(__name__)


class Participant:
    """
    One process of the group, driven through the protocol phases.

    INIT -> CONFIGURED -> DISTRIBUTING -> COMPUTING -> COLLECTING -> REPORTING -> DONE
    on the coordinator; other ranks send their result after COMPUTING and go
    straight to DONE. A rejected configuration jumps from INIT to DONE on
    every rank without any communication.

    Parameters:
    -----------
    ctx : ParticipantContext
        Rank, group size and transport of this process.
    workload : Workload
        Dataset builder and local kernel.
    max_participants : int
        Upper bound on the group size.
    quiet : bool
        Skip dumping inputs and partitions (results are still printed).

    Attributes:
    -----------
    phase_history : list of Phase
        Every phase entered, in order.
    time_history : dict
        Seconds spent in each phase, keyed by phase value.
    final : FinalResult or None
        Merged result, set on the coordinator after a successful run.
    """

    def __init__(self, ctx, workload, max_participants: int = MAX_PARTICIPANTS, quiet: bool = False):
        self.ctx = ctx
        self.workload = workload
        self.max_participants = max_participants
        self.quiet = quiet

        self.phase = Phase.INIT
        self.phase_history = [Phase.INIT]
        self.time_history = {}
        self.final = None
        self.distributor = None
        self._phase_start = time.time()

    def _enter(self, phase: Phase):
        now = time.time()
        elapsed = now - self._phase_start
        self.time_history[self.phase.value] = elapsed
        logger.debug("rank %d: %s -> %s (%.4fs)", self.ctx.rank, self.phase.name, phase.name, elapsed)
        self.phase = phase
        self.phase_history.append(phase)
        self._phase_start = now

    def configure(self):
        """Validate the group against the dataset; identical on every rank."""
        wl = self.workload
        if wl.shape_from_root:
            shape = None
            if self.ctx.is_coordinator:
                try:
                    shape = wl.load()
                except ConfigurationError as exc:
                    logger.error("rank %d: %s", self.ctx.rank, exc)
                    # an empty shape makes every rank fail validation below
                    shape = (0, 0)
            wl.resolve_shape(self.ctx.manager.broadcast_shape(shape, root=self.ctx.root))

        validate_group(wl.length, self.ctx.size, self.max_participants)
        self._enter(Phase.CONFIGURED)

    def distribute(self):
        """
        Scatter every dataset array, then broadcast the shared payload.

        Returns:
        --------
        tuple (list of np.ndarray, np.ndarray or None)
            This rank's partitions and its copy of the payload.
        """
        self._enter(Phase.DISTRIBUTING)
        wl = self.workload

        if self.ctx.is_coordinator:
            datasets, payload = wl.build()
        else:
            datasets, payload = [None] * len(wl.inputs), None

        if not self.quiet:
            report.print_distributing(self.ctx.identity, self.ctx.size, wl, self.ctx.is_coordinator)
            if self.ctx.is_coordinator and wl.payload_shape() is not None:
                report.print_inputs(wl, datasets, payload)

        self.distributor = Distributor(self.ctx, wl.length, self.max_participants)
        # same calls in the same order on every rank
        partitions = [self.distributor.scatter(d, wl.dtype, wl.row_shape()) for d in datasets]
        payload_shape = wl.payload_shape()
        if payload_shape is not None:
            payload = self.distributor.broadcast(payload, payload_shape, wl.dtype)
        return partitions, payload

    def compute(self, partitions, payload=None):
        """Run the local kernel over this rank's partitions."""
        self._enter(Phase.COMPUTING)
        result = self.workload.compute(partitions, payload)

        rows = partitions[0].shape[0]
        if result.shape != (rows,):
            raise ValueError(f"{self.workload.name} kernel returned shape {result.shape} for {rows} rows")

        report.print_local(self.ctx.identity, self.workload, partitions, result, quiet=self.quiet)
        return result

    def finish(self, result):
        """Send the result (other ranks) or collect and report it (coordinator)."""
        wl = self.workload
        collector = Collector(self.ctx, self.distributor.chunk, wl.dtype)

        if not self.ctx.is_coordinator:
            collector.send(result)
            report.print_sent(self.ctx.identity)
            self._enter(Phase.DONE)
            return None

        self._enter(Phase.COLLECTING)
        on_receive = None
        if not self.quiet:
            def on_receive(identity, received):
                report.print_received(identity, received, wl.result_label)
        final = collector.collect(result, on_receive=on_receive)

        self._enter(Phase.REPORTING)
        report.print_final(final, wl.title)
        total = sum(self.time_history.values())
        print(f"Total time: {total:.4f}s")
        print("Ready")
        self._enter(Phase.DONE)
        return final

    def run(self) -> int:
        """
        Walk through every phase.

        Returns:
        --------
        int
            Process exit code. Transport errors propagate to the caller,
            which has to abort the whole group.
        """
        try:
            self.configure()
        except ConfigurationError as exc:
            logger.error("rank %d: configuration rejected: %s", self.ctx.rank, exc)
            report.print_usage(self.workload.length, self.max_participants)
            self._enter(Phase.DONE)
            return EXIT_CONFIG

        partitions, payload = self.distribute()
        result = self.compute(partitions, payload)
        self.final = self.finish(result)
        return EXIT_OK
