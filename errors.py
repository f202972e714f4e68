# Author      : Tyson Limato
# Date        : 2025-7-2
# File Name   : errors.py

# Process exit codes
EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_TRANSPORT = 3


class ConfigurationError(ValueError):
    """
    The group size does not fit the dataset.

    Raised identically on every rank before any communication takes place,
    so each participant can terminate on its own without telling the others.
    """


class TransportError(RuntimeError):
    """
    A collective or point-to-point call failed (size mismatch, corrupted
    group, mislabelled message). Fatal for the whole run, never retried.
    """


class ProtocolStallError(RuntimeError):
    """
    A participant waited on a peer that never reached the matching call.

    Over MPI this is not detectable and shows up as a hang. Transports that
    can put a deadline on a wait (the in-process test group) raise it.
    """
