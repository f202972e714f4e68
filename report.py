# Author      : Tyson Limato
# Date        : 2025-7-5
# File Name   : report.py
import numpy as np


def _fmt(values) -> str:
    arr = np.asarray(values).ravel()
    if arr.dtype.kind == "f":
        return " ".join(f"{v:.2f}" for v in arr)
    return " ".join(str(v) for v in arr)


def print_usage(length: int, max_participants: int):
    print(f"You need to use a number of processes that divides {length} evenly "
          f"(at most {max_participants})")


def print_distributing(identity, size: int, workload, is_coordinator: bool):
    arrays = " and ".join(workload.inputs)
    if is_coordinator:
        print(f"{identity} is distributing {arrays} to all {size} processes\n")
    else:
        print(f"{identity} receiving scattered {arrays}")


def print_inputs(workload, datasets, payload):
    """Dump the full inputs on the coordinator (matrix rows, then the broadcast vector)."""
    for label, data in zip(workload.inputs, datasets):
        data = np.asarray(data)
        if data.ndim == 2:
            print(f"Matrix {label}:")
            for row in data:
                print("  " + _fmt(row))
        else:
            print(f"Vector {label}: {_fmt(data)}")
    if payload is not None:
        print("Vector X:")
        print("  " + _fmt(payload))


def print_local(identity, workload, partitions, result, quiet: bool = False):
    lines = [f"{identity} has:"]
    if not quiet:
        for label, part in zip(workload.inputs, partitions):
            if part.ndim == 1:
                lines.append(f"  {label} elements: {_fmt(part)}")
            else:
                lines.append(f"  {label} rows:")
                lines.extend("    " + _fmt(row) for row in part)
    lines.append(f"  {workload.result_label} elements: {_fmt(result)}")
    print("\n".join(lines) + "\n")


def print_sent(identity):
    print(f"{identity} has sent name and result back")


def print_received(identity, result, label: str):
    print(f"{identity} has {label.lower()} elements: {_fmt(result)}")


def print_final(final, title: str):
    print(f"\n{title}:")
    for identity in final.origins:
        print(f"  [rank {identity.rank}, {identity.host}] {_fmt(final.slice_for(identity.rank))}")
    print(f"  all: {_fmt(final.values)}")
