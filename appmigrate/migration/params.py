#!/usr/bin/env python3
"""
Parameter diffing for one-directional parameter merges.
"""


def diff_parameters(desired, current):
    """
    Return the parameters in desired whose value is new or different in current.

    Keys present only in current are never part of the result: importing
    parameters merges into the target, it never removes anything.
    """
    current = current or {}
    return {
        key: value
        for key, value in (desired or {}).items()
        if key not in current or current[key] != value
    }
