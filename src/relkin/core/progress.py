"""Progress display for site streaming.

A run may stream millions of sites, and the total is only known when the
caller can count passing sites up front. Bars are drawn on stdout next to
the loguru console handler.
"""

import sys
from collections.abc import Iterable, Iterator
from typing import TextIO, TypeVar

import progressbar

T = TypeVar("T")


def _widgets(label: str, total: int | None) -> list:
    prefix = [f"{label}: "] if label else []
    if total is None:
        return [
            *prefix,
            progressbar.Counter(format="%(value)d sites"),
            " ",
            progressbar.Timer(),
        ]
    return [
        *prefix,
        progressbar.Counter(format=f"%(value)d/{total} sites"),
        " ",
        progressbar.Bar(),
        " ",
        progressbar.Percentage(),
        " ",
        progressbar.AdaptiveETA(),
    ]


def progress_iterator(
    iterable: Iterable[T],
    total: int | None = None,
    desc: str = "",
    fd: TextIO | None = None,
) -> Iterator[T]:
    """Yield from iterable while advancing a progress bar.

    The bar is closed however iteration ends, including a break in the
    caller or an exception from the source.

    Args:
        iterable: Items to pass through, usually sites.
        total: Expected item count; None draws a running counter.
        desc: Label shown before the bar.
        fd: Stream to draw on, sys.stdout when None.
    """
    bar = progressbar.ProgressBar(
        max_value=progressbar.UnknownLength if total is None else total,
        widgets=_widgets(desc, total),
        fd=fd if fd is not None else sys.stdout,
    )
    bar.start()
    count = 0
    try:
        for item in iterable:
            yield item
            count += 1
            bar.update(count)
    finally:
        bar.finish()
