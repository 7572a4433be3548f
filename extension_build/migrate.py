"""Move the contents of one directory into another with compensation.

The filesystem offers no atomic multi-entry move, so :func:`move_dir_contents`
relocates every child concurrently, records each relocation that succeeded,
and reverses those relocations when any sibling fails. The caller either sees
the destination fully populated and the source removed, or the source intact
and the original failure raised.

Usage
-----
Move an extracted release into the working location::

    from pathlib import Path
    from extension_build.migrate import move_dir_contents

    move_dir_contents(Path("site/espocrm-master"), Path("site"))
"""

from __future__ import annotations

import concurrent.futures as cf
import dataclasses
import shutil
import threading
import typing as typ
from pathlib import Path

__all__ = ["MoveRecord", "move_dir_contents", "relocate"]

Mover = typ.Callable[[Path, Path], None]
_T = typ.TypeVar("_T")


@dataclasses.dataclass(slots=True, frozen=True)
class MoveRecord:
    """A relocation that completed successfully."""

    source: Path
    destination: Path


def relocate(source: Path, destination: Path) -> None:
    """Move ``source`` to ``destination`` without overwriting existing entries.

    Raises
    ------
    FileExistsError
        If ``destination`` already exists.
    """
    if destination.exists() or destination.is_symlink():
        message = f"Destination already exists: {destination}"
        raise FileExistsError(message)
    shutil.move(str(source), str(destination))


def move_dir_contents(
    source: Path, destination: Path, *, mover: Mover | None = None
) -> list[MoveRecord]:
    """Move every direct child of ``source`` into ``destination``.

    Parameters
    ----------
    source : Path
        Directory whose children are relocated. Removed on success.
    destination : Path
        Directory receiving the children. Created when absent.
    mover : Callable[[Path, Path], None], optional
        Relocation primitive. Defaults to :func:`relocate`.

    Returns
    -------
    list[MoveRecord]
        The relocations performed, in completion order.

    Raises
    ------
    OSError
        The first relocation failure in child iteration order. Every
        relocation that succeeded has been moved back and ``source`` still
        exists. Failures while moving entries back are attached as notes.
    """
    move = mover or relocate
    children = sorted(source.iterdir())
    destination.mkdir(parents=True, exist_ok=True)

    records: list[MoveRecord] = []
    lock = threading.Lock()

    def _move_child(child: Path) -> None:
        target = destination / child.name
        move(child, target)
        with lock:
            records.append(MoveRecord(source=child, destination=target))

    errors = _run_all(_move_child, children)
    if errors:
        original = errors[0]
        _compensate(records, move, original)
        raise original

    source.rmdir()
    return records


def _run_all(
    func: typ.Callable[[_T], None], items: typ.Sequence[_T]
) -> list[BaseException]:
    """Run ``func`` for every item concurrently and wait for all to settle.

    Returns the failures in the order of ``items``, not in the order they
    happened.
    """
    if not items:
        return []
    with cf.ThreadPoolExecutor(max_workers=len(items)) as pool:
        futures = [pool.submit(func, item) for item in items]
        cf.wait(futures, return_when=cf.ALL_COMPLETED)
    return [exc for future in futures if (exc := future.exception()) is not None]


def _compensate(
    records: list[MoveRecord], move: Mover, original: BaseException
) -> None:
    """Move each recorded entry back to where it came from."""

    def _undo(record: MoveRecord) -> None:
        move(record.destination, record.source)

    for failure in _run_all(_undo, records[::-1]):
        original.add_note(f"Failed to restore entry: {failure}")
