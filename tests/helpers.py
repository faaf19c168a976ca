import itertools

from kvlet import MemoryWorkingArea, Repository
from kvlet.kv.memory import Memory


def make_repo(store=None, workdir=None, **kwargs):
    """Repository with a deterministic, strictly increasing clock."""
    ticks = itertools.count(1)
    return Repository(
        store if store is not None else Memory(),
        workdir if workdir is not None else MemoryWorkingArea(),
        clock=lambda: float(next(ticks)),
        **kwargs,
    )


def write_and_commit(repo, message, **files):
    for name, content in files.items():
        repo.workdir.write(name, content)
        repo.add(name)
    return repo.commit(message)
