"""
calculation of file digests.  

Every requested algorithm for a file is computed from a single read pass 
through the file.  Independent files may be hashed concurrently by a pool of
worker threads; results come back in completion order and are aggregated by
the calling thread alone.  A caller can cancel a long-running calculation 
between files by setting a cancellation flag (any object with an ``is_set()``
method, such as a ``threading.Event``).
"""
import logging
from multiprocessing.pool import ThreadPool

from .constants import HASH_BLOCK_SIZE
from .exceptions import IoFailure, OperationCancelled, IO_ERRORS

log = logging.getLogger(__name__)

def calc_hashes(filesys, path, algorithms, logger=None):
    """
    return a dictionary of algorithm names to hex digests for the file with
    the given path, reading the file just once.

    :param FS filesys:     the filesystem containing the file
    :param str path:       the path to the file within filesys
    :param algorithms:     the list of Algorithm instances to apply
    :raises IoFailure:  if the file cannot be read
    """
    (logger or log).debug("Calculating checksums for file %s", path)
    accums = [a.new() for a in algorithms]
    try:
        with filesys.openbin(path) as fd:
            while True:
                block = fd.read(HASH_BLOCK_SIZE)
                if not block:
                    break
                for acc in accums:
                    acc.update(block)
    except IO_ERRORS as ex:
        raise IoFailure(path.lstrip('/'), ex)

    return dict((acc.algorithm, acc.finalize()) for acc in accums)

def calc_bytes_hashes(data, algorithms):
    """
    return a dictionary of algorithm names to hex digests for in-memory bytes
    """
    accums = [a.new() for a in algorithms]
    for acc in accums:
        acc.update(data)
    return dict((acc.algorithm, acc.finalize()) for acc in accums)

def check_cancelled(cancel):
    """
    raise OperationCancelled if the given cancellation flag is set
    """
    if cancel is not None and cancel.is_set():
        raise OperationCancelled()

class _Hasher(object):
    # hashes one walker entry for the pool,
    # returning errors as values so that the caller decides their fate
    def __init__(self, filesys, algorithms, logger):
        self.fs = filesys
        self.algorithms = algorithms
        self.log = logger

    def __call__(self, entry):
        try:
            return (entry, calc_hashes(self.fs, entry.abspath, self.algorithms,
                                       self.log), None)
        except IoFailure as ex:
            return (entry, None, ex)

def hash_entries(filesys, entries, algorithms, workers=1, cancel=None,
                 logger=None, errors='raise'):
    """
    iterate through (entry, digests) tuples for the given walker entries.

    :param FS filesys:   the filesystem the entries were found in
    :param entries:      an iterable of walker FileEntry records
    :param algorithms:   the list of Algorithm instances to apply
    :param int workers:  the number of threads to hash with; 1 (the default)
                         hashes in the calling thread
    :param cancel:       an optional cancellation flag with an is_set() method;
                         it is checked after each file is done
    :param str errors:   "raise" (default) to raise an IoFailure when a file
                         cannot be read, or "return" to produce 
                         (entry, IoFailure) in place of the digests
    :raises OperationCancelled:  if the cancellation flag is set
    """
    hasher = _Hasher(filesys, algorithms, logger or log)

    def _deliver(result):
        entry, digests, err = result
        if err is not None:
            if errors == 'raise':
                raise err
            return (entry, err)
        return (entry, digests)

    check_cancelled(cancel)
    if not workers or workers <= 1:
        for entry in entries:
            out = _deliver(hasher(entry))
            check_cancelled(cancel)
            yield out
        return

    pool = ThreadPool(workers)
    try:
        for result in pool.imap_unordered(hasher, entries):
            out = _deliver(result)
            check_cancelled(cancel)
            yield out
    finally:
        pool.terminate()
        pool.join()
