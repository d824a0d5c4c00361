"""
This module creates a bag from a directory that already contains its 
payload in a ``data`` subdirectory.

The payload is walked once; each file is read once, feeding every requested
algorithm at the same time.  The new control files (bagit.txt, bag-info.txt,
the payload and tag manifests, and the stat record) are assembled in memory
and committed together only after all hashing succeeds.  The payload itself
is never modified.
"""
import logging
from datetime import date

from .access import open_bag_fs, describe
from .constants import (PAYLOAD, TAG, DATA_DIR, BAGIT_TXT, BAG_INFO_TXT,
                        STAT_CACHE_TXT, DEFAULT_ALGORITHMS, LABEL_BAGGING_DATE,
                        LABEL_PAYLOAD_OXUM, LABEL_SOFTWARE_AGENT, 
                        SOFTWARE_AGENT)
from .digest import DigestRegistry
from .exceptions import (BagError, ConfigurationError, IoFailure, IO_ERRORS,
                         SOURCE_NOT_FOUND, EMPTY_PAYLOAD)
from .fixity import hash_entries, calc_bytes_hashes, check_cancelled
from .manifest import Manifest, find_manifests
from .pathcodec import check_encodable
from .phases import OperationTracker, WALKING, HASHING, WRITING
from .staging import StagedWrites
from .statcache import StatCache
from .tags import BagDeclaration, BagInfo, PayloadOxum
from .walker import TreeWalker

log = logging.getLogger(__name__)

def hash_payload(filesys, algorithms, workers=1, cancel=None, logger=None,
                 reuse=None, stats=None, tracker=None):
    """
    walk a bag's payload and compute its manifests.  

    :param FS filesys:     the bag's filesystem
    :param algorithms:     the list of Algorithm instances to apply
    :param int workers:    the number of hashing threads
    :param cancel:         an optional cancellation flag
    :param reuse:          an optional function that takes a walker FileEntry
                           and returns a dictionary of previously computed 
                           digests for it, or None if it must be hashed 
    :param StatCache stats:  if provided, the sizes and modification times 
                           of the files walked are recorded in it
    :param OperationTracker tracker:  if provided, moved to the WALKING 
                           phase as the walk starts and to HASHING as the 
                           first file is handed off to be hashed
    :raises StructuralError:  if a file name cannot be written into a 
                           manifest
    :return: a tuple containing the list of Manifests (one per algorithm), 
             the PayloadOxum, and the number of files actually hashed
    """
    manifests = [Manifest(a, PAYLOAD) for a in algorithms]
    found = []
    kept = []

    def _advance(phase):
        # the walk may run in a pool thread after the operation has failed
        if tracker and not tracker.finished:
            tracker.enter(phase)

    def _to_hash():
        _advance(WALKING)
        for entry in TreeWalker(filesys, PAYLOAD, logger=logger):
            check_encodable(entry.relpath)
            found.append(entry)
            if reuse:
                prior = reuse(entry)
                if prior is not None:
                    kept.append((entry, prior))
                    continue
            _advance(HASHING)
            yield entry

    hashed = 0
    for entry, digests in hash_entries(filesys, _to_hash(), algorithms, 
                                       workers, cancel, logger):
        for m in manifests:
            m.add(entry.relpath, digests[m.algorithm.name])
        hashed += 1
    for entry, digests in kept:
        for m in manifests:
            m.add(entry.relpath, digests[m.algorithm.name])
    check_cancelled(cancel)

    if stats is not None:
        for entry in found:
            stats.record(entry)
    return manifests, PayloadOxum.of(found), hashed

def _encodable(entries):
    for entry in entries:
        check_encodable(entry.relpath)
        yield entry

def add_tag_manifests(filesys, staged, algorithms, workers=1, cancel=None,
                      logger=None):
    """
    compute tag manifests covering the control files registered with a 
    StagedWrites (from their in-memory contents) and any other tag files 
    already in the bag, and register the tag manifests with it.

    :param FS filesys:           the bag's filesystem
    :param StagedWrites staged:  the pending control file writes
    :param algorithms:           the list of Algorithm instances to apply
    """
    manifests = [Manifest(a, TAG) for a in algorithms]
    pending = staged.names()
    for name in pending:
        digests = calc_bytes_hashes(staged[name], algorithms)
        for m in manifests:
            m.add(name, digests[m.algorithm.name])

    walker = TreeWalker(filesys, TAG, exclude=pending + staged.discarded(),
                        logger=logger)
    for entry, digests in hash_entries(filesys, _encodable(walker), algorithms,
                                       workers, cancel, logger):
        for m in manifests:
            m.add(entry.relpath, digests[m.algorithm.name])

    for m in manifests:
        staged.add(m.filename, m.to_bytes())
    return manifests

def discard_stale_manifests(filesys, staged, algorithms, scope):
    """
    register for deletion any manifest in the given scope whose algorithm is
    not among those being written
    """
    keep = set(a.name for a in algorithms)
    for name, scp, suffix in find_manifests(filesys, scope):
        if suffix not in keep:
            staged.discard(name)

class BagBuilder(object):
    """
    a class that carries out the creation of a bag from a source directory.

    The directory must contain a ``data`` subdirectory holding the payload.
    Calling :py:meth:`build` adds the BagIt control files to the directory.
    """

    def __init__(self, source, algorithms=DEFAULT_ALGORITHMS, metadata=None,
                 registry=None, workers=1, cancel=None, record_stats=True,
                 logger=None):
        """
        set up the creation of a bag.

        :param source:       the directory to turn into a bag, as a path, 
                             FS URL, or FS instance
        :param algorithms:   the names of the checksum algorithms to create 
                             manifests for (at least one is required)
        :param dict metadata:  tags to write into bag-info.txt; a value may be
                             a str or a list of str
        :param DigestRegistry registry:  the supported algorithms
        :param int workers:  the number of threads to hash files with
        :param cancel:       an optional cancellation flag (with an is_set() 
                             method) checked after each file is hashed
        :param bool record_stats:  if True (default), write the bag-stat.txt
                             record that enables fast updates
        :param Logger logger:  the logger to report progress to
        :raises ConfigurationError:  if the source does not exist, an 
                             algorithm is not supported, none are requested,
                             or the metadata cannot be written as tags
        """
        self.fs = open_bag_fs(source)
        self.target = describe(self.fs, source)
        self.registry = registry or DigestRegistry.standard()
        self.algorithms = self.registry.resolve(algorithms)
        self.info = BagInfo.from_metadata(metadata)
        self.workers = workers
        self.cancel = cancel
        self.record_stats = record_stats
        self.log = logger or log

    def build(self):
        """
        create the bag.  

        :raises ConfigurationError:  (SourceNotFound) if there is no data 
                                     directory, (EmptyPayload) if it has no 
                                     files
        :raises IoFailure:   if reading the payload or writing a control 
                             file fails; no control file is left partially 
                             written
        :raises OperationCancelled:  if the cancellation flag gets set; no 
                             control files are written
        """
        tracker = OperationTracker("build", self.target, self.log)
        try:
            self._build(tracker)
        except BagError as ex:
            tracker.fail(ex)
            raise
        tracker.done()

    def _build(self, tracker):
        try:
            if not self.fs.isdir(DATA_DIR):
                raise ConfigurationError(SOURCE_NOT_FOUND,
                                         "Payload directory does not exist",
                                         DATA_DIR)
        except IO_ERRORS as ex:
            raise IoFailure(DATA_DIR, ex)

        stats = StatCache() if self.record_stats else None
        manifests, oxum, hashed = hash_payload(self.fs, self.algorithms,
                                               self.workers, self.cancel,
                                               self.log, stats=stats,
                                               tracker=tracker)
        if oxum.file_count == 0:
            raise ConfigurationError(EMPTY_PAYLOAD, 
                                     "No files found in payload directory",
                                     DATA_DIR)
        self.log.info("Hashed %d payload file(s), %d bytes", oxum.file_count,
                      oxum.byte_count)

        tracker.enter(WRITING)
        info = BagInfo(self.info)
        if LABEL_BAGGING_DATE not in info:
            info.set(LABEL_BAGGING_DATE, date.today().isoformat())
        info.set(LABEL_PAYLOAD_OXUM, str(oxum))
        if LABEL_SOFTWARE_AGENT not in info:
            info.set(LABEL_SOFTWARE_AGENT, SOFTWARE_AGENT)

        staged = StagedWrites(self.fs, self.log)
        staged.add(BAGIT_TXT, BagDeclaration().to_bytes())
        staged.add(BAG_INFO_TXT, info.to_bytes())
        for m in manifests:
            staged.add(m.filename, m.to_bytes())
        if stats is not None:
            staged.add(STAT_CACHE_TXT, stats.to_bytes())
        else:
            staged.discard(STAT_CACHE_TXT)
        discard_stale_manifests(self.fs, staged, self.algorithms, PAYLOAD)
        discard_stale_manifests(self.fs, staged, self.algorithms, TAG)

        add_tag_manifests(self.fs, staged, self.algorithms, self.workers,
                          self.cancel, self.log)
        check_cancelled(self.cancel)
        staged.commit()

def build(source, algorithms=DEFAULT_ALGORITHMS, metadata=None, registry=None,
          workers=1, cancel=None, record_stats=True, logger=None):
    """
    turn a directory containing a ``data`` payload directory into a bag.  
    See :py:class:`BagBuilder`.
    """
    BagBuilder(source, algorithms, metadata, registry, workers, cancel,
               record_stats, logger).build()
