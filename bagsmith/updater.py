"""
This module brings the manifests of an existing bag up to date with changes
made to its payload.

Files added to the payload are hashed and added to the manifests; files 
removed from it are dropped.  Payload-Oxum in bag-info.txt is recomputed, 
and the tag manifests are rewritten to cover the new payload manifests.  As 
when building, the new control files are committed together only after all 
hashing has succeeded.

Two change-detection modes are offered:

``full-rescan`` (FULL_RESCAN)
    every payload file is rehashed.
``fast`` (FAST)
    a file whose size and modification time match those recorded in 
    bag-stat.txt when the bag was last built or updated keeps its previously
    recorded digests without being read.  

Fast mode is a trust boundary:  it cannot detect a change to a file's 
contents that leaves its size and modification time as they were (e.g. 
corruption on disk, or a tool that restores timestamps after editing).  Use
full-rescan mode, or validate the bag, when that matters.
"""
import logging

from .access import open_bag_fs, describe
from .builder import hash_payload, add_tag_manifests
from .constants import (PAYLOAD, TAG, BAG_INFO_TXT, STAT_CACHE_TXT,
                        LABEL_PAYLOAD_OXUM, FULL_RESCAN, FAST, UPDATE_MODES)
from .digest import DigestRegistry
from .exceptions import (BagError, ConfigurationError, INVALID_MODE, 
                         NO_ALGORITHMS)
from .fixity import check_cancelled
from .manifest import Manifest, ManifestSet, find_manifests
from .phases import OperationTracker, WRITING
from .staging import StagedWrites
from .statcache import StatCache
from .tags import BagDeclaration, BagInfo

log = logging.getLogger(__name__)

class BagUpdater(object):
    """
    a class that updates the manifests of an existing bag.  See the module 
    documentation for a description of the change-detection modes, including
    the limits of the FAST mode.
    """

    def __init__(self, bag, mode=FULL_RESCAN, metadata=None, registry=None,
                 workers=1, cancel=None, record_stats=True, logger=None):
        """
        set up the update of a bag.

        :param bag:          the bag's root directory, as a path, FS URL, or 
                             FS instance
        :param str mode:     the change-detection mode, FULL_RESCAN (default)
                             or FAST
        :param dict metadata:  tags to set in bag-info.txt; each label given 
                             replaces the existing values for that label
        :param DigestRegistry registry:  the supported algorithms
        :param int workers:  the number of threads to hash files with
        :param cancel:       an optional cancellation flag (with an is_set() 
                             method) checked after each file is hashed
        :param bool record_stats:  if True (default), write the bag-stat.txt
                             record used by later fast updates
        :param Logger logger:  the logger to report progress to
        :raises ConfigurationError:  if the bag does not exist, the mode is 
                             not recognized, or the metadata cannot be 
                             written as tags
        """
        if mode not in UPDATE_MODES:
            raise ConfigurationError(INVALID_MODE, 
                                     "Unrecognized update mode: "+str(mode))
        self.fs = open_bag_fs(bag)
        self.target = describe(self.fs, bag)
        self.mode = mode
        BagInfo.from_metadata(metadata)
        self.metadata = metadata or {}
        self.registry = registry or DigestRegistry.standard()
        self.workers = workers
        self.cancel = cancel
        self.record_stats = record_stats
        self.log = logger or log

    def update(self):
        """
        update the bag's manifests and Payload-Oxum to match its current 
        payload.

        :raises StructuralError:  if the bag's declaration or one of its 
                                  manifests cannot be parsed
        :raises ConfigurationError:  if the bag has no payload manifest or 
                                  uses an unsupported algorithm
        :raises IoFailure:        if reading the payload or writing a control
                                  file fails; no control file is left 
                                  partially written
        :raises OperationCancelled:  if the cancellation flag gets set; no 
                                  control files are written
        """
        tracker = OperationTracker("update", self.target, self.log)
        try:
            self._update(tracker)
        except BagError as ex:
            tracker.fail(ex)
            raise
        tracker.done()

    def _load_manifests(self, scope):
        out = ManifestSet(scope)
        for name, scp, suffix in find_manifests(self.fs, scope):
            out.add(Manifest.read(self.fs, self.registry.from_suffix(suffix),
                                  scope, self.log))
        return out

    def _reuse_function(self, prior):
        if self.mode != FAST:
            return None
        stats = StatCache.read(self.fs, self.log)
        if stats is None:
            self.log.info("No usable stat record; rehashing all payload files")
            return None

        def _reuse(entry):
            if not stats.unchanged(entry):
                return None
            digests = {}
            for m in prior:
                digest = m.get(entry.relpath)
                if digest is None:
                    return None
                digests[m.algorithm.name] = digest
            return digests

        return _reuse

    def _update(self, tracker):
        BagDeclaration.read(self.fs)
        prior = self._load_manifests(PAYLOAD)
        if len(prior) == 0:
            raise ConfigurationError(NO_ALGORITHMS, 
                                     "Bag has no payload manifest to update")
        algorithms = prior.algorithms
        tagalgs = self._load_manifests(TAG).algorithms or algorithms
        info = BagInfo.read(self.fs)
        info.update(self.metadata)

        stats = StatCache() if self.record_stats else None
        manifests, oxum, hashed = hash_payload(self.fs, algorithms, 
                                               self.workers, self.cancel,
                                               self.log,
                                               self._reuse_function(prior),
                                               stats, tracker)
        self.log.info("Rehashed %d of %d payload file(s)", hashed, 
                      oxum.file_count)
        info.set(LABEL_PAYLOAD_OXUM, str(oxum))

        tracker.enter(WRITING)
        staged = StagedWrites(self.fs, self.log)
        staged.add(BAG_INFO_TXT, info.to_bytes())
        for m in manifests:
            staged.add(m.filename, m.to_bytes())
        if stats is not None:
            staged.add(STAT_CACHE_TXT, stats.to_bytes())
        else:
            staged.discard(STAT_CACHE_TXT)

        add_tag_manifests(self.fs, staged, tagalgs, self.workers, self.cancel,
                          self.log)
        check_cancelled(self.cancel)
        staged.commit()

def update(bag, mode=FULL_RESCAN, metadata=None, registry=None, workers=1,
           cancel=None, record_stats=True, logger=None):
    """
    update the manifests of an existing bag.  See :py:class:`BagUpdater`.
    """
    BagUpdater(bag, mode, metadata, registry, workers, cancel, record_stats,
               logger).update()
