"""
the record of payload file sizes and modification times that lets an update 
skip rehashing files that appear not to have changed.

The record is kept in the tag file bag-stat.txt, one line per payload file:
``<size> <mtime> <encoded-path>``.  It is an optimization only; a bag 
without it is complete and valid.
"""
import logging

from . import pathcodec
from .constants import STAT_CACHE_TXT
from .exceptions import (StructuralError, MALFORMED_TAG_FILE, IoFailure,
                         IO_ERRORS)

log = logging.getLogger(__name__)

class StatCache(object):
    """
    a map of bag-relative payload paths to (size, mtime) tuples
    """

    def __init__(self, stats=None):
        self._stats = dict(stats or {})

    def record(self, entry):
        """
        remember the size and modification time of a walker FileEntry
        """
        self._stats[entry.relpath] = (entry.size, entry.mtime)

    def unchanged(self, entry):
        """
        return True if the given walker FileEntry has the same size and 
        modification time as recorded.  A file whose filesystem reports no 
        modification time is never considered unchanged.
        """
        if entry.mtime is None:
            return False
        return self._stats.get(entry.relpath) == (entry.size, entry.mtime)

    def __len__(self):
        return len(self._stats)

    def __contains__(self, path):
        return path in self._stats

    def serialize(self):
        lines = []
        for path in sorted(self._stats, key=pathcodec.sort_key):
            size, mtime = self._stats[path]
            if mtime is None:
                continue
            lines.append("{0} {1!r} {2}\n".format(size, float(mtime),
                                                  pathcodec.encode(path)))
        return "".join(lines)

    def to_bytes(self):
        return self.serialize().encode('utf-8', 'surrogateescape')

    @classmethod
    def parse(cls, text):
        """
        :raises StructuralError:  (MalformedTagFile) if a line is malformed
        """
        out = cls()
        for num, line in enumerate(text.split("\n"), 1):
            if not line.strip():
                continue
            parts = line.split(' ', 2)
            try:
                if len(parts) != 3:
                    raise ValueError("expected 3 fields")
                out._stats[pathcodec.decode(parts[2])] = (int(parts[0]),
                                                          float(parts[1]))
            except (ValueError, StructuralError) as ex:
                raise StructuralError(MALFORMED_TAG_FILE, 
                                      "Bad stat record: "+str(ex),
                                      STAT_CACHE_TXT, num)
        return out

    @classmethod
    def read(cls, filesys, logger=None):
        """
        read the stat record from the bag, returning None if the bag does not
        have one or it cannot be used.
        """
        logger = logger or log
        try:
            if not filesys.isfile(STAT_CACHE_TXT):
                return None
            with filesys.openbin(STAT_CACHE_TXT) as fd:
                return cls.parse(fd.read().decode('utf-8', 'surrogateescape'))
        except IO_ERRORS as ex:
            raise IoFailure(STAT_CACHE_TXT, ex)
        except StructuralError as ex:
            logger.warning("Ignoring unusable stat record: %s", str(ex))
            return None
