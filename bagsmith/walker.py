"""
deterministic traversal of the payload or tag files of a bag.
"""
import logging
from collections import namedtuple

from fs.enums import ResourceType
import fs.path

from .constants import (PAYLOAD, TAG, DATA_DIR, TEMP_PREFIX, 
                        TAG_MANIFEST_PREFIX, manifest_name_re)
from .exceptions import IoFailure, IO_ERRORS

log = logging.getLogger(__name__)

FileEntry = namedtuple("FileEntry", "relpath abspath size mtime")
FileEntry.__doc__ = """
a regular file found by a TreeWalker.

:ivar str relpath:  the path relative to the bag's root directory (payload 
                    files start with "data/")
:ivar str abspath:  the absolute path within the bag's filesystem
:ivar int size:     the size of the file in bytes
:ivar float mtime:  the file's modification time as seconds since the epoch
                    (or None if the filesystem does not report it)
"""

def is_tag_manifest(name):
    m = manifest_name_re.match(name)
    return bool(m and m.group(1))

class TreeWalker(object):
    """
    an iterable over the regular files of one scope of a bag.  

    Each iteration re-reads the filesystem, so the walker can be iterated 
    more than once.  Files are produced lazily, in an order that is the same
    every time for the same tree:  at each directory level, entries are 
    visited sorted by name.  Symbolic links are never followed; they are 
    skipped, logged, and recorded in the ``skipped`` attribute (which is 
    reset at the start of each iteration).  
    """

    def __init__(self, filesys, scope=PAYLOAD, exclude=None, logger=None):
        """
        :param FS filesys:  the filesystem whose root is the bag's root 
                            directory
        :param str scope:   either PAYLOAD (the files under data/) or TAG
                            (everything else, except the tag manifests)
        :param exclude:     additional root-relative file paths to leave out
        :param Logger logger:  the logger to send warnings to
        """
        if scope not in (PAYLOAD, TAG):
            raise ValueError("TreeWalker: unrecognized scope: " + str(scope))
        self.fs = filesys
        self.scope = scope
        self.exclude = set(exclude or [])
        self.log = logger or log
        self.skipped = []

    def __iter__(self):
        self.skipped = []
        if self.scope == PAYLOAD:
            if not self._isdir(DATA_DIR):
                return iter([])
            return self._walk(DATA_DIR)
        return self._walk('')

    def _isdir(self, path):
        try:
            return self.fs.isdir(path)
        except IO_ERRORS as ex:
            raise IoFailure(path, ex)

    def _skip_at_root(self, name):
        # in-flight staged files only ever appear at the root
        if self.scope != TAG:
            return False
        return name == DATA_DIR or is_tag_manifest(name) or \
               name.startswith(TEMP_PREFIX)

    def _walk(self, reldir):
        try:
            entries = sorted(self.fs.scandir(reldir or '/', namespaces=['link']),
                             key=lambda i: i.name)
        except IO_ERRORS as ex:
            raise IoFailure(reldir or '/', ex)

        for info in entries:
            if not reldir and self._skip_at_root(info.name):
                continue
            relpath = (reldir and reldir + '/' + info.name) or info.name
            if relpath in self.exclude:
                continue

            if info.get('link', 'target') is not None:
                self.log.warning("Skipping symbolic link: %s", relpath,
                                 extra={'bag_skipped': relpath})
                self.skipped.append(relpath)
                continue

            if info.is_dir:
                for entry in self._walk(relpath):
                    yield entry
                continue

            entry = self._file_entry(relpath)
            if entry is None:
                self.log.debug("Skipping non-regular file: %s", relpath)
                continue
            yield entry

    def _file_entry(self, relpath):
        abspath = fs.path.abspath(relpath)
        try:
            details = self.fs.getinfo(abspath, namespaces=['details'])
        except IO_ERRORS as ex:
            raise IoFailure(relpath, ex)
        if details.type != ResourceType.file:
            return None
        return FileEntry(relpath, abspath, details.size,
                         details.get('details', 'modified'))

    def entry(self, relpath):
        """
        return the FileEntry for a single root-relative path, whether or not
        this walker's scope would visit it, or None if it does not exist or
        is not a regular file.  Symbolic links are not followed.
        """
        try:
            if not self.fs.exists(relpath):
                return None
            info = self.fs.getinfo(relpath, namespaces=['link'])
        except IO_ERRORS as ex:
            raise IoFailure(relpath, ex)
        if info.get('link', 'target') is not None:
            return None
        return self._file_entry(relpath)

def walk(filesys, scope=PAYLOAD, exclude=None, logger=None):
    """
    iterate through the regular files in the given scope of a bag.  See 
    :py:class:`TreeWalker`.
    """
    return iter(TreeWalker(filesys, scope, exclude, logger))
