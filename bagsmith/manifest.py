"""
the in-memory model of BagIt manifests, along with their parsing and 
serialization.

A :py:class:`Manifest` holds the entries for one algorithm in one scope 
(payload or tag).  Entries are kept in insertion order in a flat list with a 
path index; serialization sorts an index list by the encoded path so that 
unchanged trees always produce byte-identical manifest files.  A 
:py:class:`ManifestSet` groups the manifests of a single scope and checks 
that they agree with one another.
"""
import logging, re
from collections import OrderedDict

from . import pathcodec
from .constants import PAYLOAD, TAG, manifest_name, manifest_name_re
from .exceptions import (StructuralError, MALFORMED_MANIFEST_LINE,
                         DUPLICATE_MANIFEST_ENTRY, IoFailure, IO_ERRORS)

log = logging.getLogger(__name__)

UNICODE_BYTE_ORDER_MARK = "\ufeff"
_field_re = re.compile(r'^(\S+)\s+(.*)$')

class ManifestEntry(object):
    """
    one logical manifest record: a path and its digests

    :ivar str relative_path:  the (decoded) bag-relative path
    :ivar dict digests:       a map of algorithm names to lower-case hex digests
    """
    __slots__ = ('relative_path', 'digests')

    def __init__(self, relative_path, digests=None):
        self.relative_path = relative_path
        self.digests = OrderedDict(digests or [])

    def __eq__(self, other):
        return isinstance(other, ManifestEntry) and \
               self.relative_path == other.relative_path and \
               dict(self.digests) == dict(other.digests)

    def __ne__(self, other):
        return not (self == other)

    def __repr__(self):
        return "ManifestEntry({0!r}, {1})".format(self.relative_path,
                                                   dict(self.digests))

def parse_manifest_name(filename):
    """
    return a (scope, algorithm-suffix) tuple for a manifest file name, or 
    None if the name is not that of a manifest.
    """
    m = manifest_name_re.match(filename)
    if not m:
        return None
    return ((m.group(1) and TAG) or PAYLOAD, m.group(2).lower())

class Manifest(object):
    """
    the entries of one manifest file:  the digests for one algorithm 
    covering the files of one scope.
    """

    def __init__(self, algorithm, scope=PAYLOAD):
        """
        :param Algorithm algorithm:  the algorithm the digests were made with
        :param str scope:            PAYLOAD or TAG
        """
        self.algorithm = algorithm
        self.scope = scope
        self._entries = []
        self._index = {}

    @property
    def filename(self):
        """
        the name of the file this manifest is stored in
        """
        return manifest_name(self.algorithm.name, self.scope)

    def __len__(self):
        return len(self._entries)

    def __contains__(self, path):
        return path in self._index

    def __iter__(self):
        """
        iterate through the entries in serialization order
        """
        for i in self._sorted_index():
            yield self._entries[i]

    def paths(self):
        """
        return the set of paths listed in this manifest
        """
        return set(self._index.keys())

    def get(self, path, default=None):
        """
        return the digest recorded for the given path
        """
        i = self._index.get(path)
        if i is None:
            return default
        return self._entries[i].digests[self.algorithm.name]

    def add(self, path, digest, line=None):
        """
        add an entry to this manifest.

        :raises StructuralError:  (DuplicateManifestEntry) if the path is 
                                  already listed
        """
        if path in self._index:
            raise StructuralError(DUPLICATE_MANIFEST_ENTRY,
                                  "Path listed more than once: "+repr(path),
                                  self.filename, line)
        self._index[path] = len(self._entries)
        self._entries.append(ManifestEntry(path, [(self.algorithm.name,
                                                   digest.lower())]))

    def _sorted_index(self):
        return sorted(range(len(self._entries)),
                      key=lambda i: pathcodec.sort_key(self._entries[i].relative_path))

    def serialize(self):
        """
        return the contents of the manifest file as a str.  Entries are 
        sorted by the bytes of their encoded paths.
        """
        alg = self.algorithm.name
        return "".join("{0}  {1}\n".format(e.digests[alg],
                                           pathcodec.encode(e.relative_path))
                       for e in self)

    def to_bytes(self):
        return self.serialize().encode('utf-8')

    @classmethod
    def parse(cls, text, algorithm, scope=PAYLOAD, filename=None, logger=None):
        """
        parse the contents of a manifest file.

        :param str text:             the manifest contents
        :param Algorithm algorithm:  the algorithm the manifest is for
        :param str scope:            PAYLOAD or TAG
        :param str filename:         the name to report in errors (defaults to
                                     the conventional name)
        :raises StructuralError:  (MalformedManifestLine) if a line cannot be 
                                  parsed, its digest is malformed, or its path
                                  is not safe, (DuplicateManifestEntry) if a 
                                  path appears twice
        """
        out = cls(algorithm, scope)
        if not filename:
            filename = out.filename
        if text.startswith(UNICODE_BYTE_ORDER_MARK):
            (logger or log).warning("%s is encoded using UTF-8 but contains an "
                                    "unnecessary byte-order mark", filename)
            text = text[1:]

        for num, line in enumerate(text.split("\n"), 1):
            if line.endswith("\r"):
                line = line[:-1]
            if not line.strip():
                continue

            m = _field_re.match(line)
            if not m or not m.group(2).strip():
                raise StructuralError(MALFORMED_MANIFEST_LINE,
                                      "Expected digest and path: "+repr(line),
                                      filename, num)
            digest, encpath = m.group(1), m.group(2)
            if not algorithm.is_valid_digest(digest):
                raise StructuralError(MALFORMED_MANIFEST_LINE,
                                      "Not a valid {0} digest: {1}"
                                      .format(algorithm.name, digest),
                                      filename, num)
            try:
                path = pathcodec.check_relative(pathcodec.decode(encpath))
            except StructuralError as ex:
                ex.path, ex.line = filename, num
                raise

            out.add(path, digest, num)

        return out

    @classmethod
    def read(cls, filesys, algorithm, scope=PAYLOAD, logger=None):
        """
        read and parse the manifest for the given algorithm and scope from the
        root of a bag's filesystem.

        :raises IoFailure:        if the file cannot be read
        :raises StructuralError:  if the contents cannot be parsed
        """
        filename = manifest_name(algorithm.name, scope)
        try:
            with filesys.openbin(filename) as fd:
                data = fd.read()
        except IO_ERRORS as ex:
            raise IoFailure(filename, ex)
        try:
            text = data.decode('utf-8')
        except UnicodeDecodeError as ex:
            raise StructuralError(MALFORMED_MANIFEST_LINE,
                                  "Manifest is not valid UTF-8: "+str(ex),
                                  filename)
        return cls.parse(text, algorithm, scope, filename, logger)

def find_manifests(filesys, scope=None):
    """
    return a list of (filename, scope, suffix) tuples for the manifest files
    found in the root of the bag's filesystem, sorted by filename.

    :param str scope:  if given, restrict the list to this scope
    """
    out = []
    try:
        names = sorted(filesys.listdir('/'))
    except IO_ERRORS as ex:
        raise IoFailure('/', ex)
    for name in names:
        parsed = parse_manifest_name(name)
        if not parsed or (scope and parsed[0] != scope):
            continue
        if not filesys.isfile(name):
            continue
        out.append((name, parsed[0], parsed[1]))
    return out

class ManifestSet(object):
    """
    the manifests of one scope, at most one per algorithm
    """

    def __init__(self, scope=PAYLOAD, manifests=None):
        self.scope = scope
        self.manifests = OrderedDict()
        for m in (manifests or []):
            self.add(m)

    def add(self, manifest):
        if manifest.scope != self.scope:
            raise ValueError("ManifestSet: manifest scope {0} is not {1}"
                             .format(manifest.scope, self.scope))
        self.manifests[manifest.algorithm.name] = manifest

    def __len__(self):
        return len(self.manifests)

    def __iter__(self):
        return iter(self.manifests.values())

    def __getitem__(self, algname):
        return self.manifests[algname]

    def __contains__(self, algname):
        return algname in self.manifests

    @property
    def algorithms(self):
        return [m.algorithm for m in self.manifests.values()]

    def paths(self):
        """
        return the union of the paths listed in all the manifests
        """
        out = set()
        for m in self.manifests.values():
            out |= m.paths()
        return out

    def inconsistencies(self):
        """
        return a map of the algorithm names to the sets of paths that are 
        listed in some manifest of this scope but missing from the manifest 
        for that algorithm.  Algorithms whose manifests are complete are not 
        included.
        """
        allpaths = self.paths()
        out = OrderedDict()
        for name, m in self.manifests.items():
            missing = allpaths - m.paths()
            if missing:
                out[name] = missing
        return out

    def is_consistent(self):
        return not self.inconsistencies()

    def entries(self):
        """
        iterate through ManifestEntry records that combine the digests from 
        all the manifests, in serialization order.
        """
        for path in sorted(self.paths(), key=pathcodec.sort_key):
            yield self.entry(path)

    def entry(self, path):
        """
        return the ManifestEntry combining the digests for the given path, or
        None if no manifest lists it.
        """
        digests = OrderedDict()
        for name, m in self.manifests.items():
            d = m.get(path)
            if d is not None:
                digests[name] = d
        if not digests:
            return None
        return ManifestEntry(path, digests)
