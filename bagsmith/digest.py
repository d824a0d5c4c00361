"""
the registry of checksum algorithms that can be used in bag manifests.

A :py:class:`DigestRegistry` is an immutable table of :py:class:`Algorithm`
instances.  There is no process-wide registry; operations take a registry as 
an argument (defaulting to a freshly built :py:meth:`DigestRegistry.standard`
table) so that the hashing capability can be swapped out.
"""
import hashlib, re
from collections import OrderedDict
from functools import partial

from .exceptions import (ConfigurationError, UNSUPPORTED_ALGORITHM,
                         NO_ALGORITHMS)

_hex_re = re.compile(r'^[0-9a-fA-F]+$')

def _shortname(name):
    return re.sub(r'[-_\s]', '', name).lower()

class DigestAccumulator(object):
    """
    a streaming hash calculation:  feed it bytes with update(), then call 
    finalize() to get the hex digest.
    """
    def __init__(self, algorithm, hasher):
        self.algorithm = algorithm
        self._hasher = hasher
        self._done = None

    def update(self, data):
        if self._done is not None:
            raise RuntimeError("update() called on finalized accumulator")
        self._hasher.update(data)

    def finalize(self):
        """
        return the lower-case hex digest of all the bytes seen.  Subsequent 
        calls return the same value.
        """
        if self._done is None:
            self._done = self._hasher.hexdigest().lower()
        return self._done

class Algorithm(object):
    """
    a description of a supported checksum algorithm

    :ivar str name:       the canonical name, used as the manifest file suffix
                          (e.g. "sha256" in "manifest-sha256.txt")
    :ivar int digest_size: the number of bytes in the digest
    """
    def __init__(self, name, factory, digest_size, aliases=()):
        """
        :param str name:        the canonical manifest suffix
        :param factory:         a no-argument callable returning an object 
                                with hashlib's update()/hexdigest() interface
        :param int digest_size: the length of the digest in bytes
        :param aliases:         other short names this algorithm is known by
        """
        self.name = name
        self._factory = factory
        self.digest_size = digest_size
        self.aliases = tuple(aliases)

    @property
    def hex_length(self):
        """
        the number of hex characters in a digest from this algorithm
        """
        return 2 * self.digest_size

    def new(self):
        """
        return a fresh streaming accumulator
        """
        return DigestAccumulator(self.name, self._factory())

    def is_valid_digest(self, digest):
        """
        return True if the given string looks like a digest produced by this
        algorithm.
        """
        return len(digest) == self.hex_length and bool(_hex_re.match(digest))

    def __eq__(self, other):
        return isinstance(other, Algorithm) and self.name == other.name

    def __ne__(self, other):
        return not (self == other)

    def __hash__(self):
        return hash(self.name)

    def __repr__(self):
        return "Algorithm({0})".format(self.name)

    def __str__(self):
        return self.name

def _standard_algorithms():
    return [
        Algorithm("md5",         hashlib.md5,    16),
        Algorithm("sha1",        hashlib.sha1,   20, ["sha"]),
        Algorithm("sha224",      hashlib.sha224, 28),
        Algorithm("sha256",      hashlib.sha256, 32),
        Algorithm("sha384",      hashlib.sha384, 48),
        Algorithm("sha512",      hashlib.sha512, 64),
        Algorithm("sha3-256",    hashlib.sha3_256, 32),
        Algorithm("sha3-512",    hashlib.sha3_512, 64),
        Algorithm("blake2b-256", partial(hashlib.blake2b, digest_size=32), 32),
        Algorithm("blake2b-512", partial(hashlib.blake2b, digest_size=64), 64,
                  ["blake2b", "blake2"]),
    ]

class DigestRegistry(object):
    """
    an immutable lookup table of supported algorithms.
    """

    def __init__(self, algorithms):
        """
        :param algorithms:  the Algorithm instances to support, in order of 
                            preference
        """
        self._algs = OrderedDict((a.name, a) for a in algorithms)
        self._short = {}
        for alg in self._algs.values():
            for nm in (alg.name,) + alg.aliases:
                self._short.setdefault(_shortname(nm), alg)

    @classmethod
    def standard(cls):
        """
        return a new registry with the algorithms supported by default
        """
        return cls(_standard_algorithms())

    def names(self):
        """
        return the canonical names of the supported algorithms
        """
        return list(self._algs.keys())

    def __contains__(self, name):
        return _shortname(name) in self._short

    def __iter__(self):
        return iter(self._algs.values())

    def __len__(self):
        return len(self._algs)

    def from_suffix(self, suffix):
        """
        return the algorithm whose manifest suffix is given (case-insensitive)

        :raises ConfigurationError:  (UnsupportedAlgorithm) if the suffix is 
                                     not known
        """
        alg = self._algs.get(suffix.lower())
        if not alg:
            raise ConfigurationError(UNSUPPORTED_ALGORITHM,
                                     "Unsupported checksum algorithm: "+suffix)
        return alg

    def get(self, name):
        """
        return the algorithm with the given canonical or short name.  Matching
        ignores case, dashes, and underscores.

        :raises ConfigurationError:  (UnsupportedAlgorithm) if the name is 
                                     not known
        """
        if isinstance(name, Algorithm):
            name = name.name
        alg = self._short.get(_shortname(name))
        if not alg:
            raise ConfigurationError(UNSUPPORTED_ALGORITHM,
                                     "Unsupported checksum algorithm: "+name)
        return alg

    def resolve(self, names):
        """
        convert a list of algorithm names into a list of Algorithm instances,
        dropping duplicates but otherwise preserving order.

        :raises ConfigurationError:  (NoAlgorithms) if the list is empty or 
                                     (UnsupportedAlgorithm) if any name is 
                                     not known
        """
        if isinstance(names, (str, Algorithm)):
            names = [names]
        out = []
        for name in (names or []):
            alg = self.get(name)
            if alg not in out:
                out.append(alg)
        if not out:
            raise ConfigurationError(NO_ALGORITHMS,
                                     "No checksum algorithms requested")
        return out
