"""
Common data about the BagIt layout as written and read by bagsmith.
"""
import re

BAGSMITH_VERSION = "0.3"
BAGSMITH_REFERENCE = "https://github.com/usnistgov/bagsmith"

DEFAULT_BAGIT_VERSION = "1.0"
SUPPORTED_BAGIT_VERSIONS = ("0.96", "0.97", "1.0")
DEFAULT_ENCODING = "UTF-8"

DEFAULT_ALGORITHMS = ("sha256",)
HASH_BLOCK_SIZE = 512 * 1024

# file names
BAGIT_TXT = "bagit.txt"
BAG_INFO_TXT = "bag-info.txt"
FETCH_TXT = "fetch.txt"
STAT_CACHE_TXT = "bag-stat.txt"
DATA_DIR = "data"
PAYLOAD_MANIFEST_PREFIX = "manifest"
TAG_MANIFEST_PREFIX = "tagmanifest"
TEMP_PREFIX = ".bagsmith-"

manifest_name_re = re.compile(r'^(tag)?manifest-([A-Za-z0-9-]+)\.txt$')

# scopes
PAYLOAD = "payload"
TAG = "tag"

# bagit.txt labels
LABEL_BAGIT_VERSION = "BagIt-Version"
LABEL_FILE_ENCODING = "Tag-File-Character-Encoding"

# reserved bag-info.txt labels
LABEL_BAGGING_DATE = "Bagging-Date"
LABEL_PAYLOAD_OXUM = "Payload-Oxum"
LABEL_SOFTWARE_AGENT = "Bag-Software-Agent"
LABEL_BAG_SIZE = "Bag-Size"
LABEL_BAG_GROUP_IDENTIFIER = "Bag-Group-Identifier"
LABEL_BAG_COUNT = "Bag-Count"

NON_REPEATABLE_LABELS = (LABEL_BAGGING_DATE, LABEL_PAYLOAD_OXUM,
                         LABEL_SOFTWARE_AGENT, LABEL_BAG_SIZE,
                         LABEL_BAG_GROUP_IDENTIFIER, LABEL_BAG_COUNT)

SOFTWARE_AGENT = "bagsmith v{0} <{1}>".format(BAGSMITH_VERSION,
                                              BAGSMITH_REFERENCE)

# update modes
FULL_RESCAN = "full-rescan"
FAST = "fast"
UPDATE_MODES = (FULL_RESCAN, FAST)

def manifest_name(algorithm, scope=PAYLOAD):
    """
    return the name of the manifest file for the given algorithm suffix and 
    scope.
    """
    prefix = (scope == TAG and TAG_MANIFEST_PREFIX) or PAYLOAD_MANIFEST_PREFIX
    return "{0}-{1}.txt".format(prefix, algorithm)

def _2int(sint):
    try:
        return int(sint)
    except ValueError:
        return -1

class Version(object):
    """
    a version class that can facilitate comparisons
    """

    def __init__(self, vers):
        """
        convert a version string to a Version instance
        """
        if isinstance(vers, str):
            self._vs = vers
            self.fields = tuple(_2int(v) for v in self._vs.split('.'))
        elif isinstance(vers, tuple):
            self._vs = ".".join([str(v) for v in vers])
            self.fields = tuple(vers)
        else:
            raise TypeError("Input version is not str or tuple: " + str(vers))

    def is_major_minor(self):
        """
        return True if this version is of the form MAJOR.MINOR with 
        non-negative integer fields.
        """
        return len(self.fields) == 2 and all(f >= 0 for f in self.fields) and \
               all(p.isdigit() for p in self._vs.split('.'))

    def __str__(self):
        return self._vs

    def __repr__(self):
        return "Version('{0}')".format(self._vs)

    def __hash__(self):
        return hash(self.fields)

    def __eq__(self, other):
        if not isinstance(other, Version):
            other = Version(other)
        return self.fields == other.fields

    def __lt__(self, other):
        if not isinstance(other, Version):
            other = Version(other)
        return self.fields < other.fields

    def __le__(self, other):
        if not isinstance(other, Version):
            other = Version(other)
        return self < other or self == other

    def __ge__(self, other):
        return not (self < other)
    def __gt__(self, other):
        return not self.__le__(other)
    def __ne__(self, other):
        return not (self == other)
