"""
reading and writing the tag files that describe a bag:  the bag declaration
(bagit.txt), the bag metadata (bag-info.txt), and the fetch list (fetch.txt).  
It also provides the Payload-Oxum summary.

Tag files contain lines of the form ``Label: value``; a line starting with 
whitespace continues the value of the previous tag.  Labels are matched 
case-insensitively.
"""
import codecs, logging, re
from collections import namedtuple

from . import pathcodec
from .constants import (Version, BAGIT_TXT, BAG_INFO_TXT, FETCH_TXT,
                        DEFAULT_BAGIT_VERSION, SUPPORTED_BAGIT_VERSIONS,
                        DEFAULT_ENCODING, LABEL_BAGIT_VERSION,
                        LABEL_FILE_ENCODING, LABEL_PAYLOAD_OXUM,
                        NON_REPEATABLE_LABELS)
from .exceptions import (StructuralError, ConfigurationError, IoFailure, 
                         IO_ERRORS, INVALID_DECLARATION, MALFORMED_TAG_FILE,
                         INVALID_TAG)

log = logging.getLogger(__name__)

def _is_utf8(encoding):
    try:
        return codecs.lookup(encoding).name == 'utf-8'
    except LookupError:
        return False

def check_tag(label, value):
    """
    raise an exception if the given label and value cannot be written into 
    a tag file.

    :raises ConfigurationError:  (InvalidTag) if the label is empty, starts 
                                 or ends with whitespace, or contains a colon
                                 or line break, or if the value contains a 
                                 line break.
    """
    if not label or label != label.strip():
        raise ConfigurationError(INVALID_TAG, "Tag label must not be empty or "
                                 "start or end with whitespace: "+repr(label))
    if ':' in label or '\r' in label or '\n' in label:
        raise ConfigurationError(INVALID_TAG, "Tag label must not contain a "
                                 "colon or line break: "+repr(label))
    if '\r' in value or '\n' in value:
        raise ConfigurationError(INVALID_TAG, "Value for tag {0} must not "
                                 "contain a line break".format(label))

def parse_tags(text, filename=None):
    """
    parse the contents of a tag file into a list of (label, value) tuples.

    :raises StructuralError:  (MalformedTagFile) if a line is neither a tag 
                              nor a continuation of one
    """
    tags = []
    for num, line in enumerate(text.split("\n"), 1):
        if line.endswith("\r"):
            line = line[:-1]
        if not line.strip():
            continue
        if line[0] in " \t":
            if not tags:
                raise StructuralError(MALFORMED_TAG_FILE,
                                      "Continuation line without a tag",
                                      filename, num)
            label, value = tags[-1]
            tags[-1] = (label, value + " " + line.strip())
            continue
        if ':' not in line:
            raise StructuralError(MALFORMED_TAG_FILE,
                                  "Missing colon separating the label and value",
                                  filename, num)
        label, value = line.split(':', 1)
        tags.append((label.strip(), value.strip()))
    return tags

def format_tags(tags):
    """
    format a list of (label, value) tuples as the contents of a tag file
    """
    return "".join("{0}: {1}\n".format(l, v) for l, v in tags)

def read_tag_file(filesys, filename, encoding='utf-8'):
    """
    read and parse the tag file with the given root-relative name

    :raises IoFailure:        if the file cannot be read
    :raises StructuralError:  (MalformedTagFile) if it cannot be decoded 
                              or parsed
    """
    try:
        with filesys.openbin(filename) as fd:
            data = fd.read()
    except IO_ERRORS as ex:
        raise IoFailure(filename, ex)
    try:
        text = data.decode(encoding)
    except UnicodeDecodeError as ex:
        raise StructuralError(MALFORMED_TAG_FILE, "Not decodable as {0}: {1}"
                              .format(encoding, ex), filename)
    if text.startswith("\ufeff"):
        text = text[1:]
    return parse_tags(text, filename)

class BagDeclaration(object):
    """
    the contents of bagit.txt:  the BagIt version and the tag file encoding.
    """

    def __init__(self, version=DEFAULT_BAGIT_VERSION, encoding=DEFAULT_ENCODING):
        """
        :raises StructuralError:  (InvalidDeclaration) if the version or 
                                  encoding is not supported
        """
        if not isinstance(version, Version):
            version = Version(str(version))
        if not version.is_major_minor():
            raise StructuralError(INVALID_DECLARATION, "Bag version numbers "
                                  "must be MAJOR.MINOR numbers, not "+str(version),
                                  BAGIT_TXT)
        if version not in [Version(v) for v in SUPPORTED_BAGIT_VERSIONS]:
            raise StructuralError(INVALID_DECLARATION, 
                                  "Unsupported bag version: "+str(version),
                                  BAGIT_TXT)
        if not _is_utf8(encoding):
            raise StructuralError(INVALID_DECLARATION,
                                  "Unsupported tag file encoding: "+encoding,
                                  BAGIT_TXT)
        self.version = version
        self.tag_file_encoding = encoding

    def to_tags(self):
        return [(LABEL_BAGIT_VERSION, str(self.version)),
                (LABEL_FILE_ENCODING, self.tag_file_encoding)]

    def to_bytes(self):
        return format_tags(self.to_tags()).encode('utf-8')

    @classmethod
    def parse(cls, tags):
        """
        create a declaration from the tags parsed from bagit.txt

        :raises StructuralError:  (InvalidDeclaration) if a required tag is 
                                  missing or unsupported
        """
        found = dict((l.lower(), v) for l, v in reversed(tags))
        missing = [l for l in (LABEL_BAGIT_VERSION, LABEL_FILE_ENCODING)
                     if l.lower() not in found]
        if missing:
            raise StructuralError(INVALID_DECLARATION,
                                  "Missing required tag in bagit.txt: " +
                                  ", ".join(missing), BAGIT_TXT)
        return cls(found[LABEL_BAGIT_VERSION.lower()],
                   found[LABEL_FILE_ENCODING.lower()])

    @classmethod
    def read(cls, filesys):
        """
        read the declaration from the bag's bagit.txt file.  

        :raises StructuralError:  (InvalidDeclaration) if the file is 
                                  missing, unreadable, or unsupported
        """
        try:
            if not filesys.isfile(BAGIT_TXT):
                raise StructuralError(INVALID_DECLARATION,
                                      "Expected bagit.txt does not exist",
                                      BAGIT_TXT)
            with filesys.openbin(BAGIT_TXT) as fd:
                data = fd.read()
        except IO_ERRORS as ex:
            raise StructuralError(INVALID_DECLARATION,
                                  "Unable to read bagit.txt: "+str(ex), BAGIT_TXT)
        if data.startswith(codecs.BOM_UTF8):
            raise StructuralError(INVALID_DECLARATION, 
                                  "bagit.txt must not contain a byte-order mark",
                                  BAGIT_TXT)
        try:
            tags = parse_tags(data.decode('utf-8'), BAGIT_TXT)
        except (UnicodeDecodeError, StructuralError) as ex:
            raise StructuralError(INVALID_DECLARATION,
                                  "Unable to parse bagit.txt: "+str(ex), BAGIT_TXT)
        return cls.parse(tags)

    def __repr__(self):
        return "BagDeclaration({0}, {1})".format(self.version,
                                                 self.tag_file_encoding)

class BagInfo(object):
    """
    the metadata tags from bag-info.txt, kept in order.  Labels are matched
    case-insensitively.  Reserved labels like Payload-Oxum and Bagging-Date 
    are non-repeatable: setting one replaces any previous occurrences.  Other
    labels may repeat.
    """

    def __init__(self, tags=None):
        self._tags = []
        for label, value in (tags or []):
            self.add(label, value)

    @classmethod
    def from_metadata(cls, metadata):
        """
        create a BagInfo from a dictionary of metadata.  A value can be a str
        or a list of str (for a repeated tag).

        :raises ConfigurationError:  (InvalidTag) if a label or value cannot
                                     be written to a tag file
        """
        out = cls()
        out.update(metadata or {})
        return out

    def update(self, metadata):
        """
        set the tags given in a dictionary; each label present in the 
        dictionary replaces all the existing values for that label.
        """
        items = metadata.items() if hasattr(metadata, 'items') else metadata
        for label, value in items:
            self.remove(label)
            if isinstance(value, (list, tuple)):
                for v in value:
                    self.add(label, v)
            else:
                self.add(label, value)

    def add(self, label, value):
        """
        add a tag.  If the label is a non-repeatable reserved label, any
        existing values are removed first.
        """
        value = str(value)
        check_tag(label, value)
        if label.lower() in [l.lower() for l in NON_REPEATABLE_LABELS]:
            self.remove(label)
        self._tags.append((label, value))

    def set(self, label, value):
        """
        set a tag, replacing all existing values for the label.  The tag
        takes the place of the label's first existing occurrence.
        """
        value = str(value)
        check_tag(label, value)
        out = []
        found = False
        for l, v in self._tags:
            if l.lower() != label.lower():
                out.append((l, v))
            elif not found:
                out.append((l, value))
                found = True
        if not found:
            out.append((label, value))
        self._tags = out

    def remove(self, label):
        self._tags = [t for t in self._tags if t[0].lower() != label.lower()]

    def get(self, label, default=None):
        """
        return the first value for the given label
        """
        for l, v in self._tags:
            if l.lower() == label.lower():
                return v
        return default

    def get_all(self, label):
        """
        return all the values for the given label
        """
        return [v for l, v in self._tags if l.lower() == label.lower()]

    def __contains__(self, label):
        return bool(self.get_all(label))

    def __len__(self):
        return len(self._tags)

    def __iter__(self):
        return iter(list(self._tags))

    def to_bytes(self, encoding='utf-8'):
        return format_tags(self._tags).encode(encoding)

    @classmethod
    def read(cls, filesys, encoding='utf-8'):
        """
        read bag-info.txt from the bag; an empty BagInfo is returned if the
        file does not exist.  Tags are loaded as found, without checking 
        repeatability.

        :raises IoFailure:        if the file cannot be read
        :raises StructuralError:  (MalformedTagFile) if it cannot be parsed
        """
        out = cls()
        if filesys.isfile(BAG_INFO_TXT):
            out._tags = read_tag_file(filesys, BAG_INFO_TXT, encoding)
        return out

class PayloadOxum(namedtuple("PayloadOxum", "byte_count file_count")):
    """
    the summary of a payload's size:  the total number of bytes and of files
    """
    __slots__ = ()

    _oxum_re = re.compile(r'^(\d+)\.(\d+)$')

    @classmethod
    def parse(cls, value):
        """
        parse a Payload-Oxum value of the form ``<bytes>.<files>``

        :raises ValueError:  if the value is malformed
        """
        m = cls._oxum_re.match(value.strip())
        if not m:
            raise ValueError("Malformed Payload-Oxum value: " + value)
        return cls(int(m.group(1)), int(m.group(2)))

    @classmethod
    def of(cls, entries):
        """
        compute the oxum for an iterable of walker FileEntry records
        """
        nb = 0
        nf = 0
        for entry in entries:
            nb += entry.size
            nf += 1
        return cls(nb, nf)

    def __str__(self):
        return "{0}.{1}".format(self.byte_count, self.file_count)

def declared_oxum(info):
    """
    return the PayloadOxum declared in a BagInfo, or None if there is none.

    :raises ValueError:  if the declared value is malformed
    """
    value = info.get(LABEL_PAYLOAD_OXUM)
    if value is None:
        return None
    return PayloadOxum.parse(value)

FetchEntry = namedtuple("FetchEntry", "url size path")

def read_fetch_file(filesys, encoding='utf-8'):
    """
    read the entries from fetch.txt; an empty list is returned if the bag 
    has no fetch.txt.  Sizes given as "-" are returned as None.  

    :raises StructuralError:  (MalformedTagFile) if a line is malformed, or
                              (PathTraversal) if a path is unsafe
    """
    out = []
    if not filesys.isfile(FETCH_TXT):
        return out
    try:
        with filesys.openbin(FETCH_TXT) as fd:
            text = fd.read().decode(encoding)
    except IO_ERRORS as ex:
        raise IoFailure(FETCH_TXT, ex)
    except UnicodeDecodeError as ex:
        raise StructuralError(MALFORMED_TAG_FILE, str(ex), FETCH_TXT)

    for num, line in enumerate(text.split("\n"), 1):
        if line.endswith("\r"):
            line = line[:-1]
        if not line.strip():
            continue
        parts = line.strip().split(None, 2)
        if len(parts) != 3 or not (parts[1] == '-' or parts[1].isdigit()):
            raise StructuralError(MALFORMED_TAG_FILE,
                                  "Expected URL, size, and path: "+repr(line),
                                  FETCH_TXT, num)
        try:
            path = pathcodec.check_relative(pathcodec.decode(parts[2]))
        except StructuralError as ex:
            ex.path, ex.line = FETCH_TXT, num
            raise
        size = None if parts[1] == '-' else int(parts[1])
        out.append(FetchEntry(parts[0], size, path))
    return out
