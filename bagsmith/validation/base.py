"""
This module provides base classes and infrastructure for bag validation: 
the findings a validator can report, the report that collects them, and the
exception raised when a bag is required to be valid but is not.
"""
from collections import OrderedDict

from ..exceptions import BagError

ERROR = 1
WARN  = 2
ALL   = 3
issuetypes = [ ERROR, WARN ]

type_labels = { ERROR: "error", WARN: "warning" }

# error kinds
MALFORMED_MANIFEST          = "MalformedManifest"
INCONSISTENT_MANIFEST_SCOPE = "InconsistentManifestScope"
MISSING_FILE                = "MissingFile"
UNDECLARED_FILE             = "UndeclaredFile"
CHECKSUM_MISMATCH           = "ChecksumMismatch"
OXUM_MISMATCH               = "OxumMismatch"
MALFORMED_OXUM              = "MalformedOxum"
MISSING_PAYLOAD_DIRECTORY   = "MissingPayloadDirectory"
MISSING_MANIFEST            = "MissingManifest"
MALFORMED_TAG_FILE          = "MalformedTagFile"
UNREADABLE_FILE             = "UnreadableFile"

# warning kinds
SKIPPED_SYMLINK             = "SkippedSymlink"
UNSUPPORTED_MANIFEST        = "UnsupportedManifest"
FETCH_PENDING               = "FetchPending"
BYTE_ORDER_MARK             = "ByteOrderMark"
DUPLICATE_OXUM              = "DuplicateOxum"

error_kinds = (MALFORMED_MANIFEST, INCONSISTENT_MANIFEST_SCOPE, MISSING_FILE,
               UNDECLARED_FILE, CHECKSUM_MISMATCH, OXUM_MISMATCH, 
               MALFORMED_OXUM, MISSING_PAYLOAD_DIRECTORY, MISSING_MANIFEST,
               MALFORMED_TAG_FILE, UNREADABLE_FILE)
warning_kinds = (SKIPPED_SYMLINK, UNSUPPORTED_MANIFEST, FETCH_PENDING,
                 BYTE_ORDER_MARK, DUPLICATE_OXUM)

class Finding(object):
    """
    a discrepancy detected by a validator.  It records the kind of problem,
    the file it concerns, and kind-specific details.

    :ivar str kind:     one of the kind constants defined in this module
    :ivar str path:     the bag-relative path of the file concerned (or None)
    :ivar str scope:    "payload" or "tag", where applicable
    :ivar str algorithm: the checksum algorithm concerned, where applicable
    :ivar str expected: the declared value (e.g. a digest or an oxum)
    :ivar str actual:   the observed value
    """

    def __init__(self, kind, path=None, message=None, scope=None,
                 algorithm=None, expected=None, actual=None, comments=None):
        if kind in error_kinds:
            self.type = ERROR
        elif kind in warning_kinds:
            self.type = WARN
        else:
            raise ValueError("Finding: not a recognized kind: " + str(kind))
        self.kind = kind
        self.path = path
        self.scope = scope
        self.algorithm = algorithm
        self.expected = expected
        self.actual = actual
        self._msg = message
        self._comm = []
        if comments:
            if isinstance(comments, str):
                comments = [ comments ]
            self._comm.extend([str(c) for c in comments])

    def is_error(self):
        return self.type == ERROR

    def add_comment(self, text):
        """
        attach a comment to this finding.  The comment typically provides some
        context-specific information (e.g. a line number)
        """
        self._comm.append(str(text))

    @property
    def comments(self):
        return tuple(self._comm)

    @property
    def message(self):
        if self._msg:
            return self._msg
        if self.kind == CHECKSUM_MISMATCH:
            return "{0} checksum mismatch: expected {1}, found {2}".format(
                self.algorithm, self.expected, self.actual)
        if self.kind == OXUM_MISMATCH:
            return "Payload-Oxum mismatch: expected {0}, found {1}".format(
                self.expected, self.actual)
        return self.kind

    @property
    def summary(self):
        """
        a one-line description of the finding
        """
        out = "{0}: {1}".format(type_labels[self.type].upper(), self.kind)
        if self.path:
            out += " {0}".format(self.path)
        return out + ": " + self.message

    @property
    def description(self):
        """
        the summary followed by any attached comments, one per line
        """
        out = self.summary
        if self._comm:
            out += "\n   " + "\n   ".join(self._comm)
        return out

    def __str__(self):
        return self.summary

    def __repr__(self):
        return "Finding({0}, {1!r})".format(self.kind, self.path)

    def to_tuple(self):
        return (self.kind, self.path, self.scope, self.algorithm,
                self.expected, self.actual)

    def to_json_obj(self):
        """
        return an OrderedDict that can be encoded into a JSON object node
        which contains the data in this Finding.
        """
        return OrderedDict([
            ("type", type_labels[self.type]),
            ("kind", self.kind),
            ("path", self.path),
            ("scope", self.scope),
            ("algorithm", self.algorithm),
            ("expected", self.expected),
            ("actual", self.actual),
            ("message", self.message),
            ("comments", self.comments)
        ])

class ValidationReport(object):
    """
    a container for collecting the findings from validating a bag.  The bag
    is valid if and only if no error findings were collected; warnings do 
    not affect validity.
    """
    ERROR = ERROR
    WARN  = WARN
    ALL   = ALL

    def __init__(self, target, declaration=None):
        """
        :param str target:  a name indicating the bag that is the target of 
                            this report
        """
        self.target = target
        self.declaration = declaration
        self.results = {
            ERROR: [],
            WARN:  []
        }

    @property
    def findings(self):
        """
        the error findings:  an empty list means the bag is valid
        """
        return list(self.results[ERROR])

    @property
    def warnings(self):
        return list(self.results[WARN])

    def add(self, finding):
        self.results[finding.type].append(finding)
        return finding

    def applied(self, issuetype=ALL):
        """
        return a list of the findings of the requested types
        """
        out = []
        if ERROR & issuetype:
            out += self.results[ERROR]
        if WARN & issuetype:
            out += self.results[WARN]
        return out

    def of_kind(self, kind):
        """
        return the findings of the given kind
        """
        return [f for f in self.applied() if f.kind == kind]

    def count(self, kind=None, issuetype=ALL):
        """
        return the number of findings of the given kind (or all kinds)
        """
        if kind:
            return len(self.of_kind(kind))
        return len(self.applied(issuetype))

    def kinds(self):
        """
        return a dictionary mapping the kinds of error findings to their counts
        """
        out = OrderedDict()
        for f in self.results[ERROR]:
            out[f.kind] = out.get(f.kind, 0) + 1
        return out

    def ok(self):
        """
        return True if no error findings were collected
        """
        return len(self.results[ERROR]) == 0

    is_valid = ok

    def to_json_obj(self):
        return OrderedDict([
            ("target", self.target),
            ("valid", self.ok()),
            ("findings", [f.to_json_obj() for f in self.results[ERROR]]),
            ("warnings", [f.to_json_obj() for f in self.results[WARN]])
        ])

class BagValidationError(BagError):
    """
    An exception indicating that the target bag is not valid.  It carries 
    along all of the result details as a ValidationReport ("report").
    """
    kinds = ()

    def __init__(self, report):
        self.report = report

        failed = report.findings
        self.details = []
        if len(failed) == 0:
            # shouldn't happen
            msg = "Unknown bag validation failure"
        elif len(failed) == 1:
            msg = failed[0].summary
            self.details = list(failed[0].comments)
        else:
            msg = "{0} validation errors detected".format(len(failed))
            self.details = [f.description for f in failed]

        super(BagValidationError, self).__init__("BagValidationError", msg)

    def __str__(self):
        failed = self.report.findings
        if len(failed) < 2:
            return self.message

        out = self.message
        if len(failed) > 3:
            out += ", including"
        out += ":"
        for f in failed[0:3]:
            out += "\n\n * "+f.description
        return out

class Validator(object):
    """
    a base class for a class that will apply validation tests to a target
    set at construction.

    This base implementation runs no tests; validate() by default simply 
    returns an empty ValidationReport.  Subclasses should override validate() 
    to run its tests and enter the findings into the returned report.
    """

    def __init__(self, target):
        """
        :param str target:  a name indicating the target bag being validated.
        """
        self.target = target

    def validate(self, report=None):
        """
        run the embedded tests, returning a report.  If the report has no 
        error findings, the bag is considered validated.

        :param ValidationReport report: a report to add findings to; if 
                             provided, this instance will be the one returned
        """
        if report is None:
            report = ValidationReport(self.target)
        return report

    def is_valid(self):
        """
        run the embedded tests and return True if the bag is valid
        """
        return self.validate().ok()

    def ensure_valid(self):
        """
        run the embedded tests; if any of them fail, raise a 
        BagValidationError.

        :raise BagValidationError:  if the bag is not valid
        """
        report = self.validate()
        if not report.ok():
            raise BagValidationError(report)
        return report
