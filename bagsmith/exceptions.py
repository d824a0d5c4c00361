"""
exceptions that can be raised while building, validating, or updating a bag.

There is one exception class per category of failure; the specific failure 
is identified by the exception's ``kind`` attribute, one of the constants 
defined in this module.  Callers that need to react to a particular failure
should test ``kind`` rather than rely on further subclassing.  

Consistency problems detected while validating a bag (missing files, checksum
mismatches, etc.) are not exceptions; they are collected as 
:py:class:`~bagsmith.validation.base.Finding` instances.
"""
import fs.errors

# StructuralError kinds
INVALID_DECLARATION      = "InvalidDeclaration"
MALFORMED_MANIFEST_LINE  = "MalformedManifestLine"
DUPLICATE_MANIFEST_ENTRY = "DuplicateManifestEntry"
PATH_TRAVERSAL           = "PathTraversal"
MALFORMED_TAG_FILE       = "MalformedTagFile"

# ConfigurationError kinds
EMPTY_PAYLOAD            = "EmptyPayload"
UNSUPPORTED_ALGORITHM    = "UnsupportedAlgorithm"
NO_ALGORITHMS            = "NoAlgorithms"
SOURCE_NOT_FOUND         = "SourceNotFound"
INVALID_TAG              = "InvalidTag"
ALGORITHM_NOT_DECLARED   = "AlgorithmNotDeclared"
INVALID_MODE             = "InvalidMode"

# IoFailure and OperationCancelled kinds
IO_FAILURE               = "IoFailure"
CANCELLED                = "Cancelled"

class BagError(Exception):
    """
    a general exception while working with a bag.

    :ivar str kind:  a label identifying the specific failure
    :ivar str path:  the bag-relative path of the file the failure concerns, 
                     if applicable
    :ivar int line:  the (1-based) line number within the file where the 
                     failure was detected, if applicable
    """
    kinds = ()

    def __init__(self, kind, message, path=None, line=None):
        if self.kinds and kind not in self.kinds:
            raise ValueError("{0}: not a recognized kind: {1}"
                             .format(type(self).__name__, kind))
        self.kind = kind
        self.path = path
        self.line = line
        self.message = message
        super(BagError, self).__init__(message)

    def __str__(self):
        out = self.message
        if self.path is not None:
            out = "{0}: {1}".format(self.path, out)
            if self.line is not None:
                out = "{0} (line {1})".format(out, self.line)
        return out

class StructuralError(BagError):
    """
    an exception indicating that the bag (or a file within it) does not 
    have the form required by the BagIt specification.
    """
    kinds = (INVALID_DECLARATION, MALFORMED_MANIFEST_LINE, 
             DUPLICATE_MANIFEST_ENTRY, PATH_TRAVERSAL, MALFORMED_TAG_FILE)

class ConfigurationError(BagError):
    """
    an exception indicating that an operation was requested with inputs 
    that cannot be satisfied.
    """
    kinds = (EMPTY_PAYLOAD, UNSUPPORTED_ALGORITHM, NO_ALGORITHMS,
             SOURCE_NOT_FOUND, INVALID_TAG, ALGORITHM_NOT_DECLARED, 
             INVALID_MODE)

class IoFailure(BagError):
    """
    an exception wrapping an error reported by the underlying filesystem.  
    The original exception is available as the ``cause`` attribute.
    """
    kinds = (IO_FAILURE,)

    def __init__(self, path, cause, message=None):
        self.cause = cause
        if not message:
            message = "I/O failure: {0}".format(str(cause) or type(cause).__name__)
        super(IoFailure, self).__init__(IO_FAILURE, message, path)

class OperationCancelled(BagError):
    """
    an exception indicating that an operation was cancelled by the caller 
    before it completed.
    """
    kinds = (CANCELLED,)

    def __init__(self, message="Operation cancelled"):
        super(OperationCancelled, self).__init__(CANCELLED, message)

IO_ERRORS = (OSError, fs.errors.FSError)
