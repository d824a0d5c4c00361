"""
an engine for creating, validating, and updating BagIt bags (RFC 8493).

The three main operations are available as functions:

``build(source, algorithms)``
    turn a directory holding its payload in a ``data`` subdirectory into a
    bag by adding the BagIt control files.
``validate(bag)``
    check a bag's payload and tag files against its manifests, returning a
    ValidationReport listing every problem found.
``update(bag, mode)``
    bring an existing bag's manifests up to date with changes to its payload.

Each is also available as a class (BagBuilder, BagValidator, BagUpdater) for
callers that want to hold on to the configured operation.  Bags can be given
as local directory paths, FS URLs, or pyfilesystem2 FS instances.
"""
from .constants import FULL_RESCAN, FAST, DEFAULT_ALGORITHMS, BAGSMITH_VERSION
from .exceptions import (BagError, StructuralError, ConfigurationError,
                         IoFailure, OperationCancelled)
from .digest import DigestRegistry, Algorithm
from .manifest import Manifest, ManifestEntry, ManifestSet
from .tags import BagDeclaration, BagInfo, PayloadOxum
from .walker import TreeWalker
from .builder import BagBuilder, build
from .validation import (BagValidator, ValidationReport, Finding,
                         BagValidationError, validate)
from .updater import BagUpdater, update

__version__ = BAGSMITH_VERSION
