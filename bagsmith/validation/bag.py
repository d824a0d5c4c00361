"""
This module provides the validator for the base BagIt specification.  

Validation collects every discrepancy it can find into a ValidationReport 
rather than stopping at the first one.  The only problem that stops 
validation outright is an unreadable or unsupported bag declaration 
(bagit.txt), as nothing else in the bag can be interpreted without it.  The 
validator never modifies the bag.
"""
import codecs, logging

from .base import (Validator, ValidationReport, Finding, 
                   MALFORMED_MANIFEST, INCONSISTENT_MANIFEST_SCOPE, 
                   MISSING_FILE, UNDECLARED_FILE, CHECKSUM_MISMATCH, 
                   OXUM_MISMATCH, MALFORMED_OXUM, MISSING_PAYLOAD_DIRECTORY,
                   MISSING_MANIFEST, MALFORMED_TAG_FILE, UNREADABLE_FILE,
                   SKIPPED_SYMLINK, UNSUPPORTED_MANIFEST, FETCH_PENDING,
                   BYTE_ORDER_MARK, DUPLICATE_OXUM)
from ..access import open_bag_fs, describe
from ..constants import PAYLOAD, TAG, DATA_DIR, LABEL_PAYLOAD_OXUM
from ..digest import DigestRegistry
from ..exceptions import (BagError, StructuralError, ConfigurationError,
                          IoFailure, IO_ERRORS, ALGORITHM_NOT_DECLARED)
from ..fixity import hash_entries
from ..manifest import Manifest, ManifestSet, find_manifests
from ..phases import (OperationTracker, WALKING, HASHING, RECONCILING)
from ..tags import (BagDeclaration, BagInfo, PayloadOxum, declared_oxum,
                    read_fetch_file)
from ..walker import TreeWalker, is_tag_manifest

log = logging.getLogger(__name__)

class BagValidator(Validator):
    """
    A validator that tests whether a given bag complies with the base BagIt
    specification and that its payload and tag files match their manifests.
    """

    def __init__(self, bag, algorithms=None, registry=None, workers=1,
                 cancel=None, logger=None):
        """
        initialize the validator for the bag with a given location.  

        :param bag:          the bag's root directory, as a path, FS URL, or
                             FS instance
        :param algorithms:   the names of the algorithms whose digests should 
                             be verified; if None, all the algorithms the bag
                             declares manifests for are verified
        :param DigestRegistry registry:  the supported algorithms
        :param int workers:  the number of threads to hash files with
        :param cancel:       an optional cancellation flag (with an is_set() 
                             method) checked after each file is hashed
        :param Logger logger:  the logger to report progress and findings to
        """
        self.fs = open_bag_fs(bag)
        super(BagValidator, self).__init__(describe(self.fs, bag))
        self.registry = registry or DigestRegistry.standard()
        self.algorithms = algorithms
        self.workers = workers
        self.cancel = cancel
        self.log = logger or log
        self._tracker = None

    def validate(self, report=None):
        """
        validate the bag, returning a report of all the problems found.

        :param ValidationReport report: a report to add findings to
        :raises StructuralError:  (InvalidDeclaration) if bagit.txt is 
                                  missing, unreadable, or unsupported
        :raises ConfigurationError:  if a requested algorithm is unsupported 
                                  or has no manifest in the bag
        :raises OperationCancelled:  if the cancellation flag gets set
        """
        self._tracker = OperationTracker("validate", self.target, self.log)
        try:
            declaration = BagDeclaration.read(self.fs)
            if report is None:
                report = ValidationReport(self.target, declaration)
            elif report.declaration is None:
                report.declaration = declaration
            self._validate(declaration, report)
        except BagError as ex:
            self._tracker.fail(ex)
            raise
        self._tracker.done()
        return report

    def _add(self, report, finding):
        report.add(finding)
        self._tracker.report_finding(finding)

    def _validate(self, declaration, report):
        encoding = declaration.tag_file_encoding
        payload, pdeclared = self._load_manifests(PAYLOAD, report)
        tags, tdeclared = self._load_manifests(TAG, report)
        selected = self._select_algorithms(payload, tags, pdeclared + tdeclared)

        self._check_consistency(payload, report)
        self._check_consistency(tags, report)

        info = self._load_info(encoding, report)
        pending = self._load_fetch(encoding, report)

        self._tracker.enter(WALKING)
        if not self.fs.isdir(DATA_DIR):
            self._add(report, Finding(MISSING_PAYLOAD_DIRECTORY, DATA_DIR,
                                      "Expected data directory does not exist",
                                      scope=PAYLOAD))

        self._tracker.enter(HASHING)
        sizes = []
        missing = self._reconcile(PAYLOAD, payload, selected, report,
                                  sizes=sizes,
                                  report_undeclared=len(payload) > 0)
        self._reconcile(TAG, tags, selected, report,
                        report_undeclared=len(tags) > 0)

        self._tracker.enter(RECONCILING)
        for path in sorted(missing):
            if path in pending:
                self._add(report, Finding(FETCH_PENDING, path,
                                          "Listed in fetch.txt but not yet "
                                          "present", scope=PAYLOAD))
            else:
                self._add(report, Finding(MISSING_FILE, path, 
                                          "Declared in manifest but not found",
                                          scope=PAYLOAD))

        found = PayloadOxum(sum(sizes), len(sizes))
        self._check_oxum(info, found, bool(pending & missing), report)

    def _load_manifests(self, scope, report):
        # returns the parsed manifests and the names of all the supported
        # algorithms with a manifest file, parsable or not
        mset = ManifestSet(scope)
        declared = []
        for name, scp, suffix in find_manifests(self.fs, scope):
            try:
                alg = self.registry.from_suffix(suffix)
            except ConfigurationError:
                self._add(report, Finding(UNSUPPORTED_MANIFEST, name,
                                          "Manifest algorithm is not "
                                          "supported; ignoring", scope=scope,
                                          algorithm=suffix))
                continue

            declared.append(alg.name)
            try:
                with self.fs.openbin(name) as fd:
                    if fd.read(len(codecs.BOM_UTF8)) == codecs.BOM_UTF8:
                        self._add(report, Finding(BYTE_ORDER_MARK, name,
                                                  "Manifest starts with an "
                                                  "unnecessary byte-order mark",
                                                  scope=scope))
                mset.add(Manifest.read(self.fs, alg, scope, self.log))
            except IO_ERRORS + (IoFailure,) as ex:
                self._add(report, Finding(UNREADABLE_FILE, name, str(ex),
                                          scope=scope))
            except StructuralError as ex:
                finding = Finding(MALFORMED_MANIFEST, name, ex.message,
                                  scope=scope, algorithm=alg.name)
                finding.add_comment(ex.kind)
                if ex.line is not None:
                    finding.add_comment("line {0}".format(ex.line))
                self._add(report, finding)

        if scope == PAYLOAD and not declared:
            self._add(report, Finding(MISSING_MANIFEST, None,
                                      "No payload manifest found", scope=scope))

        return mset, declared

    def _select_algorithms(self, payload, tags, declared):
        if self.algorithms is None:
            return [a.name for a in payload.algorithms + tags.algorithms]

        out = []
        for alg in self.registry.resolve(self.algorithms):
            if alg.name not in declared:
                raise ConfigurationError(ALGORITHM_NOT_DECLARED,
                                         "Bag has no manifest for algorithm: " +
                                         alg.name)
            out.append(alg.name)
        return out

    def _check_consistency(self, mset, report):
        for algname, paths in mset.inconsistencies().items():
            if mset.scope == TAG:
                # a tag manifest cannot list itself
                paths = [p for p in paths if not is_tag_manifest(p)]
            for path in sorted(paths):
                self._add(report, Finding(INCONSISTENT_MANIFEST_SCOPE, path,
                                          "Path is missing from the {0} {1} "
                                          "manifest".format(algname, mset.scope),
                                          scope=mset.scope, algorithm=algname))

    def _load_info(self, encoding, report):
        try:
            return BagInfo.read(self.fs, encoding)
        except (StructuralError, IoFailure) as ex:
            finding = Finding(MALFORMED_TAG_FILE, ex.path, ex.message, scope=TAG)
            if ex.line is not None:
                finding.add_comment("line {0}".format(ex.line))
            self._add(report, finding)
            return BagInfo()

    def _load_fetch(self, encoding, report):
        try:
            return set(e.path for e in read_fetch_file(self.fs, encoding))
        except (StructuralError, IoFailure) as ex:
            finding = Finding(MALFORMED_TAG_FILE, ex.path, ex.message, scope=TAG)
            if ex.line is not None:
                finding.add_comment("line {0}".format(ex.line))
            self._add(report, finding)
            return set()

    def _reconcile(self, scope, mset, selected, report, sizes=None,
                   report_undeclared=True):
        # returns the set of declared paths not found on disk
        declared = mset.paths()
        algs = [m.algorithm for m in mset if m.algorithm.name in selected]
        walker = TreeWalker(self.fs, scope, logger=self.log)
        seen = set()
        undeclared = []

        def _declared_files():
            for entry in walker:
                seen.add(entry.relpath)
                if sizes is not None:
                    sizes.append(entry.size)
                if entry.relpath in declared:
                    yield entry
                else:
                    undeclared.append(entry.relpath)
            if scope == TAG:
                # tag manifests are outside the walk but may be listed too
                for path in sorted(p for p in declared if is_tag_manifest(p)):
                    entry = walker.entry(path)
                    if entry is not None:
                        seen.add(path)
                        yield entry

        for entry, result in hash_entries(self.fs, _declared_files(), algs,
                                          self.workers, self.cancel, self.log,
                                          errors='return'):
            if isinstance(result, IoFailure):
                self._add(report, Finding(UNREADABLE_FILE, entry.relpath,
                                          result.message, scope=scope))
                continue
            for algname, actual in result.items():
                expected = mset[algname].get(entry.relpath)
                if expected is None:
                    continue
                if expected.lower() != actual.lower():
                    self._add(report, Finding(CHECKSUM_MISMATCH, entry.relpath,
                                              scope=scope, algorithm=algname,
                                              expected=expected.lower(),
                                              actual=actual))

        for path in walker.skipped:
            self._add(report, Finding(SKIPPED_SYMLINK, path,
                                      "Symbolic link skipped", scope=scope))
        if report_undeclared:
            for path in sorted(undeclared):
                self._add(report, Finding(UNDECLARED_FILE, path,
                                          "Not listed in any {0} manifest"
                                          .format(scope), scope=scope))

        missing = declared - seen
        if scope == TAG:
            for path in sorted(missing):
                self._add(report, Finding(MISSING_FILE, path,
                                          "Declared in tag manifest but not "
                                          "found", scope=scope))
        return missing

    def _check_oxum(self, info, found, fetch_pending, report):
        values = info.get_all(LABEL_PAYLOAD_OXUM)
        if not values:
            return
        if len(values) > 1:
            self._add(report, Finding(DUPLICATE_OXUM, "bag-info.txt",
                                      "bag-info.txt defines multiple "
                                      "Payload-Oxum values; using the first",
                                      scope=TAG))
        try:
            declared = declared_oxum(info)
        except ValueError as ex:
            self._add(report, Finding(MALFORMED_OXUM, "bag-info.txt", str(ex),
                                      scope=TAG, expected=values[0]))
            return
        if fetch_pending:
            self.log.info("Skipping Payload-Oxum check: payload is awaiting fetch")
            return
        if declared != found:
            self._add(report, Finding(OXUM_MISMATCH, None, scope=PAYLOAD,
                                      expected=str(declared), actual=str(found)))

def validate(bag, algorithms=None, registry=None, workers=1, cancel=None,
             logger=None):
    """
    validate a bag, returning a ValidationReport.  The bag is valid if the 
    report's findings list is empty.  See :py:class:`BagValidator`.

    :raises StructuralError:  (InvalidDeclaration) if the bag's declaration 
                              cannot be read
    """
    return BagValidator(bag, algorithms, registry, workers, cancel,
                        logger).validate()
