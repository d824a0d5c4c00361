# encoding: utf-8
import json
import unittest as test

import bagsmith.validation.base as val
from bagsmith.exceptions import BagError

class TestFinding(test.TestCase):

    def test_ctor(self):
        finding = val.Finding(val.MISSING_FILE, "data/a.txt")
        self.assertEqual(finding.kind, "MissingFile")
        self.assertEqual(finding.path, "data/a.txt")
        self.assertEqual(finding.type, val.ERROR)
        self.assertTrue(finding.is_error())
        self.assertIsNone(finding.scope)
        self.assertEqual(finding.message, "MissingFile")
        self.assertEqual(len(finding.comments), 0)

        finding = val.Finding(val.SKIPPED_SYMLINK, "data/l", "Link skipped",
                              scope="payload", comments="pointed outside")
        self.assertEqual(finding.type, val.WARN)
        self.assertFalse(finding.is_error())
        self.assertEqual(finding.message, "Link skipped")
        self.assertEqual(finding.comments, ("pointed outside",))

        with self.assertRaises(ValueError):
            val.Finding("Goob")

    def test_messages(self):
        finding = val.Finding(val.CHECKSUM_MISMATCH, "data/a", scope="payload",
                              algorithm="md5", expected="00", actual="ff")
        self.assertEqual(finding.message, 
                         "md5 checksum mismatch: expected 00, found ff")
        self.assertEqual(finding.summary, "ERROR: ChecksumMismatch data/a: " +
                         finding.message)
        self.assertEqual(str(finding), finding.summary)
        self.assertEqual(finding.to_tuple(), 
                         ("ChecksumMismatch", "data/a", "payload", "md5", "00",
                          "ff"))

        finding = val.Finding(val.OXUM_MISMATCH, expected="5.1", actual="6.1")
        self.assertEqual(finding.summary, "ERROR: OxumMismatch: Payload-Oxum "
                         "mismatch: expected 5.1, found 6.1")

    def test_comments(self):
        finding = val.Finding(val.MALFORMED_MANIFEST, "manifest-md5.txt", 
                              "Bad line")
        finding.add_comment("MalformedManifestLine")
        finding.add_comment("line 3")
        self.assertEqual(finding.comments, ("MalformedManifestLine", "line 3"))
        self.assertEqual(finding.description, finding.summary + 
                         "\n   MalformedManifestLine\n   line 3")

    def test_json(self):
        finding = val.Finding(val.FETCH_PENDING, "data/big", "awaiting fetch",
                              scope="payload")
        data = json.loads(json.dumps(finding.to_json_obj()))
        self.assertEqual(data["type"], "warning")
        self.assertEqual(data["kind"], "FetchPending")
        self.assertEqual(data["path"], "data/big")
        self.assertEqual(data["comments"], [])

class TestValidationReport(test.TestCase):

    def setUp(self):
        self.report = val.ValidationReport("goob")
        self.report.add(val.Finding(val.MISSING_FILE, "data/a"))
        self.report.add(val.Finding(val.MISSING_FILE, "data/b"))
        self.report.add(val.Finding(val.UNDECLARED_FILE, "data/c"))
        self.report.add(val.Finding(val.SKIPPED_SYMLINK, "data/d"))

    def test_empty(self):
        report = val.ValidationReport("bag")
        self.assertTrue(report.ok())
        self.assertTrue(report.is_valid())
        self.assertEqual(report.count(), 0)
        self.assertEqual(report.findings, [])

    def test_counts(self):
        self.assertFalse(self.report.ok())
        self.assertEqual(len(self.report.findings), 3)
        self.assertEqual(len(self.report.warnings), 1)
        self.assertEqual(self.report.count(), 4)
        self.assertEqual(self.report.count(issuetype=val.ERROR), 3)
        self.assertEqual(self.report.count(issuetype=val.WARN), 1)
        self.assertEqual(self.report.count(val.MISSING_FILE), 2)
        self.assertEqual([f.path for f in self.report.of_kind(val.MISSING_FILE)],
                         ["data/a", "data/b"])
        self.assertEqual(dict(self.report.kinds()), 
                         {"MissingFile": 2, "UndeclaredFile": 1})

    def test_warnings_do_not_invalidate(self):
        report = val.ValidationReport("bag")
        report.add(val.Finding(val.BYTE_ORDER_MARK, "manifest-md5.txt"))
        self.assertTrue(report.ok())

    def test_json(self):
        data = json.loads(json.dumps(self.report.to_json_obj()))
        self.assertEqual(data["target"], "goob")
        self.assertFalse(data["valid"])
        self.assertEqual(len(data["findings"]), 3)
        self.assertEqual(len(data["warnings"]), 1)

class TestBagValidationError(test.TestCase):

    def test_single(self):
        report = val.ValidationReport("bag")
        report.add(val.Finding(val.MISSING_FILE, "data/a", "Not found",
                               comments=["really"]))
        err = val.BagValidationError(report)
        self.assertIsInstance(err, BagError)
        self.assertIs(err.report, report)
        self.assertEqual(str(err), "ERROR: MissingFile data/a: Not found")
        self.assertEqual(err.details, ["really"])

    def test_many(self):
        report = val.ValidationReport("bag")
        for i in range(5):
            report.add(val.Finding(val.MISSING_FILE, "data/{0}".format(i)))
        err = val.BagValidationError(report)
        self.assertEqual(err.message, "5 validation errors detected")
        self.assertEqual(len(err.details), 5)
        self.assertTrue(str(err).startswith("5 validation errors detected, "
                                            "including:"))

class TestValidator(test.TestCase):

    def test_base(self):
        valid8r = val.Validator("bag")
        report = valid8r.validate()
        self.assertEqual(report.target, "bag")
        self.assertTrue(report.ok())
        self.assertTrue(valid8r.is_valid())
        self.assertTrue(valid8r.ensure_valid().ok())

        mine = val.ValidationReport("other")
        self.assertIs(valid8r.validate(mine), mine)


if __name__ == '__main__':
    test.main()
