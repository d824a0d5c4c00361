# encoding: utf-8
import os, hashlib, threading, logging
import tempfile, shutil
import unittest as test

from fs.osfs import OSFS

import bagsmith.updater as updr
from bagsmith.builder import build
from bagsmith.constants import FULL_RESCAN, FAST
from bagsmith.tags import BagInfo
from bagsmith.validation import validate
from bagsmith.validation.base import CHECKSUM_MISMATCH
from bagsmith.exceptions import (ConfigurationError, StructuralError,
                                 IoFailure, OperationCancelled, INVALID_MODE,
                                 NO_ALGORITHMS, MALFORMED_MANIFEST_LINE,
                                 INVALID_DECLARATION)
from tests.bagsmith.mkdata import mkpayload, write_file, read_file
from tests.bagsmith.stubfs import CountingFS, FailingFS, snapshot

try:
    import bagit
except ImportError:
    bagit = None

class TestUpdater(test.TestCase):

    def setUp(self):
        self.tempdir = tempfile.mkdtemp(prefix="_test_updater.")
        self.bagdir = os.path.join(self.tempdir, "samplebag")
        self.size = mkpayload(self.bagdir)
        build(self.bagdir, ["md5", "sha256"], 
              {"Source-Organization": "NIST", "Bagging-Date": "2020-02-02"})

    def tearDown(self):
        shutil.rmtree(self.tempdir)

    def bagfile(self, *path):
        return os.path.join(self.bagdir, *path)

    def rewrite_keeping_stat(self, path, content):
        # replace a file's contents without changing its size or mtime
        st = os.stat(path)
        write_file(path, content)
        self.assertEqual(os.stat(path).st_size, st.st_size)
        os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns))

    def test_ctor(self):
        updater = updr.BagUpdater(self.bagdir)
        self.assertEqual(updater.mode, FULL_RESCAN)
        with self.assertRaises(ConfigurationError) as cm:
            updr.BagUpdater(self.bagdir, "slow")
        self.assertEqual(cm.exception.kind, INVALID_MODE)

    def test_unchanged(self):
        before = dict((n, read_file(self.bagfile(n))) 
                      for n in ("manifest-md5.txt", "manifest-sha256.txt",
                                "tagmanifest-md5.txt", "bag-info.txt"))
        updr.update(self.bagdir)
        for name, content in before.items():
            self.assertEqual(read_file(self.bagfile(name)), content, name)

    def test_full_rescan(self):
        write_file(self.bagfile("data", "trial1.json"), '{"a": 10}\n')
        os.remove(self.bagfile("data", "trial2.json"))
        write_file(self.bagfile("data", "new", "added.txt"), "added\n")
        self.assertFalse(validate(self.bagdir).ok())

        updr.update(self.bagdir)
        report = validate(self.bagdir)
        self.assertEqual(report.findings, [])

        text = read_file(self.bagfile("manifest-md5.txt")).decode()
        self.assertIn("  data/new/added.txt\n", text)
        self.assertNotIn("trial2.json", text)
        self.assertIn(hashlib.md5(b'{"a": 10}\n').hexdigest() + 
                      "  data/trial1.json\n", text)

        info = BagInfo.read(OSFS(self.bagdir))
        self.assertEqual(info.get("Payload-Oxum"), 
                         "{0}.3".format(self.size - 9 + 1 + 6))
        self.assertEqual(info.get("Source-Organization"), "NIST")
        self.assertEqual(info.get("Bagging-Date"), "2020-02-02")
        self.assertFalse(any(n.startswith(".bagsmith-") 
                             for n in os.listdir(self.bagdir)))

    def test_metadata(self):
        updr.update(self.bagdir, metadata={"Source-Organization": "NASA",
                                           "Contact-Name": ["Gurn", "Gary"]})
        info = BagInfo.read(OSFS(self.bagdir))
        self.assertEqual(info.get_all("Source-Organization"), ["NASA"])
        self.assertEqual(info.get_all("Contact-Name"), ["Gurn", "Gary"])
        self.assertTrue(validate(self.bagdir).ok())

        with self.assertRaises(ConfigurationError):
            updr.update(self.bagdir, metadata={"Bad Label:": "x"})

    def test_fast_skips_unchanged(self):
        write_file(self.bagfile("data", "new.txt"), "new\n")
        cfs = CountingFS(OSFS(self.bagdir))
        updr.update(cfs, FAST)
        self.assertEqual(cfs.reads_under("data/"), {"/data/new.txt": 1})
        self.assertTrue(validate(self.bagdir).ok())

    def test_logging(self):
        logger = logging.getLogger("bagsmith.test.updater")
        with self.assertLogs(logger, logging.INFO) as cm:
            updr.update(self.bagdir, FULL_RESCAN, logger=logger)
        phases = [r.bag_phase for r in cm.records if hasattr(r, "bag_phase")]
        self.assertEqual(phases, ["walking", "hashing", "writing", "done"])

        # nothing is handed off for hashing when every file is unchanged
        with self.assertLogs(logger, logging.INFO) as cm:
            updr.update(self.bagdir, FAST, logger=logger)
        phases = [r.bag_phase for r in cm.records if hasattr(r, "bag_phase")]
        self.assertEqual(phases, ["walking", "writing", "done"])

    def test_fast_detects_size_and_mtime(self):
        write_file(self.bagfile("data", "trial1.json"), '{"a": 100}\n')
        path = self.bagfile("data", "trial2.json")
        st = os.stat(path)
        write_file(path, '{"b": 3}\n')
        os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 5000000000))

        cfs = CountingFS(OSFS(self.bagdir))
        updr.update(cfs, FAST)
        self.assertEqual(cfs.reads_under("data/"), 
                         {"/data/trial1.json": 1, "/data/trial2.json": 1})
        self.assertTrue(validate(self.bagdir).ok())

    def test_fast_trusts_size_and_mtime(self):
        self.rewrite_keeping_stat(self.bagfile("data", "trial1.json"), 
                                  '{"a": 7}\n')

        updr.update(self.bagdir, FAST)
        report = validate(self.bagdir)
        self.assertEqual([(f.kind, f.path) for f in report.findings],
                         [(CHECKSUM_MISMATCH, "data/trial1.json")] * 2)

        updr.update(self.bagdir, FULL_RESCAN)
        self.assertTrue(validate(self.bagdir).ok())

    def test_fast_without_stats(self):
        os.remove(self.bagfile("bag-stat.txt"))
        cfs = CountingFS(OSFS(self.bagdir))
        with self.assertLogs("bagsmith.updater", logging.INFO):
            updr.update(cfs, FAST)
        self.assertEqual(len(cfs.reads_under("data/")), 3)
        self.assertTrue(os.path.exists(self.bagfile("bag-stat.txt")))
        self.assertTrue(validate(self.bagdir).ok())

    def test_fast_missing_prior_digest(self):
        lines = read_file(self.bagfile("manifest-sha256.txt")).splitlines(True)
        with open(self.bagfile("manifest-sha256.txt"), 'wb') as fd:
            fd.write(b"".join(lines[1:]))

        cfs = CountingFS(OSFS(self.bagdir))
        updr.update(cfs, FAST)
        self.assertEqual(cfs.reads_under("data/"), {"/data/trial1.json": 1})
        self.assertTrue(validate(self.bagdir).ok())

    def test_tag_algorithms(self):
        os.remove(self.bagfile("tagmanifest-md5.txt"))
        updr.update(self.bagdir)
        self.assertFalse(os.path.exists(self.bagfile("tagmanifest-md5.txt")))
        self.assertTrue(os.path.exists(self.bagfile("tagmanifest-sha256.txt")))

        os.remove(self.bagfile("tagmanifest-sha256.txt"))
        updr.update(self.bagdir)
        self.assertTrue(os.path.exists(self.bagfile("tagmanifest-md5.txt")))
        self.assertTrue(os.path.exists(self.bagfile("tagmanifest-sha256.txt")))
        self.assertTrue(validate(self.bagdir).ok())

    def test_keeps_declaration(self):
        with open(self.bagfile("bagit.txt"), 'w') as fd:
            fd.write("BagIt-Version: 0.97\nTag-File-Character-Encoding: UTF-8\n")
        updr.update(self.bagdir)
        self.assertEqual(read_file(self.bagfile("bagit.txt")),
                         b"BagIt-Version: 0.97\nTag-File-Character-Encoding: UTF-8\n")
        self.assertTrue(validate(self.bagdir).ok())

    def test_errors(self):
        with open(self.bagfile("manifest-md5.txt"), 'a') as fd:
            fd.write("garbage\n")
        before = snapshot(OSFS(self.bagdir))
        with self.assertRaises(StructuralError) as cm:
            updr.update(self.bagdir)
        self.assertEqual(cm.exception.kind, MALFORMED_MANIFEST_LINE)
        self.assertEqual(snapshot(OSFS(self.bagdir)), before)

        for name in ("manifest-md5.txt", "manifest-sha256.txt"):
            os.remove(self.bagfile(name))
        with self.assertRaises(ConfigurationError) as cm:
            updr.update(self.bagdir)
        self.assertEqual(cm.exception.kind, NO_ALGORITHMS)

        os.remove(self.bagfile("bagit.txt"))
        with self.assertRaises(StructuralError) as cm:
            updr.update(self.bagdir)
        self.assertEqual(cm.exception.kind, INVALID_DECLARATION)

    def test_atomic_failure(self):
        write_file(self.bagfile("data", "new.txt"), "new\n")
        before = snapshot(OSFS(self.bagdir))
        ffs = FailingFS(OSFS(self.bagdir), fail_move="tagmanifest-sha256.txt")
        with self.assertRaises(IoFailure):
            updr.update(ffs)
        self.assertEqual(snapshot(OSFS(self.bagdir)), before)

    def test_cancel(self):
        write_file(self.bagfile("data", "new.txt"), "new\n")
        before = snapshot(OSFS(self.bagdir))
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(OperationCancelled):
            updr.update(self.bagdir, FAST, cancel=cancel)
        self.assertEqual(snapshot(OSFS(self.bagdir)), before)

    def test_threaded(self):
        for i in range(10):
            write_file(self.bagfile("data", "more", "{0}.txt".format(i)), 
                       "more {0}\n".format(i) * i)
        updr.update(self.bagdir, workers=4)
        self.assertTrue(validate(self.bagdir).ok())

    @test.skipIf(bagit is None, "bagit library not installed")
    def test_bagit_interop(self):
        write_file(self.bagfile("data", "trial1.json"), '{"a": 1000}\n')
        updr.update(self.bagdir, FAST)
        bagit.Bag(self.bagdir).validate()


if __name__ == '__main__':
    test.main()
