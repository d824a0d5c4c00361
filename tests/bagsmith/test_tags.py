# encoding: utf-8
import unittest as test

from fs.memoryfs import MemoryFS

import bagsmith.tags as tags
from bagsmith.constants import Version
from bagsmith.exceptions import (StructuralError, ConfigurationError,
                                 INVALID_DECLARATION, MALFORMED_TAG_FILE,
                                 INVALID_TAG, PATH_TRAVERSAL)

class TestTagFormat(test.TestCase):

    def test_parse(self):
        text = "Source-Organization: NIST\r\nExternal-Description: A long\n" \
               "   description\n\tcontinued\n\nContact-Name: Gurn: Cranston\n"
        self.assertEqual(tags.parse_tags(text),
                         [("Source-Organization", "NIST"),
                          ("External-Description", 
                           "A long description continued"),
                          ("Contact-Name", "Gurn: Cranston")])

    def test_parse_malformed(self):
        with self.assertRaises(StructuralError) as cm:
            tags.parse_tags("Label: value\nno colon here\n", "bag-info.txt")
        self.assertEqual(cm.exception.kind, MALFORMED_TAG_FILE)
        self.assertEqual(cm.exception.line, 2)
        self.assertEqual(cm.exception.path, "bag-info.txt")

        with self.assertRaises(StructuralError) as cm:
            tags.parse_tags("  dangling\n")
        self.assertEqual(cm.exception.line, 1)

    def test_format(self):
        self.assertEqual(tags.format_tags([("A", "1"), ("B", "two")]),
                         "A: 1\nB: two\n")
        self.assertEqual(tags.format_tags([]), "")

    def test_check_tag(self):
        tags.check_tag("Contact-Name", "Gurn Cranston")
        tags.check_tag("Contact-Name", "")
        for label, value in [("", "x"), (" Lead", "x"), ("Trail ", "x"),
                             ("A:B", "x"), ("A\nB", "x"), ("Label", "a\nb"),
                             ("Label", "a\rb")]:
            with self.assertRaises(ConfigurationError) as cm:
                tags.check_tag(label, value)
            self.assertEqual(cm.exception.kind, INVALID_TAG)

class TestBagDeclaration(test.TestCase):

    def test_ctor(self):
        decl = tags.BagDeclaration()
        self.assertEqual(decl.version, Version("1.0"))
        self.assertEqual(decl.tag_file_encoding, "UTF-8")
        self.assertEqual(decl.to_bytes(), 
                         b"BagIt-Version: 1.0\nTag-File-Character-Encoding: UTF-8\n")

        decl = tags.BagDeclaration("0.97", "utf8")
        self.assertEqual(str(decl.version), "0.97")

    def test_unsupported(self):
        for version, enc in [("2.0", "UTF-8"), ("1", "UTF-8"), ("1.0.1", "UTF-8"),
                             ("one.zero", "UTF-8"), ("1.0", "ISO-8859-1"),
                             ("1.0", "goob")]:
            with self.assertRaises(StructuralError) as cm:
                tags.BagDeclaration(version, enc)
            self.assertEqual(cm.exception.kind, INVALID_DECLARATION)

    def test_parse(self):
        decl = tags.BagDeclaration.parse([("bagit-version", "0.96"),
                                          ("TAG-FILE-CHARACTER-ENCODING", "UTF-8")])
        self.assertEqual(decl.version, "0.96")
        with self.assertRaises(StructuralError) as cm:
            tags.BagDeclaration.parse([("BagIt-Version", "1.0")])
        self.assertEqual(cm.exception.kind, INVALID_DECLARATION)

    def test_read(self):
        with MemoryFS() as mfs:
            with self.assertRaises(StructuralError) as cm:
                tags.BagDeclaration.read(mfs)
            self.assertEqual(cm.exception.kind, INVALID_DECLARATION)

            mfs.writebytes("bagit.txt", tags.BagDeclaration("0.97").to_bytes())
            self.assertEqual(tags.BagDeclaration.read(mfs).version, "0.97")

            mfs.writebytes("bagit.txt", b"\xef\xbb\xbf" + 
                           tags.BagDeclaration().to_bytes())
            with self.assertRaises(StructuralError) as cm:
                tags.BagDeclaration.read(mfs)
            self.assertEqual(cm.exception.kind, INVALID_DECLARATION)

            mfs.writebytes("bagit.txt", b"BagIt-Version 1.0\n")
            with self.assertRaises(StructuralError) as cm:
                tags.BagDeclaration.read(mfs)
            self.assertEqual(cm.exception.kind, INVALID_DECLARATION)

class TestBagInfo(test.TestCase):

    def test_from_metadata(self):
        info = tags.BagInfo.from_metadata({"Contact-Name": ["Gurn", "Gary"],
                                           "Source-Organization": "NIST"})
        self.assertEqual(info.get_all("contact-name"), ["Gurn", "Gary"])
        self.assertEqual(info.get("SOURCE-organization"), "NIST")
        self.assertEqual(len(info), 3)
        self.assertEqual(len(tags.BagInfo.from_metadata(None)), 0)

        with self.assertRaises(ConfigurationError) as cm:
            tags.BagInfo.from_metadata({"Bad\nLabel": "x"})
        self.assertEqual(cm.exception.kind, INVALID_TAG)

    def test_reserved_not_repeatable(self):
        info = tags.BagInfo()
        info.add("Payload-Oxum", "10.1")
        info.add("payload-oxum", "20.2")
        self.assertEqual(info.get_all("Payload-Oxum"), ["20.2"])
        info.add("Bagging-Date", "2020-01-01")
        info.add("Bagging-Date", "2021-01-01")
        self.assertEqual(info.get_all("Bagging-Date"), ["2021-01-01"])

        info.add("Contact-Email", "a@b")
        info.add("Contact-Email", "c@d")
        self.assertEqual(info.get_all("Contact-Email"), ["a@b", "c@d"])

        info.set("Contact-Email", "e@f")
        self.assertEqual(info.get_all("Contact-Email"), ["e@f"])
        info.remove("CONTACT-EMAIL")
        self.assertNotIn("Contact-Email", info)
        self.assertIsNone(info.get("Contact-Email"))
        self.assertEqual(info.get("Contact-Email", "none"), "none")

    def test_set_in_place(self):
        info = tags.BagInfo([("Payload-Oxum", "1.1"), ("Title", "T"),
                             ("Contact-Name", "a"), ("contact-name", "b")])
        info.set("payload-oxum", "2.2")
        info.set("Contact-Name", "c")
        info.set("Bag-Count", "1 of 2")
        self.assertEqual(list(info), [("Payload-Oxum", "2.2"), ("Title", "T"),
                                      ("Contact-Name", "c"),
                                      ("Bag-Count", "1 of 2")])
        with self.assertRaises(ConfigurationError):
            info.set("Title", "a\nb")

    def test_update(self):
        info = tags.BagInfo([("A", "1"), ("B", "2"), ("A", "3")])
        info.update({"a": ["4", "5"], "C": 6})
        self.assertEqual(list(info), [("B", "2"), ("a", "4"), ("a", "5"), 
                                      ("C", "6")])

    def test_read_write(self):
        with MemoryFS() as mfs:
            self.assertEqual(len(tags.BagInfo.read(mfs)), 0)
            info = tags.BagInfo([("Title", "Sample é"), ("Payload-Oxum", "1.1")])
            mfs.writebytes("bag-info.txt", info.to_bytes())
            back = tags.BagInfo.read(mfs)
            self.assertEqual(list(back), list(info))

            # repeated reserved labels are kept as found when reading
            mfs.writebytes("bag-info.txt", b"Payload-Oxum: 1.1\nPayload-Oxum: 2.2\n")
            self.assertEqual(tags.BagInfo.read(mfs).get_all("Payload-Oxum"),
                             ["1.1", "2.2"])

            mfs.writebytes("bag-info.txt", b"Payload-Oxum 1.1\n")
            with self.assertRaises(StructuralError):
                tags.BagInfo.read(mfs)

class TestPayloadOxum(test.TestCase):

    def test_parse(self):
        ox = tags.PayloadOxum.parse(" 1024.3 ")
        self.assertEqual(ox.byte_count, 1024)
        self.assertEqual(ox.file_count, 3)
        self.assertEqual(str(ox), "1024.3")
        for bad in ("1024", "1024.", "a.3", "1.2.3", "-1.2"):
            with self.assertRaises(ValueError):
                tags.PayloadOxum.parse(bad)

    def test_declared(self):
        self.assertIsNone(tags.declared_oxum(tags.BagInfo()))
        info = tags.BagInfo([("Payload-Oxum", "5.2")])
        self.assertEqual(tags.declared_oxum(info), tags.PayloadOxum(5, 2))

class TestFetch(test.TestCase):

    def test_read(self):
        with MemoryFS() as mfs:
            self.assertEqual(tags.read_fetch_file(mfs), [])
            mfs.writebytes("fetch.txt", 
                           b"https://example.org/a.dat 1024 data/a.dat\r\n\n"
                           b"https://example.org/b.dat - data/b%0A b.dat\n"
                           b"https://example.org/c.dat 0 data/c.dat\n")
            entries = tags.read_fetch_file(mfs)
            self.assertEqual(entries[0], 
                             tags.FetchEntry("https://example.org/a.dat", 1024,
                                             "data/a.dat"))
            self.assertIsNone(entries[1].size)
            self.assertEqual(entries[1].path, "data/b\n b.dat")
            self.assertEqual(entries[2].size, 0)

    def test_malformed(self):
        with MemoryFS() as mfs:
            mfs.writebytes("fetch.txt", b"https://example.org/a.dat big data/a\n")
            with self.assertRaises(StructuralError) as cm:
                tags.read_fetch_file(mfs)
            self.assertEqual(cm.exception.kind, MALFORMED_TAG_FILE)
            self.assertEqual(cm.exception.line, 1)

            mfs.writebytes("fetch.txt", b"\nhttps://example.org/a 1 ../a\n")
            with self.assertRaises(StructuralError) as cm:
                tags.read_fetch_file(mfs)
            self.assertEqual(cm.exception.kind, PATH_TRAVERSAL)
            self.assertEqual(cm.exception.line, 2)
            self.assertEqual(cm.exception.path, "fetch.txt")


if __name__ == '__main__':
    test.main()
