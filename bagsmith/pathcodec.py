"""
encoding and decoding of file paths as they appear in manifest and fetch 
files.

Paths are always written with forward slashes.  A carriage return is written
as ``%0D`` and a line feed as ``%0A``.  So that any path can be recovered 
exactly, a literal ``%`` is written as ``%25`` whenever it is followed by 
``0D``, ``0A``, or ``25`` (ignoring case); any other ``%`` is written as is.
"""
import os, re

from .exceptions import (StructuralError, MALFORMED_MANIFEST_LINE,
                         PATH_TRAVERSAL)

_ambiguous_pct_re = re.compile(r'%(?=0[dDaA]|25)')
_escape_re = re.compile(r'%(0[dD]|0[aA]|25)')
_unescapes = { "0d": "\r", "0a": "\n", "25": "%" }
_drive_re = re.compile(r'^[A-Za-z]:')

def normalize_separators(path):
    """
    convert any OS-specific path separators to forward slashes
    """
    if os.sep != '/':
        path = path.replace(os.sep, '/')
    if os.altsep and os.altsep != '/':
        path = path.replace(os.altsep, '/')
    return path

def encode(path):
    """
    return the form of a path as it should be written into a manifest
    """
    path = normalize_separators(path)
    path = _ambiguous_pct_re.sub("%25", path)
    return path.replace("\r", "%0D").replace("\n", "%0A")

def decode(text):
    """
    return the path represented by its encoded form from a manifest.

    :raises StructuralError:  (MalformedManifestLine) if the text contains a 
                              raw CR or LF, or (PathTraversal) if the decoded
                              path contains a ``..`` segment
    """
    if "\r" in text or "\n" in text:
        raise StructuralError(MALFORMED_MANIFEST_LINE,
                              "Unescaped line break in path: "+repr(text))
    path = _escape_re.sub(lambda m: _unescapes[m.group(1).lower()], text)
    if ".." in path.split('/'):
        raise StructuralError(PATH_TRAVERSAL,
                              "Path escapes its root: "+repr(path))
    return path

def check_relative(path):
    """
    raise an exception if the given (decoded) path could refer to something 
    outside of the bag's root directory.  This catches absolute paths, drive
    letters, home-directory references, and ``..`` segments.

    :raises StructuralError:  (PathTraversal) if the path is unsafe
    :return: the path, unchanged
    """
    norm = normalize_separators(path)
    if norm.startswith('/') or norm.startswith('~') or _drive_re.match(norm) \
       or ".." in norm.split('/'):
        raise StructuralError(PATH_TRAVERSAL,
                              "Path is not safely relative: "+repr(path))
    return path

def sort_key(path):
    """
    the key that orders paths in a manifest: the UTF-8 bytes of the 
    encoded path
    """
    return encode(path).encode('utf-8', 'surrogateescape')

def check_encodable(path):
    """
    raise an exception if the given path cannot be written into a manifest
    as UTF-8 (e.g. a file name read from disk that is not valid UTF-8)

    :raises StructuralError:  (MalformedManifestLine) naming the path
    :return: the path, unchanged
    """
    try:
        path.encode('utf-8')
    except UnicodeEncodeError:
        raise StructuralError(MALFORMED_MANIFEST_LINE,
                              "File name is not valid UTF-8 and cannot be "
                              "listed in a manifest", path)
    return path
