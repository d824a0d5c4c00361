"""
access to the filesystem holding a bag.  

All bag operations work through the pyfilesystem2 (``fs``) interface with 
the filesystem's root set to the bag's root directory.  This allows a bag to 
be given as a local directory path, as an FS URL, or as an already opened FS
instance (which is how tests substitute instrumented filesystems).
"""
import os

import fs
import fs.base
import fs.errors
import fs.osfs

from .exceptions import ConfigurationError, IoFailure, SOURCE_NOT_FOUND

def open_bag_fs(location):
    """
    return an FS instance rooted at the given bag location.

    :param location:  the bag's root directory, given either as a local 
                      path, an FS URL (containing "://"), or an FS instance
    :type location:   str or FS
    :raises ConfigurationError:  (SourceNotFound) if the location does not 
                      exist or is not a directory
    """
    if isinstance(location, fs.base.FS):
        return location
    if not location:
        raise ValueError("open_bag_fs: empty location")
    location = os.fspath(location)

    if '://' in location:
        try:
            return fs.open_fs(location)
        except fs.errors.CreateFailed as ex:
            raise ConfigurationError(SOURCE_NOT_FOUND,
                                     "Unable to open bag location: " + str(ex),
                                     location)
        except fs.errors.FSError as ex:
            raise IoFailure(location, ex)

    if not os.path.isdir(location):
        raise ConfigurationError(SOURCE_NOT_FOUND,
                                 "Directory not found: " + location, location)
    return fs.osfs.OSFS(location)

def describe(filesys, location=None):
    """
    return a label for the bag suitable for messages
    """
    if location and not isinstance(location, fs.base.FS):
        return os.fspath(location)
    try:
        return filesys.getsyspath('/')
    except fs.errors.NoSysPath:
        return repr(filesys)
