"""
writing a bag's control files so that readers never see a partial update.

New file contents are first written to temporary siblings of their targets.
The commit then withdraws the bag declaration (bagit.txt) so that the bag is
visibly "not a bag" while files are swapped, renames each temporary file over
its target, and puts the declaration back last.  If anything fails, files 
already replaced are restored from their prior contents, files that did not 
exist before are removed, and the temporary files are deleted.
"""
import logging, uuid
from collections import OrderedDict

from .constants import BAGIT_TXT, TEMP_PREFIX
from .exceptions import IoFailure, IO_ERRORS

log = logging.getLogger(__name__)

class StagedWrites(object):
    """
    a set of control file changes to be committed together.  Typical usage::

        staged = StagedWrites(filesys)
        staged.add("manifest-sha256.txt", data)
        staged.discard("manifest-md5.txt")
        ...
        staged.commit()

    Nothing is written to the filesystem until commit() is called.  All files
    must be in the bag's root directory.
    """

    def __init__(self, filesys, logger=None):
        self.fs = filesys
        self.log = logger or log
        self._token = uuid.uuid4().hex[:12]
        self._files = OrderedDict()
        self.committed = False

    def add(self, name, data):
        """
        register the new contents for a file.  Adding the same name twice 
        replaces the earlier contents.
        """
        if '/' in name.strip('/'):
            raise ValueError("StagedWrites: not a root-level file: " + name)
        self._files[name] = data

    def discard(self, name):
        """
        register a file to be deleted (if it exists) as part of the commit
        """
        self._files[name] = None

    def __contains__(self, name):
        return self._files.get(name) is not None

    def __getitem__(self, name):
        data = self._files[name]
        if data is None:
            raise KeyError(name)
        return data

    def names(self):
        """
        the names of the files that will be written
        """
        return [n for n, d in self._files.items() if d is not None]

    def discarded(self):
        return [n for n, d in self._files.items() if d is None]

    def _tempname(self, name, kind="new"):
        return "{0}{1}-{2}-{3}".format(TEMP_PREFIX, self._token, kind, name)

    def _write(self, path, data):
        with self.fs.openbin(path, 'w') as fd:
            fd.write(data)

    def _remove_quietly(self, path):
        try:
            if self.fs.exists(path):
                self.fs.remove(path)
        except IO_ERRORS as ex:
            self.log.error("Unable to remove %s: %s", path, str(ex))

    def _commit_order(self):
        names = [n for n in self._files if n != BAGIT_TXT]
        if BAGIT_TXT in self._files:
            names.append(BAGIT_TXT)
        return names

    def commit(self):
        """
        write all the registered files into place and delete the discarded 
        ones.

        :raises IoFailure:  if any write fails; in this case, the bag's 
                            control files are left (or put back) as they were
        """
        if self.committed:
            raise RuntimeError("StagedWrites: already committed")
        order = self._commit_order()
        current = None

        # stage
        staged = []
        try:
            for name in order:
                if self._files[name] is None:
                    continue
                current = name
                tmp = self._tempname(name)
                staged.append(tmp)
                self._write(tmp, self._files[name])
        except IO_ERRORS as ex:
            for tmp in staged:
                self._remove_quietly(tmp)
            raise IoFailure(current, ex)

        # remember what is being replaced
        prior = {}
        try:
            for name in order:
                current = name
                if self._files[name] is not None and self.fs.isfile(name):
                    with self.fs.openbin(name) as fd:
                        prior[name] = fd.read()
        except IO_ERRORS as ex:
            for tmp in staged:
                self._remove_quietly(tmp)
            raise IoFailure(current, ex)

        # swap
        withdrawn = None
        replaced = []
        set_aside = []
        try:
            if self.fs.isfile(BAGIT_TXT):
                current = BAGIT_TXT
                withdrawn = self._tempname(BAGIT_TXT, "old")
                self.fs.move(BAGIT_TXT, withdrawn, overwrite=True)
            for name in order:
                current = name
                if self._files[name] is None:
                    if name != BAGIT_TXT and self.fs.isfile(name):
                        self.fs.move(name, self._tempname(name, "old"),
                                     overwrite=True)
                        set_aside.append(name)
                    continue
                self.fs.move(self._tempname(name), name, overwrite=True)
                replaced.append(name)
            if withdrawn and BAGIT_TXT not in self._files:
                current = BAGIT_TXT
                self.fs.move(withdrawn, BAGIT_TXT, overwrite=True)
                withdrawn = None
        except IO_ERRORS as ex:
            self.log.error("Failed to commit %s; restoring prior state", current)
            self._rollback(replaced, set_aside, prior, withdrawn)
            for tmp in staged:
                self._remove_quietly(tmp)
            raise IoFailure(current, ex)

        for name in set_aside:
            self._remove_quietly(self._tempname(name, "old"))
        if withdrawn:
            self._remove_quietly(withdrawn)
        self.committed = True
        self.log.debug("Committed %d control file change(s)", len(order))

    def _rollback(self, replaced, set_aside, prior, withdrawn):
        for name in reversed(replaced):
            try:
                if name not in prior:
                    self._remove_quietly(name)
                else:
                    tmp = self._tempname(name, "restore")
                    self._write(tmp, prior[name])
                    self.fs.move(tmp, name, overwrite=True)
            except IO_ERRORS as ex:
                self.log.error("Unable to restore %s: %s", name, str(ex))

        for name in set_aside:
            try:
                self.fs.move(self._tempname(name, "old"), name, overwrite=True)
            except IO_ERRORS as ex:
                self.log.error("Unable to restore %s: %s", name, str(ex))

        if withdrawn:
            try:
                self.fs.move(withdrawn, BAGIT_TXT, overwrite=True)
            except IO_ERRORS as ex:
                self.log.error("Unable to restore %s: %s", BAGIT_TXT, str(ex))
