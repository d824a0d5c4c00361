"""
tracking of the phases an operation on a bag goes through.

Each of the build, validate, and update operations proceeds through the 
phases INIT, WALKING, HASHING, RECONCILING (validation) or WRITING (build and
update), and finally DONE or FAILED.  An operation never moves back to an 
earlier phase.  Phase changes are reported to a logger as structured records
(with the ``bag_operation`` and ``bag_phase`` attributes set).
"""
import logging

INIT        = "init"
WALKING     = "walking"
HASHING     = "hashing"
RECONCILING = "reconciling"
WRITING     = "writing"
DONE        = "done"
FAILED      = "failed"

_order = { INIT: 0, WALKING: 1, HASHING: 2, RECONCILING: 3, WRITING: 3,
           DONE: 4, FAILED: 4 }

log = logging.getLogger(__name__)

class OperationTracker(object):
    """
    a record of the current phase of one operation on one bag
    """

    def __init__(self, operation, target, logger=None):
        """
        :param str operation:  the name of the operation ("build", etc.)
        :param str target:     a label for the bag being operated on
        :param Logger logger:  where to report phase changes
        """
        self.operation = operation
        self.target = target
        self.log = logger or log
        self.phase = INIT
        self.reason = None

    def _extra(self, **kw):
        kw.update({'bag_operation': self.operation, 'bag_phase': self.phase,
                   'bag_target': self.target})
        return kw

    def enter(self, phase):
        """
        move to the given phase.  Re-entering the current phase is a no-op.

        :raises RuntimeError:  if the phase precedes the current one, or the
                               operation has already finished
        """
        if phase == self.phase:
            return
        if phase not in _order:
            raise ValueError("Unknown phase: " + str(phase))
        if self.finished or _order[phase] <= _order[self.phase]:
            raise RuntimeError("{0}: cannot move from {1} to {2}"
                               .format(self.operation, self.phase, phase))
        self.phase = phase
        self.log.info("%s %s: %s", self.operation, self.target, phase,
                      extra=self._extra())

    def done(self):
        self.enter(DONE)

    def fail(self, reason):
        """
        mark the operation as failed for the given reason (an exception or 
        message).  Does nothing if the operation already finished.
        """
        if self.finished:
            return
        self.reason = reason
        self.phase = FAILED
        self.log.error("%s %s failed: %s", self.operation, self.target, 
                       str(reason), extra=self._extra(bag_reason=str(reason)))

    @property
    def finished(self):
        return self.phase in (DONE, FAILED)

    def report_finding(self, finding):
        """
        send a validation finding to the logger
        """
        level = (finding.is_error() and logging.WARNING) or logging.INFO
        self.log.log(level, "%s", str(finding),
                     extra=self._extra(bag_finding=finding.kind,
                                       bag_path=finding.path))
