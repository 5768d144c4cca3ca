#!/usr/bin/env python
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Collects the verdict of a single mock's expectation check.

A mocking framework normally reports unmet expectations straight into the
running test.  The Collector instead hands the framework's native check a
private Recorder, so that the diagnostic text can be returned as a value and
qualified with the path of the attribute that holds the mock.

Typical usage:

  collector = verdict.Collector()
  error = collector.CheckMock(handler.service, ('service',))
  if error is not None:
    raise error
"""

import logging
import threading

from mox3 import mox

_LOG = logging.getLogger(__name__)

# Records from loggers under this prefix are never captured.
_OWN_LOGGER_PREFIX = 'mockwalk'

ROOT_PATH = '<subject>'


class Error(AssertionError):
  """Base exception for this module."""

  pass


class UnmetExpectationsError(Error):
  """Raised when a mock reachable from a subject has unmet expectations."""

  def __init__(self, path, diagnostic):
    """Init exception.

    Args:
      # path: tuple of field names leading to the mock.
      # diagnostic: the text reported by the mocking framework.
      path: tuple
      diagnostic: str
    """

    Error.__init__(self)
    self.path = tuple(path)
    self.diagnostic = diagnostic

  @property
  def dotted_path(self):
    return FormatPath(self.path)

  def __str__(self):
    return ("assert expectations failed for mock field '%s':\n%s"
            % (self.dotted_path, self.diagnostic))


def FormatPath(path):
  """Render a field path as a dotted string."""
  if not path:
    return ROOT_PATH
  return '.'.join(path)


class Recorder(object):
  """A diagnostic sink handed to a native expectation check.

  It mirrors the reporting calls a test harness offers: formatted failure
  messages, formatted informational messages and an abort request.  Nothing
  is written anywhere; the lines are kept for the Collector.
  """

  def __init__(self):
    self.errors = []
    self.logs = []

  def Errorf(self, format, *args):
    self.errors.append(_Format(format, args))

  def Logf(self, format, *args):
    self.logs.append(_Format(format, args))

  def FailNow(self):
    # Collection continues; the native check's return value is the verdict.
    pass


def _Format(format, args):
  if args:
    return format % args
  return format


class _RecorderHandler(logging.Handler):
  """Routes log records emitted during a native check into a Recorder.

  Only records emitted by the thread running the check are kept.
  """

  def __init__(self, recorder):
    logging.Handler.__init__(self)
    self._recorder = recorder
    self._thread = threading.get_ident()

  def filter(self, record):
    if record.thread != self._thread:
      return False
    if (record.name == _OWN_LOGGER_PREFIX or
        record.name.startswith(_OWN_LOGGER_PREFIX + '.') or
        record.name == __name__):
      return False
    return logging.Handler.filter(self, record)

  def emit(self, record):
    self._recorder.Logf('%s', record.getMessage())


class _CapturedLogging(object):
  """Context manager attaching a _RecorderHandler to the root logger."""

  def __init__(self, recorder):
    self._handler = _RecorderHandler(recorder)

  def __enter__(self):
    logging.getLogger().addHandler(self._handler)
    return self._handler

  def __exit__(self, exc_type, exc_value, traceback):
    logging.getLogger().removeHandler(self._handler)
    return False


def AssertMoxExpectations(mock_object, recorder):
  """Native check for mox mocks.

  Args:
    # mock_object: a mox MockAnything or MockObject.
    # recorder: where failure messages are reported.
    mock_object: mox.MockAnything
    recorder: Recorder

  Returns:
    True if every expected method was called, False otherwise.
  """

  # MockAnything.__getattr__ would record a new expected call, so the
  # verification method is looked up on the type.
  try:
    type(mock_object)._Verify(mock_object)
  except mox.Error as e:
    recorder.Errorf('%s', e)
    return False
  return True


class Verdict(object):
  """Outcome of asking one mock whether its expectations were met."""

  def __init__(self, ok, errors=(), logs=()):
    self.ok = ok
    self.errors = list(errors)
    self.logs = list(logs)

  @property
  def diagnostic(self):
    return '\n'.join(self.errors + self.logs)

  def __bool__(self):
    return self.ok

  def __repr__(self):
    return '<Verdict ok=%r errors=%d logs=%d>' % (
        self.ok, len(self.errors), len(self.logs))


class Registry(object):
  """Maps expectation-bearing types to their native check.

  A native check is a callable taking (mock, recorder) and returning True when
  all expectations were met.  Lookup follows the concrete type's MRO, so a
  registered base class covers its subclasses.
  """

  def __init__(self, checks=None):
    self._checks = {}
    for mock_type, native_check in (checks or {}).items():
      self.Register(mock_type, native_check)

  def Register(self, mock_type, native_check):
    if not isinstance(mock_type, type):
      raise TypeError('mock_type must be a class, not %r' % (mock_type,))
    if not callable(native_check):
      raise TypeError('native_check must be callable')
    self._checks[mock_type] = native_check

  def Unregister(self, mock_type):
    del self._checks[mock_type]

  def Copy(self):
    return Registry(dict(self._checks))

  def Lookup(self, value):
    """Return the native check for value, or None if it is not a mock.

    Only type(value) is consulted; mox.MockObject reports the mocked class
    from __class__.
    """
    for klass in type(value).__mro__:
      native_check = self._checks.get(klass)
      if native_check is not None:
        return native_check
    return None

  def IsMock(self, value):
    return self.Lookup(value) is not None

  def __contains__(self, mock_type):
    return mock_type in self._checks

  def __len__(self):
    return len(self._checks)


DEFAULT_REGISTRY = Registry({mox.MockAnything: AssertMoxExpectations})


class Collector(object):
  """Runs native expectation checks against a private Recorder."""

  def __init__(self, registry=None, capture_logging=True):
    """Initialize a new Collector.

    Args:
      # registry: mock types and their native checks.  Defaults to mox only.
      # capture_logging: whether log records emitted while a native check
      #   runs are added to the diagnostic.
      registry: Registry
      capture_logging: bool
    """

    if registry is None:
      registry = DEFAULT_REGISTRY
    self.registry = registry
    self.capture_logging = capture_logging

  def Check(self, mock_object, path=()):
    """Ask one mock for its verdict.

    Args:
      mock_object: a value of a registered mock type.
      path: tuple of field names leading to mock_object.

    Returns:
      Verdict

    Raises:
      TypeError: mock_object is not of a registered mock type.
    """

    native_check = self.registry.Lookup(mock_object)
    if native_check is None:
      raise TypeError('%s is not a registered mock type'
                      % type(mock_object).__name__)

    recorder = Recorder()
    _LOG.debug('checking expectations for %s', FormatPath(path))
    if self.capture_logging:
      with _CapturedLogging(recorder):
        ok = native_check(mock_object, recorder)
    else:
      ok = native_check(mock_object, recorder)

    if ok:
      return Verdict(True, logs=recorder.logs)
    return Verdict(False, recorder.errors, recorder.logs)

  def CheckMock(self, mock_object, path=()):
    """Like Check, but fold the verdict into an error or None."""
    result = self.Check(mock_object, path)
    if result.ok:
      return None
    _LOG.debug('unmet expectations for %s', FormatPath(path))
    return UnmetExpectationsError(path, result.diagnostic)
