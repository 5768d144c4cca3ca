#!/usr/bin/env python
#
# Unit tests for verdict.
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

import logging
import threading
import unittest

from mox3 import mox

import verdict

import mockwalk_test_helper as helper


class RecorderTest(unittest.TestCase):
  """The Recorder keeps failure and log lines apart."""

  def setUp(self):
    self.recorder = verdict.Recorder()

  def testErrorf(self):
    self.recorder.Errorf('%s out of %d', 'none', 2)
    self.assertEqual(['none out of 2'], self.recorder.errors)
    self.assertEqual([], self.recorder.logs)

  def testLogf(self):
    self.recorder.Logf('plain 100% text')
    self.assertEqual(['plain 100% text'], self.recorder.logs)
    self.assertEqual([], self.recorder.errors)

  def testFailNow(self):
    """FailNow records nothing."""
    self.recorder.FailNow()
    self.assertEqual([], self.recorder.errors)
    self.assertEqual([], self.recorder.logs)


class UnmetExpectationsErrorTest(unittest.TestCase):
  """Test string conversion of UnmetExpectationsError."""

  def testMultiLineDiagnostic(self):
    e = verdict.UnmetExpectationsError(
        ('inner', 'service', 'mock'), 'line one\n\tindented')
    self.assertEqual(
        "assert expectations failed for mock field 'inner.service.mock':\n"
        "line one\n"
        "\tindented",
        str(e))

  def testEmptyPath(self):
    e = verdict.UnmetExpectationsError((), 'diag')
    self.assertEqual('<subject>', e.dotted_path)

  def testIsAssertionError(self):
    self.assertTrue(isinstance(verdict.UnmetExpectationsError((), ''),
                               AssertionError))


class AssertMoxExpectationsTest(unittest.TestCase):
  """The native mox check reports through the Recorder."""

  def setUp(self):
    self.mox = mox.Mox()
    self.recorder = verdict.Recorder()

  def testMet(self):
    mock_object = helper.ExpectDoSomething(self.mox)
    mock_object.DoSomething('x')
    self.assertTrue(verdict.AssertMoxExpectations(mock_object, self.recorder))
    self.assertEqual([], self.recorder.errors)

  def testNoExpectations(self):
    mock_object = self.mox.CreateMockAnything()
    self.assertTrue(verdict.AssertMoxExpectations(mock_object, self.recorder))

  def testUnmet(self):
    mock_object = helper.ExpectDoSomething(self.mox)
    self.assertFalse(verdict.AssertMoxExpectations(mock_object, self.recorder))
    error, = self.recorder.errors
    self.assertTrue(error.startswith(
        'Verify: Expected methods never called:\n  0.  '))
    self.assertIn("DoSomething('x') -> None", error)

  def testMultipleTimesSatisfied(self):
    mock_object = self.mox.CreateMockAnything()
    mock_object.Ping().MultipleTimes()
    mock_object._Replay()
    mock_object.Ping()
    mock_object.Ping()
    self.assertTrue(verdict.AssertMoxExpectations(mock_object, self.recorder))

  def testDoesNotRecordCalls(self):
    """Checking a mock in record mode must not add expected calls."""
    mock_object = self.mox.CreateMockAnything()
    verdict.AssertMoxExpectations(mock_object, self.recorder)
    self.assertEqual(0, len(mock_object._expected_calls_queue))


class RegistryTest(unittest.TestCase):
  """Lookup is by concrete type."""

  def setUp(self):
    self.mox = mox.Mox()

  def testMockAnything(self):
    self.assertTrue(verdict.DEFAULT_REGISTRY.IsMock(
        self.mox.CreateMockAnything()))

  def testMockObjectSubclass(self):
    mock_service = self.mox.CreateMock(helper.MockService)
    self.assertTrue(verdict.DEFAULT_REGISTRY.Lookup(mock_service)
                    is verdict.AssertMoxExpectations)

  def testNotAMock(self):
    self.assertFalse(verdict.DEFAULT_REGISTRY.IsMock(helper.Handler(None)))
    self.assertFalse(verdict.DEFAULT_REGISTRY.IsMock(None))

  def testRegisterRejectsNonClass(self):
    registry = verdict.Registry()
    self.assertRaises(TypeError, registry.Register, 'FakeMock',
                      helper.AssertFakeExpectations)
    self.assertRaises(TypeError, registry.Register, helper.FakeMock, None)

  def testCopyIsIndependent(self):
    registry = verdict.DEFAULT_REGISTRY.Copy()
    registry.Register(helper.FakeMock, helper.AssertFakeExpectations)
    self.assertEqual(2, len(registry))
    self.assertFalse(helper.FakeMock in verdict.DEFAULT_REGISTRY)
    registry.Unregister(helper.FakeMock)
    self.assertEqual(1, len(registry))


class CollectorTest(unittest.TestCase):
  """The Collector folds native checks into verdicts."""

  def setUp(self):
    self.mox = mox.Mox()
    registry = verdict.DEFAULT_REGISTRY.Copy()
    registry.Register(helper.FakeMock, helper.AssertFakeExpectations)
    self.collector = verdict.Collector(registry)

  def testMetVerdict(self):
    result = self.collector.Check(helper.FakeMock(True), ('service',))
    self.assertTrue(result.ok)
    self.assertTrue(result)
    self.assertEqual('', result.diagnostic)

  def testUnmetMoxVerdict(self):
    result = self.collector.Check(helper.ExpectDoSomething(self.mox))
    self.assertFalse(result.ok)
    self.assertEqual(1, len(result.errors))

  def testErrorsBeforeLogs(self):
    result = self.collector.Check(
        helper.FakeMock(False, warning='retrying lookup'))
    self.assertEqual(['1 call(s) missing'], result.errors)
    self.assertEqual(['retrying lookup', 'recorded calls: none'],
                     result.logs)
    self.assertEqual('1 call(s) missing\nretrying lookup\nrecorded calls: none',
                     result.diagnostic)

  def testLoggingNotCaptured(self):
    registry = verdict.Registry(
        {helper.FakeMock: helper.AssertFakeExpectations})
    collector = verdict.Collector(registry, capture_logging=False)
    with self.assertLogs('fakemock', level='WARNING'):
      result = collector.Check(helper.FakeMock(False, warning='retrying'))
    self.assertEqual(['recorded calls: none'], result.logs)

  def testHandlerRemoved(self):
    handlers = list(logging.getLogger().handlers)
    self.collector.Check(helper.FakeMock(False, warning='retrying'))
    self.assertEqual(handlers, logging.getLogger().handlers)

  def testOwnLoggersIgnored(self):
    def NativeCheck(fake, recorder):
      logging.getLogger('mockwalk').warning('walking')
      logging.getLogger('verdict').warning('checking')
      return fake.met

    registry = verdict.Registry({helper.FakeMock: NativeCheck})
    result = verdict.Collector(registry).Check(helper.FakeMock(False))
    self.assertEqual([], result.logs)

  def testCheckMock(self):
    self.assertIsNone(self.collector.CheckMock(helper.FakeMock(True)))
    error = self.collector.CheckMock(helper.FakeMock(False), ('a', 'b'))
    self.assertEqual(('a', 'b'), error.path)
    self.assertEqual('1 call(s) missing\nrecorded calls: none',
                     error.diagnostic)

  def testNotAMock(self):
    self.assertRaises(TypeError, self.collector.Check, helper.Handler(None))

  def testPrivateRecorderPerCheck(self):
    first = self.collector.Check(helper.FakeMock(False))
    second = self.collector.Check(helper.FakeMock(False))
    self.assertEqual(1, len(first.errors))
    self.assertEqual(1, len(second.errors))

  def testOtherThreadLoggingIgnored(self):
    """Records logged by another thread during a check are not captured."""
    started = threading.Event()
    logged = threading.Event()

    def NativeCheck(fake, recorder):
      started.set()
      self.assertTrue(logged.wait(5))
      recorder.Errorf('missing call')
      return fake.met

    def LogFromOtherThread():
      if started.wait(5):
        logging.getLogger('otherthread').warning('unrelated noise')
      logged.set()

    registry = verdict.Registry({helper.FakeMock: NativeCheck})
    other = threading.Thread(target=LogFromOtherThread)
    other.start()
    try:
      result = verdict.Collector(registry).Check(helper.FakeMock(False))
    finally:
      other.join()
    self.assertEqual('missing call', result.diagnostic)


if __name__ == '__main__':
  unittest.main()
