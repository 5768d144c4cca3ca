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

"""Subjects used by the mockwalk and verdict tests."""

import abc
import dataclasses
import logging
import typing
import unittest
import weakref

from mox3 import mox

import mockwalk


def ExpectDoSomething(m, arg='x'):
  """Return a replayed MockAnything expecting a single DoSomething(arg)."""
  mock_object = m.CreateMockAnything()
  mock_object.DoSomething(arg).AndReturn(None)
  mock_object._Replay()
  return mock_object


class AbstractService(abc.ABC):

  @abc.abstractmethod
  def DoSomething(self, arg):
    pass


class MockService(AbstractService):
  """A hand-written double delegating to a mox mock."""

  def __init__(self, mock_object):
    self.mock = mock_object

  def DoSomething(self, arg):
    return self.mock.DoSomething(arg)


class Handler(object):

  def __init__(self, service):
    self.service = service


class Outer(object):

  def __init__(self, inner):
    self.inner = inner


class PrivateHandler(object):

  def __init__(self, service):
    self._service = service


class TwoServices(object):

  def __init__(self, first, second):
    self.first = first
    self.second = second


class WeakHandler(object):

  def __init__(self, service):
    self.service = weakref.ref(service)


class SlottedHandler(object):
  __slots__ = ('service', 'spare', '__hidden')

  def __init__(self, service, hidden=None):
    self.service = service
    self.__hidden = hidden


class EmbeddingHandler(object):
  __embedded__ = ('_service',)

  def __init__(self, service):
    self._service = service


class ScalarHolder(object):

  def __init__(self, mock_object):
    self.count = 3
    self.name = 'holder'
    self.items = [mock_object]
    self.by_name = {'mock': mock_object}
    self.callback = lambda: mock_object
    self.kind = AbstractService


class Node(object):

  def __init__(self, mock_object=None):
    self.parent = None
    self.child = None
    self.mock = mock_object


@dataclasses.dataclass
class ConcreteHandler:
  service: MockService


@dataclasses.dataclass
class PolymorphicHandler:
  service: AbstractService


@dataclasses.dataclass
class OptionalHandler:
  service: typing.Optional[MockService] = None


@dataclasses.dataclass
class EmbeddedMockService:
  _mock: object = mockwalk.Embedded(default=None)
  _ignored: object = None


class FakeMock(object):
  """An expectation-bearing type from some other framework."""

  def __init__(self, met, warning=None):
    self.met = met
    self.warning = warning


def AssertFakeExpectations(fake, recorder):
  if fake.warning:
    logging.getLogger('fakemock').warning(fake.warning)
  if not fake.met:
    recorder.Errorf('%d call(s) missing', 1)
    recorder.Logf('recorded calls: %s', 'none')
  return fake.met


class SubjectReturningTest(unittest.TestCase):
  """Run by RunTestTest; not collected on its own."""

  @mockwalk.RunTest
  def testMetExpectations(self):
    m = mox.Mox()
    service = MockService(ExpectDoSomething(m))
    service.DoSomething('x')
    return Handler(service)

  @mockwalk.RunTest
  def testUnmetExpectations(self):
    m = mox.Mox()
    return Handler(MockService(ExpectDoSomething(m)))

  @mockwalk.RunTest
  def testNoSubject(self):
    return None
