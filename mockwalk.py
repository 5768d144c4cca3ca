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

"""Verify every mock reachable from a subject object.

A test usually builds a subject (a request handler, a service, ...) whose
attributes hold mox mocks, sometimes several levels down.  Instead of calling
Verify on each mock by hand, hand the subject to mockwalk:

  m = mox.Mox()
  store = m.CreateMockAnything()
  store.Put('key', 'value')
  handler = Handler(store=store)
  m.ReplayAll()

  handler.Save('key', 'value')

  mockwalk.Verify(handler)

The walker visits public attributes in declaration order, depth first.
Attributes whose name starts with an underscore are private and skipped unless
they are marked embedded.  A weak reference is followed once; None and dead
references are treated as absent.  The first mock with unmet expectations stops
the walk and is reported with the dotted path of the attribute holding it:

  assert expectations failed for mock field 'store':
  Verify: Expected methods never called:
    0.  Put('key', 'value') -> None

Check() returns that error instead of raising it.

mox3 relies on inspect.getargspec, so mockwalk runs on Python 3.10 only.
"""

import dataclasses
import enum
import functools
import inspect
import logging
import numbers
import types
import typing
import unittest
import weakref
from collections import abc as collections_abc

from mox3 import mox

import verdict

_LOG = logging.getLogger(__name__)

Error = verdict.Error
UnmetExpectationsError = verdict.UnmetExpectationsError
DEFAULT_REGISTRY = verdict.DEFAULT_REGISTRY

# Dataclass field metadata key marking an embedded field.
EMBEDDED = 'mockwalk.embedded'

# Values of these types never hold a mock in an attribute.
_NEVER_STRUCTS = (
    type(None), bool, numbers.Number, str, bytes, bytearray, enum.Enum,
    type, types.ModuleType, types.FunctionType, types.BuiltinFunctionType,
    types.MethodType, functools.partial, weakref.ref,
    collections_abc.Mapping, collections_abc.Sequence, collections_abc.Set,
    collections_abc.Iterator,
)

_UNION_TYPES = (typing.Union, types.UnionType)


class _Absent(object):

  def __repr__(self):
    return '<absent>'


_ABSENT = _Absent()


class InvalidSubjectError(Error, TypeError):
  """Raised when the subject is not an object with attributes."""

  def __init__(self, subject):
    Error.__init__(self, 'Verify requires an object with attributes, got %s'
                   % type(subject).__name__)


def Embedded(**kwargs):
  """Declare a dataclass field as embedded.

  An embedded field is walked even when its name is private, the way a mixed
  in collaborator shares its owner's namespace.

    @dataclasses.dataclass
    class MockService:
      _mock: mox.MockAnything = mockwalk.Embedded(default=None)
  """
  metadata = dict(kwargs.pop('metadata', None) or {})
  metadata[EMBEDDED] = True
  return dataclasses.field(metadata=metadata, **kwargs)


class Field(object):
  """One attribute of a walked object."""

  def __init__(self, name, declared_type, embedded, read):
    """Init Field.

    Args:
      # name: the attribute name.
      # declared_type: the dataclass type or class annotation, if any.
      # embedded: whether the attribute is walked although private.
      # read: callable returning the current value, or _ABSENT when unset.
      name: str
      declared_type: type or None
      embedded: bool
      read: callable
    """

    self.name = name
    self.declared_type = declared_type
    self.embedded = embedded
    self._read = read

  @property
  def exported(self):
    return not self.name.startswith('_')

  @property
  def visible(self):
    return self.exported or self.embedded

  @property
  def value(self):
    return self._read()

  def __repr__(self):
    return '<Field %s embedded=%r>' % (self.name, self.embedded)


def _HasInstanceDict(klass):
  return any('__dict__' in vars(base) for base in klass.__mro__)


def _SlotNames(klass):
  names = []
  for base in reversed(klass.__mro__):
    slots = vars(base).get('__slots__', ())
    if isinstance(slots, str):
      slots = (slots,)
    for name in slots:
      if name in ('__dict__', '__weakref__'):
        continue
      if name.startswith('__') and not name.endswith('__'):
        name = '_%s%s' % (base.__name__.lstrip('_'), name)
      if name not in names:
        names.append(name)
  return names


def _Annotations(klass):
  declared = {}
  for base in reversed(klass.__mro__):
    try:
      declared.update(inspect.get_annotations(base))
    except NameError:
      # Unresolvable forward reference; treat the class as undeclared.
      continue
  return declared


def _EmbeddedNames(klass):
  names = set()
  for base in klass.__mro__:
    names.update(vars(base).get('__embedded__', ()))
  return names


def _AttributeReader(subject, name):
  return lambda: getattr(subject, name, _ABSENT)


def _DictReader(namespace, name):
  return lambda: namespace.get(name, _ABSENT)


def Fields(subject):
  """Yield the Fields of subject in declaration order.

  Dataclasses are described by dataclasses.fields().  Other objects yield
  their __slots__, base class first, and then their instance __dict__ in
  insertion order.
  """
  klass = type(subject)
  if dataclasses.is_dataclass(klass):
    for f in dataclasses.fields(klass):
      yield Field(f.name, f.type, bool(f.metadata.get(EMBEDDED)),
                  _AttributeReader(subject, f.name))
    return

  declared = _Annotations(klass)
  embedded = _EmbeddedNames(klass)
  seen = set()
  for name in _SlotNames(klass):
    seen.add(name)
    yield Field(name, declared.get(name), name in embedded,
                _AttributeReader(subject, name))
  if _HasInstanceDict(klass):
    namespace = vars(subject)
    for name in list(namespace):
      if name in seen:
        continue
      yield Field(name, declared.get(name), name in embedded,
                  _DictReader(namespace, name))


def IsStructShaped(value):
  """Whether value is an object whose attributes can be walked.

  Only type(value) is inspected, so mocks that answer every attribute lookup
  are never touched.
  """
  klass = type(value)
  if issubclass(klass, _NEVER_STRUCTS):
    return False
  if dataclasses.is_dataclass(klass):
    return True
  return bool(_SlotNames(klass)) or _HasInstanceDict(klass)


def _Resolve(value):
  """Follow at most one weak reference; None and dead references are absent."""
  if value is None or value is _ABSENT:
    return _ABSENT
  if issubclass(type(value), weakref.ref):
    referent = value()
    if referent is None:
      return _ABSENT
    return referent
  return value


def _ConcreteType(declared_type):
  """Strip Optional[...] and weakref.ref[...] from a declared type."""
  origin = typing.get_origin(declared_type)
  if origin in _UNION_TYPES:
    args = [a for a in typing.get_args(declared_type) if a is not type(None)]
    if len(args) == 1:
      return _ConcreteType(args[0])
    return None
  if origin is weakref.ref:
    args = typing.get_args(declared_type)
    if len(args) == 1:
      return args[0]
    return None
  if isinstance(declared_type, type):
    return declared_type
  return None


class MockWalker(object):
  """Walks a subject and checks every reachable mock."""

  def __init__(self, registry=None, capture_logging=True):
    """Initialize a new MockWalker.

    Args:
      # registry: mock types and their native checks; mox by default.
      # capture_logging: whether log records emitted during a native check
      #   are added to the reported diagnostic.
      registry: verdict.Registry
      capture_logging: bool
    """

    self.collector = verdict.Collector(registry, capture_logging)

  @property
  def registry(self):
    return self.collector.registry

  def Check(self, root):
    """Check every mock reachable from root.

    Args:
      # root: an object with attributes, or a weak reference to one.
      root: object

    Returns:
      None if every reachable mock had its expectations met, the first
      UnmetExpectationsError otherwise, or InvalidSubjectError if root cannot
      be walked.
    """

    return self._Check(root, (), set())

  def Verify(self, root):
    """Like Check, but raise the error."""
    error = self.Check(root)
    if error is not None:
      raise error

  def _Check(self, subject, path, visited):
    stack = []
    error = self._Enter(subject, path, visited, stack)
    if error is not None:
      return error
    return self._Walk(stack, visited)

  def _Enter(self, subject, path, visited, stack):
    """Apply the entry contract to subject.

    A mock is checked at once and an object with attributes is pushed onto
    stack to be walked.

    Returns:
      An UnmetExpectationsError or InvalidSubjectError, or None.
    """
    resolved = _Resolve(subject)
    if resolved is _ABSENT:
      return InvalidSubjectError(subject)
    if self.registry.IsMock(resolved):
      return self._CheckMock(resolved, path, visited)
    if not IsStructShaped(resolved):
      return InvalidSubjectError(resolved)
    self._Push(resolved, path, visited, stack)
    return None

  def _CheckMock(self, mock_object, path, visited):
    if id(mock_object) in visited:
      return None
    visited.add(id(mock_object))
    return self.collector.CheckMock(mock_object, path)

  def _Push(self, subject, path, visited, stack):
    if id(subject) in visited:
      return
    visited.add(id(subject))
    _LOG.debug('walking %s (%s)', verdict.FormatPath(path),
               type(subject).__name__)
    stack.append((path, Fields(subject)))

  def _Walk(self, stack, visited):
    # Each frame is (path, remaining fields); the top frame is the object
    # currently being walked, so fields are visited depth first.
    while stack:
      path, fields = stack[-1]
      field = next(fields, None)
      if field is None:
        stack.pop()
        continue
      if not field.visible:
        continue

      value = _Resolve(field.value)
      if value is _ABSENT:
        continue

      field_path = path + (field.name,)
      if self.registry.IsMock(value):
        error = self._CheckMock(value, field_path, visited)
      elif not IsStructShaped(value):
        continue
      elif type(value) is _ConcreteType(field.declared_type):
        self._Push(value, field_path, visited, stack)
        continue
      else:
        # Declared as a base class, a protocol or not at all: walk the
        # implementation as a root of its own.
        error = self._Enter(value, field_path, visited, stack)

      if error is not None:
        return error
    return None


_DEFAULT_WALKER = MockWalker()


def Check(root):
  """Check root with the default walker; see MockWalker.Check."""
  return _DEFAULT_WALKER.Check(root)


def Verify(root):
  """Verify root with the default walker; see MockWalker.Verify."""
  _DEFAULT_WALKER.Verify(root)


def Register(mock_type, native_check):
  """Teach the default walker about another expectation-bearing type."""
  DEFAULT_REGISTRY.Register(mock_type, native_check)


def RunTest(test_method):
  """Decorate a TestCase method whose return value is the subject.

  The subject is verified once the method returns; a method returning None
  verifies nothing.

    class HandlerTest(unittest.TestCase):

      @mockwalk.RunTest
      def testSave(self):
        ...
        return handler
  """

  @functools.wraps(test_method)
  def Wrapper(self, *args, **kwargs):
    subject = test_method(self, *args, **kwargs)
    if subject is None:
      return
    error = Check(subject)
    if error is not None:
      self.fail(str(error))

  return Wrapper


class MockWalkTestBase(unittest.TestCase):
  """Convenience test class providing a Mox instance and a walker."""

  def setUp(self):
    super(MockWalkTestBase, self).setUp()
    self.mox = mox.Mox()
    self.walker = MockWalker()

  def tearDown(self):
    self.mox.UnsetStubs()
    super(MockWalkTestBase, self).tearDown()

  def assertMocksVerified(self, subject, msg=None):
    """Fail if any mock reachable from subject has unmet expectations."""
    error = self.walker.Check(subject)
    if error is not None:
      self.fail(self._formatMessage(msg, str(error)))

  def assertMocksUnverified(self, subject, *fragments):
    """Fail unless a reachable mock is unmet; returns the error.

    Each fragment must appear in the error message.
    """
    error = self.walker.Check(subject)
    if error is None:
      self.fail('expected unmet expectations under %s'
                % type(subject).__name__)
    for fragment in fragments:
      self.assertIn(fragment, str(error))
    return error
