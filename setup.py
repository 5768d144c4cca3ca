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

from setuptools import setup

setup(name='mockwalk',
      version='0.0.1',
      py_modules=['mockwalk', 'verdict'],
      install_requires=['mox3'],
      extras_require={'test': ['pytest']},
      # mox3 calls inspect.getargspec, which Python 3.11 removed.
      python_requires='>=3.10, <3.11',
      license='Apache License, Version 2.0',
      description='Verify every mock reachable from a test subject',
      long_description='''Mockwalk walks the attributes of an object under
test, finds every mox mock reachable from it and verifies its expectations,
reporting the first failure with the dotted path of the attribute holding
the mock.''',
      )
