# -*- mode: python; tab-width: 2; coding: utf8 -*-
#
# Copyright (C) 2026 The kanidm-sshkey-fetcher Authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing,
# software distributed under the License is distributed on an
# "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND,
# either express or implied. See the License for the specific
# language governing permissions and limitations under the License.
''' Fetch SSH public keys of Kanidm accounts for the OpenSSH daemon, either
for `AuthorizedKeysCommand` or by maintaining a block of keys in an
`authorized_keys` file. '''

__version__ = '0.1.0'

from .util import MergeError, CorruptManagedBlock, AmbiguousManagedBlock
from .util import WriteDenied, NoSpace, IOFailure
from .authorized_keys import START_MARKER, END_MARKER, FileContents
from .authorized_keys import locate_managed_block, dedupe_keys
from .authorized_keys import render_managed_block, render_output, merge_into_file
