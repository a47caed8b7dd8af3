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
''' Merge fetched SSH keys into an OpenSSH `authorized_keys` file.

The keys owned by this program live between two marker lines. Everything
before the start marker (the preamble) and after the end marker (the
trailer) belongs to the file's owner and is passed through unchanged. The
block between the markers is thrown away and regenerated on every run. '''

import collections
import logging

from . import util
from .util import CorruptManagedBlock, AmbiguousManagedBlock

logger = logging.getLogger(__name__)

# Changing these breaks finding blocks written by earlier versions.
START_MARKER = '# Managed Keys by kanidm_sshkey_fetcher'
END_MARKER = '# End of Managed Keys by kanidm_sshkey_fetcher'

FileContents = collections.namedtuple('FileContents', 'preamble managed trailer')


def locate_managed_block(text):
  ''' Split *text* into a `FileContents` tuple. *text* may be None if the
  file does not exist. If there is no managed block, the whole text is the
  preamble. Raises `CorruptManagedBlock` if the start marker has no end
  marker after it and `AmbiguousManagedBlock` if the start marker appears
  more than once. '''

  if not text:
    return FileContents('', [], '')

  lines = text.splitlines(True)
  starts = [i for i, line in enumerate(lines) if line.strip() == START_MARKER]
  if not starts:
    return FileContents(text, [], '')
  if len(starts) > 1:
    message = 'start marker found {} times (lines {})'
    raise AmbiguousManagedBlock(message.format(
      len(starts), ', '.join(str(i + 1) for i in starts)))

  start = starts[0]
  for end in range(start + 1, len(lines)):
    if lines[end].strip() == END_MARKER:
      break
  else:
    message = 'start marker on line {} has no matching end marker'
    raise CorruptManagedBlock(message.format(start + 1))

  managed = [line.strip() for line in lines[start + 1:end]]
  return FileContents(
    ''.join(lines[:start]), managed, ''.join(lines[end + 1:]))


def dedupe_keys(keys):
  ''' Returns the unique, non-empty lines of *keys* in the order they were
  first seen. Lines are compared after stripping surrounding whitespace.
  Comment lines are dropped, which keeps the marker lines out of the
  managed block. '''

  seen = set()
  result = []
  for entry in keys:
    for line in entry.splitlines():
      line = line.strip()
      if not line or line in seen:
        continue
      if line.startswith('#'):
        logger.warning('dropping comment line from key set: %r', line)
        continue
      seen.add(line)
      result.append(line)
  return result


def _separator(preamble):
  ''' Returns the text to append to *preamble* so that it ends with a blank
  line. '''

  last = preamble.splitlines(True)[-1]
  if not last.endswith(('\n', '\r')):
    return '\n' if not last.strip() else '\n\n'
  if not last.strip():
    return ''
  # A single '\n' after a lone '\r' would only complete a CRLF.
  return '\n\n' if last.endswith('\r') else '\n'


def render_managed_block(contents, keys):
  ''' Serialize *contents* with a managed block holding *keys*. The block is
  separated from a non-empty preamble by a blank line. *keys* must already
  be deduplicated. An empty *keys* list still produces both markers. '''

  preamble = contents.preamble
  if preamble:
    preamble += _separator(preamble)

  block = [START_MARKER]
  block.extend(keys)
  block.append(END_MARKER)
  return preamble + '\n'.join(block) + '\n' + contents.trailer


def render_output(keys):
  ''' Format *keys* for printing to an SSH daemon, one key per line. '''

  keys = dedupe_keys(keys)
  if not keys:
    return ''
  return '\n'.join(keys) + '\n'


def merge_into_file(path, keys):
  ''' Replace the managed block in the `authorized_keys` file at *path*
  with *keys*, creating the block (and the file) if necessary. Returns
  True if the file was written and False if it already had the desired
  contents. Raises a `MergeError` subclass on failure, in which case the
  file is left untouched. '''

  old_text = util.read_text(path)
  contents = locate_managed_block(old_text)
  keys = dedupe_keys(keys)
  new_text = render_managed_block(contents, keys)

  if new_text == old_text:
    logger.debug('%s is up to date', path)
    return False

  dropped = [key for key in contents.managed if key not in keys]
  for key in dropped:
    logger.info('removing key from %s: %s', path, key)
  logger.info('writing %d key(s) to %s', len(keys), path)
  util.atomic_write(path, new_text)
  return True
