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

import os
import errno
import logging
import stat
import tempfile

logger = logging.getLogger(__name__)

# authorized_keys files are read and written as text, but anything that is
# not valid UTF-8 must survive a rewrite unchanged.
ENCODING = 'utf8'
ERRORS = 'surrogateescape'


class MergeError(Exception):
  ''' Base class for errors raised while merging keys into a file. '''


class CorruptManagedBlock(MergeError):
  pass


class AmbiguousManagedBlock(MergeError):
  pass


class WriteDenied(MergeError):
  pass


class IOFailure(MergeError):
  pass


class NoSpace(IOFailure):
  pass


def translate_oserror(exc, path, writing=True):
  ''' Convert the `OSError` *exc* that occured while accessing *path* into
  the matching `MergeError` subclass. A permission error is only reported
  as `WriteDenied` if *writing* is set. '''

  message = '{}: {}'.format(path, exc.strerror or exc)
  if isinstance(exc, PermissionError) and writing:
    return WriteDenied(message)
  if exc.errno in (errno.ENOSPC, errno.EDQUOT):
    return NoSpace(message)
  return IOFailure(message)


def read_text(path):
  ''' Returns the contents of *path* with line endings untouched, or None
  if the file does not exist. Raises a `MergeError` for other errors. '''

  try:
    with open(path, 'r', encoding=ENCODING, errors=ERRORS, newline='') as fp:
      return fp.read()
  except FileNotFoundError:
    return None
  except OSError as exc:
    raise translate_oserror(exc, path, writing=False) from exc


def _fsync_directory(dirname):
  fd = os.open(dirname, os.O_RDONLY)
  try:
    os.fsync(fd)
  finally:
    os.close(fd)


def _copy_metadata(src_stat, fd):
  os.fchmod(fd, stat.S_IMODE(src_stat.st_mode))
  own = os.fstat(fd)
  if (own.st_uid, own.st_gid) != (src_stat.st_uid, src_stat.st_gid):
    os.fchown(fd, src_stat.st_uid, src_stat.st_gid)


def atomic_write(path, text):
  ''' Replace the contents of *path* with *text* so that readers only ever
  see the old or the new file. The data is written to a temporary file in
  the same directory, synced to disk and renamed over *path*. If *path*
  already exists, its permission bits and ownership are carried over to
  the new file, otherwise it is created with mode 0600.

  On any failure the temporary file is removed, *path* is left as it was
  and a `WriteDenied`, `NoSpace` or `IOFailure` is raised. '''

  path = os.path.realpath(path)
  dirname, basename = os.path.split(path)

  try:
    target_stat = os.stat(path)
  except FileNotFoundError:
    target_stat = None
  except OSError as exc:
    raise translate_oserror(exc, path) from exc

  try:
    fd, tmp_path = tempfile.mkstemp(prefix='.' + basename + '.', dir=dirname)
  except OSError as exc:
    raise translate_oserror(exc, dirname) from exc

  logger.debug('writing %s via %s', path, tmp_path)
  try:
    with open(fd, 'w', encoding=ENCODING, errors=ERRORS, newline='') as fp:
      fp.write(text)
      fp.flush()
      os.fsync(fp.fileno())
      if target_stat is not None:
        _copy_metadata(target_stat, fp.fileno())
    os.replace(tmp_path, path)
  except BaseException as exc:
    try:
      os.unlink(tmp_path)
    except FileNotFoundError:
      pass
    if isinstance(exc, OSError):
      raise translate_oserror(exc, path) from exc
    raise

  # The new contents are already in place, failing here would misreport
  # the outcome.
  try:
    _fsync_directory(dirname)
  except OSError as exc:
    logger.warning('could not sync directory %s: %s', dirname, exc)
