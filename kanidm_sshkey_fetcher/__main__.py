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

import sys
import argparse
import errno
import logging

from . import __version__
from .authorized_keys import render_output, merge_into_file
from .client import ClientError, TransportError
from .client import build_configured_client, collect_keys, errors
from .config import ConfigError, Options, load_options_file
from .util import MergeError, CorruptManagedBlock, AmbiguousManagedBlock
from .util import WriteDenied, NoSpace, IOFailure

logger = logging.getLogger('kanidm_sshkey_fetcher')

# Checked in order, subclasses first.
EXIT_CODES = [
  (WriteDenied, errno.EPERM),
  (NoSpace, errno.ENOSPC),
  (IOFailure, errno.EIO),
  (CorruptManagedBlock, errno.EINVAL),
  (AmbiguousManagedBlock, errno.EINVAL),
]


def printerr(*args, **kwargs):
  kwargs.setdefault('file', sys.stderr)
  print(*args, **kwargs)


def get_argument_parser():
  parser = argparse.ArgumentParser(prog='kanidm-sshkey-fetcher', description='''
    Fetch the SSH public keys of Kanidm accounts. Prints the keys for use as
    an OpenSSH AuthorizedKeysCommand, or with --modify, maintains them in a
    managed block of an authorized_keys file.''')
  parser.add_argument('-d', '--debug', action='store_true',
    help='Enable debug logging.')
  parser.add_argument('-H', '--url', help='The address of the kanidm server '
    'to connect to.')
  parser.add_argument('-C', '--ca', dest='ca_path',
    help='The CA certificate file to use.')
  parser.add_argument('-c', '--config', dest='config_path',
    help='The configuration file to use.')
  parser.add_argument('-m', '--modify', metavar='FILE', help='Merge the keys '
    'into FILE instead of printing them.')
  parser.add_argument('--version', action='version',
    version='%(prog)s ' + __version__)
  parser.add_argument('account_ids', nargs='*', metavar='account_id',
    help='The account ids to fetch keys for.')
  return parser


def setup_logging(debug):
  logging.basicConfig(
    stream=sys.stderr,
    level=logging.DEBUG if debug else logging.WARNING,
    format='%(levelname)s %(name)s: %(message)s')


def exit_code(exc):
  for exc_type, code in EXIT_CODES:
    if isinstance(exc, exc_type):
      return code
  return 1


def main(argv=None):
  parser = get_argument_parser()
  args = parser.parse_args(argv)
  options = Options.from_args(args)

  if options.config_path:
    try:
      options.merge(load_options_file(options.config_path))
    except ConfigError as exc:
      printerr('error: failed to read config file -- {}'.format(exc))
      return errno.EINVAL

  setup_logging(options.debug)
  logger.debug('%r', options)

  if not options.account_ids:
    parser.error('no account ids given')

  try:
    client = build_configured_client(options)
  except ConfigError as exc:
    printerr('error: failed to build client -- {}'.format(exc))
    return errno.EINVAL

  # The server may still allow reading keys without a session.
  try:
    client.auth_anonymous()
  except TransportError as exc:
    logger.error('failed to connect to kanidm server: %s', exc)
  except ClientError as exc:
    logger.error('error during authentication phase: %s', exc)

  results = client.fetch(options.account_ids)
  for exc in errors(results):
    logger.warning('failed to get ssh pubkeys for account %s', exc)
  keys = collect_keys(results)

  if not options.modify:
    sys.stdout.write(render_output(keys))
    return 0

  if len(errors(results)) == len(results):
    printerr('error: no keys could be fetched, leaving {} unchanged'
      .format(options.modify))
    return errno.EIO

  try:
    merge_into_file(options.modify, keys)
  except MergeError as exc:
    printerr('error: {} -- {}'.format(type(exc).__name__, exc))
    return exit_code(exc)
  return 0


if __name__ == '__main__':
  sys.exit(main())
