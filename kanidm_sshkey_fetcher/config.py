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
import logging

import toml

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_CONFIG_PATH = '/etc/kanidm/config'
DEFAULT_CLIENT_CONFIG_PATH_HOME = '~/.config/kanidm'


class ConfigError(Exception):
  pass


class Options(object):
  ''' The settings of a single run, filled from the command line and
  optionally from a configuration file. '''

  # Config file keys and the types they must have. `addr` is accepted as
  # an alias for `url`.
  file_keys = {
    'debug': bool,
    'url': str,
    'ca_path': str,
    'account_ids': list,
    'modify': str,
  }

  def __init__(self, debug=False, url=None, ca_path=None, config_path=None,
      account_ids=None, modify=None):
    super().__init__()
    self.debug = debug
    self.url = url
    self.ca_path = ca_path
    self.config_path = config_path
    self.account_ids = list(account_ids or [])
    self.modify = modify

  def __repr__(self):
    return ('Options(debug={!r}, url={!r}, ca_path={!r}, config_path={!r}, '
      'account_ids={!r}, modify={!r})').format(self.debug, self.url,
      self.ca_path, self.config_path, self.account_ids, self.modify)

  @classmethod
  def from_args(cls, args):
    return cls(args.debug, args.url, args.ca_path, args.config_path,
      args.account_ids, args.modify)

  def merge(self, other):
    ''' Fill in settings from *other* that are not set on this object.
    Flags are combined, account ids from *other* are appended. '''

    self.debug = self.debug or other.debug
    self.url = self.url or other.url
    self.ca_path = self.ca_path or other.ca_path
    self.modify = self.modify or other.modify
    self.account_ids.extend(other.account_ids)


def _load_toml(filename):
  try:
    with open(filename, 'r') as fp:
      return toml.load(fp)
  except toml.TomlDecodeError as exc:
    raise ConfigError('{}: {}'.format(filename, exc)) from exc
  except OSError as exc:
    raise ConfigError('{}: {}'.format(filename, exc.strerror or exc)) from exc


def load_options_file(filename):
  ''' Read an `Options` object from the TOML file *filename*. Raises
  `ConfigError` if the file can not be read or has invalid values. '''

  data = _load_toml(filename)
  if 'addr' in data and 'url' not in data:
    data['url'] = data.pop('addr')

  kwargs = {}
  for key, value in data.items():
    if key not in Options.file_keys:
      logger.warning('%s: ignoring unknown option %r', filename, key)
      continue
    expected = Options.file_keys[key]
    if not isinstance(value, expected):
      message = '{}: {!r} must be of type {}, got {}'
      raise ConfigError(message.format(
        filename, key, expected.__name__, type(value).__name__))
    kwargs[key] = value

  for account_id in kwargs.get('account_ids', []):
    if not isinstance(account_id, str):
      raise ConfigError('{}: account_ids must be a list of strings'.format(filename))

  return Options(config_path=filename, **kwargs)


def read_client_config(filename):
  ''' Parse a Kanidm client configuration file. Returns an empty dictionary
  if the file does not exist. '''

  filename = os.path.expanduser(filename)
  if not os.path.isfile(filename):
    logger.debug('client config %s not present', filename)
    return {}
  logger.debug('using client config %s', filename)
  return _load_toml(filename)


def default_client_config():
  ''' Returns the system-wide Kanidm client settings overridden by the ones
  in the user's home directory. '''

  config = {}
  for filename in (DEFAULT_CLIENT_CONFIG_PATH, DEFAULT_CLIENT_CONFIG_PATH_HOME):
    config.update(read_client_config(filename))
  return config
