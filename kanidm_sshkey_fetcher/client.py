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
''' A minimal client for the parts of the Kanidm HTTP API needed to read
the SSH public keys of accounts. '''

import collections
import logging
from urllib.parse import quote

import requests

from . import __version__
from .config import ConfigError, default_client_config

logger = logging.getLogger(__name__)

SESSION_ID_HEADER = 'X-KANIDM-AUTH-SESSION-ID'
DEFAULT_TIMEOUT = 10


class ClientError(Exception):
  pass


class TransportError(ClientError):
  ''' The server could not be reached or the connection failed. '''


class FetchError(ClientError):
  ''' The keys of a single account could not be retrieved. '''

  def __init__(self, account_id, message):
    super().__init__('{}: {}'.format(account_id, message))
    self.account_id = account_id


class KanidmClient(object):
  ''' Talks to the Kanidm server at *url*. *verify* is passed on to
  `requests` and may be a boolean or the path of a CA bundle. '''

  def __init__(self, url, verify=True, timeout=DEFAULT_TIMEOUT, session=None):
    super().__init__()
    self.url = url.rstrip('/')
    self.timeout = timeout
    self.session = session or requests.Session()
    self.session.verify = verify
    self.session.headers['User-Agent'] = 'kanidm-sshkey-fetcher/' + __version__

  def _request(self, method, path, **kwargs):
    kwargs.setdefault('timeout', self.timeout)
    url = self.url + path
    logger.debug('%s %s', method, url)
    try:
      return self.session.request(method, url, **kwargs)
    except requests.exceptions.RequestException as exc:
      raise TransportError(str(exc)) from exc

  def _auth_step(self, step, session_id=None):
    headers = {}
    if session_id:
      headers[SESSION_ID_HEADER] = session_id
    response = self._request('POST', '/v1/auth', json={'step': step},
      headers=headers)
    if response.status_code != 200:
      message = 'authentication step {!r} failed with HTTP {}'
      raise ClientError(message.format(
        next(iter(step)), response.status_code))
    try:
      state = response.json()['state']
    except (ValueError, KeyError, TypeError) as exc:
      raise ClientError('malformed authentication response') from exc
    if isinstance(state, dict) and 'denied' in state:
      raise ClientError('authentication denied: {}'.format(state['denied']))
    return response.headers.get(SESSION_ID_HEADER, session_id), state

  def auth_anonymous(self):
    ''' Authenticate as the anonymous account and keep the issued bearer
    token for subsequent requests. Raises `ClientError` on failure. '''

    init = {'init2': {'username': 'anonymous', 'issue': 'token',
      'privileged': False}}
    session_id, _ = self._auth_step(init)
    session_id, _ = self._auth_step({'begin': 'anonymous'}, session_id)
    _, state = self._auth_step({'cred': 'anonymous'}, session_id)
    if not isinstance(state, dict) or 'success' not in state:
      raise ClientError('unexpected authentication state: {!r}'.format(state))
    self.session.headers['Authorization'] = 'Bearer ' + state['success']
    logger.debug('authenticated as anonymous')

  def get_ssh_pubkeys(self, account_id):
    ''' Returns the list of SSH public keys of *account_id*. Raises a
    `FetchError` if they can not be retrieved. '''

    path = '/v1/account/{}/_ssh_pubkeys'.format(quote(account_id, safe=''))
    try:
      response = self._request('GET', path)
    except TransportError as exc:
      raise FetchError(account_id, str(exc)) from exc
    if response.status_code == 404:
      raise FetchError(account_id, 'account not found')
    if response.status_code != 200:
      raise FetchError(account_id, 'HTTP {}'.format(response.status_code))
    try:
      keys = response.json()
    except ValueError as exc:
      raise FetchError(account_id, 'response is not JSON') from exc
    if not isinstance(keys, list) or not all(isinstance(k, str) for k in keys):
      raise FetchError(account_id, 'expected a list of keys')
    return keys

  def fetch(self, account_ids):
    ''' Fetch the keys of every account in *account_ids*. Returns an ordered
    dictionary that maps each account id either to its list of keys or to
    the `FetchError` that prevented getting them. '''

    results = collections.OrderedDict()
    for account_id in account_ids:
      if account_id in results:
        continue
      try:
        results[account_id] = self.get_ssh_pubkeys(account_id)
      except FetchError as exc:
        results[account_id] = exc
      else:
        logger.debug('%s: %d key(s)', account_id, len(results[account_id]))
    return results


def collect_keys(results):
  ''' Concatenate the successfully fetched key lists in *results*. '''

  keys = []
  for value in results.values():
    if not isinstance(value, FetchError):
      keys.extend(value)
  return keys


def errors(results):
  return [value for value in results.values() if isinstance(value, FetchError)]


def build_configured_client(options, client_config=None):
  ''' Create a `KanidmClient` from the Kanidm client configuration files,
  with the server URL and CA from *options* taking precedence. Raises
  `ConfigError` if no server URL is known. '''

  if client_config is None:
    client_config = default_client_config()

  url = options.url or client_config.get('uri')
  if not url:
    raise ConfigError('no server URL given and none found in the kanidm '
      'client configuration')

  ca_path = options.ca_path or client_config.get('ca_path')
  if ca_path:
    verify = ca_path
  else:
    verify = client_config.get('verify_ca', True)
  if verify is False:
    logger.warning('TLS certificate verification is disabled')

  timeout = client_config.get('connect_timeout', DEFAULT_TIMEOUT)
  return KanidmClient(url, verify=verify, timeout=timeout)
