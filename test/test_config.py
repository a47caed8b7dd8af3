
import pytest

from kanidm_sshkey_fetcher import config
from kanidm_sshkey_fetcher.config import (
  ConfigError, Options, default_client_config, load_options_file,
  read_client_config)


def test_merge_precedence():
  cli = Options(url='https://cli.example.com', account_ids=['alice'])
  cfg = Options(debug=True, url='https://file.example.com',
    ca_path='/etc/ca.pem', account_ids=['bob', 'carol'], modify='/tmp/keys')
  cli.merge(cfg)
  assert cli.debug is True
  assert cli.url == 'https://cli.example.com'
  assert cli.ca_path == '/etc/ca.pem'
  assert cli.modify == '/tmp/keys'
  assert cli.account_ids == ['alice', 'bob', 'carol']


def test_load_options_file(tmp_path):
  path = tmp_path / 'fetcher.toml'
  path.write_text(
    'addr = "https://idm.example.com"\n'
    'ca_path = "/etc/kanidm/ca.pem"\n'
    'account_ids = ["alice", "bob"]\n'
    'debug = true\n')
  options = load_options_file(str(path))
  assert options.url == 'https://idm.example.com'
  assert options.ca_path == '/etc/kanidm/ca.pem'
  assert options.account_ids == ['alice', 'bob']
  assert options.debug is True
  assert options.modify is None
  assert options.config_path == str(path)


def test_load_options_file_unknown_key(tmp_path, caplog):
  path = tmp_path / 'fetcher.toml'
  path.write_text('colour = "blue"\n')
  options = load_options_file(str(path))
  assert options.account_ids == []
  assert 'colour' in caplog.text


@pytest.mark.parametrize('content', [
  'account_ids = "alice"\n',
  'account_ids = [1, 2]\n',
  'debug = "yes"\n',
  'url = [\n',
])
def test_load_options_file_invalid(tmp_path, content):
  path = tmp_path / 'fetcher.toml'
  path.write_text(content)
  with pytest.raises(ConfigError):
    load_options_file(str(path))


def test_load_options_file_missing(tmp_path):
  with pytest.raises(ConfigError):
    load_options_file(str(tmp_path / 'missing.toml'))


def test_read_client_config(tmp_path):
  assert read_client_config(str(tmp_path / 'missing')) == {}
  path = tmp_path / 'config'
  path.write_text('uri = "https://idm.example.com"\nverify_ca = false\n')
  assert read_client_config(str(path)) == {
    'uri': 'https://idm.example.com', 'verify_ca': False}


def test_default_client_config_home_wins(tmp_path, monkeypatch):
  system = tmp_path / 'system'
  system.write_text('uri = "https://system"\nca_path = "/ca.pem"\n')
  home = tmp_path / 'home'
  home.write_text('uri = "https://home"\n')
  monkeypatch.setattr(config, 'DEFAULT_CLIENT_CONFIG_PATH', str(system))
  monkeypatch.setattr(config, 'DEFAULT_CLIENT_CONFIG_PATH_HOME', str(home))
  assert default_client_config() == {'uri': 'https://home', 'ca_path': '/ca.pem'}
