#!/usr/bin/env python3

"""frappebox!

Provision a Frappe bench with MariaDB, Redis and Node inside a fresh container and manage its
host-based (DNS multitenant) tenant sites.
"""

import sys
import os
import re
import json
import logging
import pwd
import shlex
import subprocess
import argparse
from argparse import ArgumentParser
from collections.abc import Mapping
from configparser import ConfigParser
from datetime import datetime, timezone
from secrets import token_hex
from shutil import rmtree
from subprocess import DEVNULL, PIPE, Popen, CalledProcessError, check_call
from time import monotonic, sleep

import yaml
from mysql import connector
from mysql.connector import Error as MySQLError
from redis import RedisError, StrictRedis

DEFAULT_CONFIG_PATH = '/etc/frappebox.conf'

_MARIADB_CNF_TEMPLATE = """\
[mysqld]
character-set-client-handshake = FALSE
character-set-server = utf8mb4
collation-server = utf8mb4_unicode_ci

[mysql]
default-character-set = utf8mb4
"""

_SECURE_SQL_TEMPLATE = """\
ALTER USER 'root'@'localhost' IDENTIFIED BY '{password}';
DELETE FROM mysql.user WHERE User='';
DROP DATABASE IF EXISTS test;
DELETE FROM mysql.db WHERE Db='test' OR Db='test\\_%';
FLUSH PRIVILEGES;
"""

# Prepended to every script that calls node or bench
_BENCH_ENV = """\
export NVM_DIR="$HOME/.nvm"
if [ -s "$NVM_DIR/nvm.sh" ]; then . "$NVM_DIR/nvm.sh"; fi
export PATH="$HOME/.local/bin:$PATH"
"""

_NVM_INSTALL_TEMPLATE = """\
curl -o- https://raw.githubusercontent.com/nvm-sh/nvm/{version}/install.sh | bash
"""

_NODE_TEMPLATE = """\
. "$HOME/.nvm/nvm.sh"
nvm install {node}
nvm use {node}
"""

_HELPER_TEMPLATE = """\
#!/bin/bash
set -e

# Create a new Frappe tenant site (DNS multitenant mode)
# Usage:
#   {path} site1.localhost

exec {command} new-site "$@"
"""

_START_TEMPLATE = """\
#!/bin/bash
set -e

# Start MariaDB, Redis and bench (as {user}) after a container restart
exec {command} start "$@"
"""

_AUTOSTART_MARKER = '# Auto-start MariaDB and Redis for Frappe'

_AUTOSTART_TEMPLATE = """\
{marker}
service mariadb start >/dev/null 2>&1 || service mysql start >/dev/null 2>&1
service redis-server start >/dev/null 2>&1

# Also start bench when a shell is opened (bench must run as {user})
if [ -x {start_path} ]; then
  {start_path} >/dev/null 2>&1 || true
fi
"""

_SUMMARY_TEMPLATE = """\
=== Frappe Installation Summary (Docker, Multitenant) ===

Timezone:
  {timezone}

Default site:
  {site}

MariaDB Root:
  User: root
  Password: {mysql_root_password}

Frappe Administrator (default site):
  User: Administrator
  Password: {admin_password}

Bench Directory:
  {bench_path}

Helper script (new tenant sites):
  {helper_path}

Start everything (after container restart):
  {start_path}

Access:
  Add to Windows hosts:
    127.0.0.1  {site}
  Open:
    {url}

Tenant sites:
{sites}

NOTE:
  wkhtmltopdf is NOT installed (PDF export disabled).
"""

_SITE_NAME_PATTERN = re.compile(
    r'^(?=.{1,253}$)[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?(\.[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?)*$',
    re.IGNORECASE)

def _default_stack_path():
    paths = [
        os.path.join(os.path.dirname(os.path.abspath(__file__)), 'stacks', 'frappe.yaml'),
        os.path.join(sys.prefix, 'share', 'frappebox', 'stacks', 'frappe.yaml')
    ]
    return next((p for p in paths if os.path.isfile(p)), paths[0])

class Registry(Mapping):
    """Stack meta data, read from YAML files on first access."""

    def __init__(self):
        self._cache = {}

    def __getitem__(self, key):
        if key not in self._cache:
            with open(key) as f:
                self._cache[key] = yaml.safe_load(f) or {}
        return self._cache[key]

    def __iter__(self):
        return iter(self._cache)

    def __len__(self):
        return len(self._cache)

class Installer:
    """Frappe stack installer.

    Attributes:

    * `config`
    * `sites`
    * `data_path`
    * `store_path`
    * `log_path`
    * `user`
    * `home`
    * `bench_path`
    * `mysql_root_password`
    * `timezone`

    .. attribute:: meta

       Stack meta data :class:`Registry`.

    .. attribute:: package_engines

       Map of :class:`PackageEngine` by ID (``apt``, ``pip``, ``npm``).

    .. attribute:: service_engines

       Map of :class:`ServiceEngine` by ID (``redis``, ``mariadb``).
    """

    def __init__(self, config={}):
        self.config = {
            'data_path': '/var/lib/frappebox',
            'config_path': DEFAULT_CONFIG_PATH,
            'stack': _default_stack_path(),
            'user': 'frappe',
            'home': None,
            'bench_name': 'frappe-bench',
            'default_site': 'frappe.localhost',
            'new_site': 'site1.localhost',
            'mysql_root_password': None,
            'admin_password': None,
            'timezone_default': 'Asia/Dubai',
            'port': '8000',
            'service_timeout': '30',
            'clean_init': False,
            'mysql_conf_path': '/etc/mysql/conf.d/frappe.cnf',
            'helper_path': '/create_frappe_site_multitenant.sh',
            'start_path': '/start_container.sh',
            'bashrc_path': '/root/.bashrc',
            'summary_path': '/root/frappe_install_summary.txt',
            'zoneinfo_path': '/usr/share/zoneinfo',
            'timezone_path': '/etc/timezone',
            'localtime_path': '/etc/localtime'
        }
        self.config.update(config)

        self.data_path = self.config['data_path']
        self.store_path = os.path.join(self.data_path, 'frappebox.json')
        self.log_path = os.path.join(self.data_path, 'bench.log')
        self.user = self.config['user']
        self.port = _number(self.config, 'port')
        self.service_timeout = _number(self.config, 'service_timeout')
        self.clean_init = _flag(self.config['clean_init'])

        self.meta = Registry()
        self.sites = {}
        self.mysql_root_password = None
        self.timezone = None
        self.logger = logging.getLogger('frappebox')
        self._stack_meta = None

        self.package_engines = {'apt': Apt(), 'pip': Pip(), 'npm': Npm()}
        self.service_engines = {'redis': Redis(self), 'mariadb': MariaDB(self)}

    @property
    def stack_meta(self):
        if not self._stack_meta:
            self._stack_meta = {
                'packages': {},
                'nvm': 'v0.40.3',
                'node': '18',
                'bench': {}
            }
            self._stack_meta.update(self.meta[self.config['stack']])
            bench = {'package': 'frappe-bench', 'frappe_branch': 'version-15'}
            bench.update(self._stack_meta['bench'] or {})
            self._stack_meta['bench'] = bench
            self._stack_meta['node'] = str(self._stack_meta['node'])
        return self._stack_meta

    @property
    def home(self):
        # Resolved on access, the user may only be created during installation
        if self.config['home']:
            return self.config['home']
        try:
            return pwd.getpwnam(self.user).pw_dir
        except KeyError:
            return os.path.join('/home', self.user)

    @property
    def bench_path(self):
        return os.path.join(self.home, self.config['bench_name'])

    def start(self):
        try:
            os.makedirs(self.data_path)
        except FileExistsError:
            pass
        data = self.load()
        self.sites = data['sites']
        self.mysql_root_password = data['mysql_root_password']
        self.timezone = data['timezone']

    def load(self):
        data = {'mysql_root_password': None, 'timezone': None, 'sites': {}}
        try:
            with open(self.store_path) as f:
                data.update(json.load(f, object_hook=self._decode))
        except FileNotFoundError:
            pass
        return data

    def _encode(self, object):
        try:
            x = object.json()
        except AttributeError:
            raise TypeError(type(object).__name__)
        x['__type__'] = type(object).__name__
        return x

    def _decode(self, json):
        type = json.pop('__type__', None)
        if type:
            types = {'Site': Site}
            return types[type](installer=self, **json)
        return json

    def json(self):
        return {
            'mysql_root_password': self.mysql_root_password,
            'timezone': self.timezone,
            'sites': self.sites
        }

    def store(self):
        j = json.dumps(self.json(), default=self._encode, indent=4)
        with open(self.store_path, 'w') as f:
            f.write(j)
        # Holds the MariaDB root and admin passwords
        os.chmod(self.store_path, 0o600)

    def install(self):
        """Provision the whole stack and create the default site.

        The steps run in order and the first failing one aborts the installation. Steps whose
        target state already exists are skipped, so running the installation again is safe.
        """
        self.logger.info('Installing Frappe (full, multitenant)')
        self._update_timezone()
        self._update_packages()
        self._start_services()
        self._update_mariadb_config()
        self._secure_mariadb()
        self._update_user()
        self._update_node()
        self._update_bench()
        self._init_bench()
        site, _ = self.new_site(self.config['default_site'], self.config['admin_password'])
        self._update_scripts()
        self._update_autostart()
        self._write_summary()
        return site

    def _update_timezone(self):
        tz = detect_timezone(
            self.config['timezone_default'], timezone_path=self.config['timezone_path'],
            localtime_path=self.config['localtime_path'],
            zoneinfo_path=self.config['zoneinfo_path'])
        os.environ['TZ'] = tz
        os.environ['DEBIAN_FRONTEND'] = 'noninteractive'
        self.logger.info('Using timezone %s', tz)

        localtime = self.config['localtime_path']
        try:
            if os.path.lexists(localtime):
                os.remove(localtime)
            os.symlink(os.path.join(self.config['zoneinfo_path'], tz), localtime)
        except OSError as e:
            self.logger.warning('Could not link %s: %s', localtime, e)
        try:
            with open(self.config['timezone_path'], 'w') as f:
                f.write(tz + '\n')
        except OSError as e:
            self.logger.warning('Could not write %s: %s', self.config['timezone_path'], e)

        self.timezone = tz
        self.store()

    def _update_packages(self):
        self.logger.info('Installing base packages')
        apt = self.package_engines['apt']
        apt.update()
        apt.install(self.stack_meta['packages'].get('apt', []))
        self.logger.warning('wkhtmltopdf is NOT installed, PDF export will not work')

    def _start_services(self):
        self.logger.info('Starting Redis and MariaDB')
        for engine in self.service_engines.values():
            engine.start()
        for engine in self.service_engines.values():
            engine.wait(self.service_timeout)

    def _update_mariadb_config(self):
        self.logger.info('Configuring MariaDB charset')
        path = self.config['mysql_conf_path']
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w') as f:
            f.write(_MARIADB_CNF_TEMPLATE)
        mariadb = self.service_engines['mariadb']
        mariadb.restart()
        mariadb.wait(self.service_timeout)

    def _secure_mariadb(self):
        mariadb = self.service_engines['mariadb']
        password = self.mysql_root_password or self.config['mysql_root_password']
        if password and mariadb.check(password):
            self.logger.info('MariaDB root already secured')
        else:
            password = password or generate_password()
            self.logger.info('Setting MariaDB root password')
            try:
                mariadb.secure(password)
            except CalledProcessError:
                self.logger.error(
                    'MariaDB root configuration failed. Use a fresh container and run once.')
                raise
        self.mysql_root_password = password
        self.store()

    def _update_user(self):
        if subprocess.call(['id', self.user], stdout=DEVNULL, stderr=DEVNULL) == 0:
            self.logger.info('User %s already exists', self.user)
        else:
            self.logger.info('Creating user %s', self.user)
            check_call(['adduser', '--disabled-password', '--gecos', '', self.user])
        check_call(['usermod', '-aG', 'sudo', self.user])

    def _update_node(self):
        meta = self.stack_meta
        self.logger.info('Installing nvm, Node %s and yarn as %s', meta['node'], self.user)
        if not os.path.isdir(os.path.join(self.home, '.nvm')):
            self.run_as(_NVM_INSTALL_TEMPLATE.format(version=meta['nvm']))
        self.run_as(_NODE_TEMPLATE.format(node=shlex.quote(meta['node'])))
        self.package_engines['npm'].install(['yarn'], self.user)

    def _update_bench(self):
        self.logger.info('Installing bench')
        self.package_engines['pip'].install([self.stack_meta['bench']['package']], self.user)

    def _init_bench(self):
        if os.path.isdir(self.bench_path):
            if not self.clean_init:
                self.logger.info('Bench %s already initialized', self.bench_path)
                return
            self.logger.info('Removing existing %s to ensure clean init', self.bench_path)
            rmtree(self.bench_path)
            # Sites of the old bench are gone with it
            self.sites = {}
            self.store()

        self.logger.info('Initializing bench %s', self.bench_path)
        self.run_as(_BENCH_ENV + 'cd "$HOME"\nbench init {} --frappe-branch {}\n'.format(
            shlex.quote(self.config['bench_name']),
            shlex.quote(self.stack_meta['bench']['frappe_branch'])))

    def new_site(self, site_id=None, admin_password=None):
        """Create the tenant site *site_id* in DNS multitenant mode.

        If *admin_password* is not given, a fresh one is generated. If the site already exists,
        nothing is created.

        Returns a pair of the :class:`Site` (``None`` for an existing site that was never recorded)
        and whether it was created.
        """
        site_id = site_id or self.config['new_site']
        if not is_site_name(site_id):
            raise ValueError('site_name')
        root_password = self.mysql_root_password or self.config['mysql_root_password']
        if not root_password:
            raise ValueError('mysql_root_password')

        self.run_as(_BENCH_ENV + 'cd {}\nbench set-config -g dns_multitenant on\n'.format(
            shlex.quote(self.bench_path)))

        if os.path.isdir(os.path.join(self.bench_path, 'sites', site_id)):
            self.logger.info('Site %s already exists', site_id)
            return self.sites.get(site_id), False

        self.logger.info('Creating site %s', site_id)
        admin_password = admin_password or generate_password()
        self.run_as(
            _BENCH_ENV +
            'cd {}\nbench new-site {} --mariadb-root-password {} --admin-password {}\n'.format(
                shlex.quote(self.bench_path), shlex.quote(site_id), shlex.quote(root_password),
                shlex.quote(admin_password)))

        site = Site(site_id, admin_password, datetime.now(timezone.utc).isoformat(),
                    installer=self)
        self.sites[site.id] = site
        self.store()
        return site, True

    def _update_scripts(self):
        self.logger.info('Writing helper scripts')
        command = ' '.join(shlex.quote(a) for a in
                           [sys.executable, '-m', 'frappebox', '-c', self.config['config_path']])
        scripts = {
            self.config['helper_path']:
                _HELPER_TEMPLATE.format(path=self.config['helper_path'], command=command),
            self.config['start_path']: _START_TEMPLATE.format(user=self.user, command=command)
        }
        for path, script in scripts.items():
            with open(path, 'w') as f:
                f.write(script)
            os.chmod(path, 0o755)

    def _update_autostart(self):
        path = self.config['bashrc_path']
        try:
            with open(path) as f:
                bashrc = f.read()
        except FileNotFoundError:
            bashrc = ''
        if _AUTOSTART_MARKER in bashrc:
            self.logger.info('Root autostart already configured in %s', path)
            return
        with open(path, 'a') as f:
            f.write('\n' + _AUTOSTART_TEMPLATE.format(
                marker=_AUTOSTART_MARKER, user=self.user,
                start_path=shlex.quote(self.config['start_path'])))
        self.logger.info('Added autostart to %s', path)

    def _write_summary(self):
        site_id = self.config['default_site']
        site = self.sites.get(site_id)
        sites = sorted(self.sites.values(), key=lambda s: s.id)
        summary = _SUMMARY_TEMPLATE.format(
            timezone=self.timezone or 'unknown', site=site_id,
            mysql_root_password=self.mysql_root_password,
            admin_password=site.admin_password if site else 'unknown',
            bench_path=self.bench_path, helper_path=self.config['helper_path'],
            start_path=self.config['start_path'],
            url=site.url if site else 'http://{}:{}'.format(site_id, self.port),
            sites='\n'.join('  {} ({})'.format(s.id, s.url) for s in sites) or '  none')
        path = self.config['summary_path']
        with open(path, 'w') as f:
            f.write(summary)
        os.chmod(path, 0o600)
        return path

    def start_bench(self, foreground=False):
        """Start MariaDB, Redis and bench.

        Bench is started in the background, logging to :attr:`log_path`, unless *foreground* is
        set. The PID of the background bench is returned, ``None`` otherwise.
        """
        for engine in reversed(list(self.service_engines.values())):
            engine.start()

        if subprocess.call(['pgrep', '-f', 'bench serve'], stdout=DEVNULL) == 0:
            self.logger.info('Bench already running')
            return None

        script = _BENCH_ENV + 'cd {}\nexec bench start\n'.format(shlex.quote(self.bench_path))
        if foreground:
            self.run_as(script)
            return None

        self.logger.info('Starting bench, logging to %s', self.log_path)
        with open(self.log_path, 'a') as f:
            f.write('\n{}\n'.format(datetime.now(timezone.utc).isoformat()))
            f.flush()
            p = Popen(['su', '-s', '/bin/bash', '-', self.user, '-c', script], stdin=DEVNULL,
                      stdout=f, stderr=f, start_new_session=True)
        return p.pid

    def run_as(self, script):
        run_as(self.user, script)

class Site:
    """Tenant site, served by host name.

    Attributes:

    * `id`: Host name.
    * `admin_password`: Password of the site's ``Administrator``.
    * `created`: Creation time as ISO string.
    * `installer`
    """

    def __init__(self, id, admin_password, created=None, installer=None):
        self.id = id
        self.admin_password = admin_password
        self.created = created
        self.installer = installer

    @property
    def url(self):
        port = self.installer.port if self.installer else 8000
        return 'http://{}:{}'.format(self.id, port)

    @property
    def exists(self):
        return os.path.isdir(os.path.join(self.installer.bench_path, 'sites', self.id))

    def json(self):
        return {'id': self.id, 'admin_password': self.admin_password, 'created': self.created}

class PackageEngine:
    def install(self, packages, user=None):
        """Install a list of `packages`, as `user` if the engine works per user."""
        raise NotImplementedError()

class Apt(PackageEngine):
    def update(self):
        check_call(['apt-get', 'update', '-y'])

    def install(self, packages, user=None):
        if not packages:
            return
        check_call(['apt-get', 'install', '-y'] + list(packages))

class Pip(PackageEngine):
    def install(self, packages, user=None):
        # Debian marks the system Python as externally managed
        run_as(user, 'pip3 install --user --break-system-packages {}\n'.format(
            ' '.join(shlex.quote(p) for p in packages)))

class Npm(PackageEngine):
    def install(self, packages, user=None):
        run_as(user, _BENCH_ENV + 'npm install -g {}\n'.format(
            ' '.join(shlex.quote(p) for p in packages)))

class ServiceEngine:
    """System service the stack depends on.

    .. attribute:: services

       Candidate service names, tried in order.
    """

    id = None
    services = []

    def __init__(self, installer):
        self.installer = installer

    def start(self):
        return self._service('start')

    def restart(self):
        return self._service('restart')

    def _service(self, action):
        for service in self.services:
            if subprocess.call(['service', service, action], stdout=DEVNULL,
                               stderr=DEVNULL) == 0:
                return True
        self.installer.logger.warning('Could not %s %s', action, self.id)
        return False

    def ping(self):
        raise NotImplementedError()

    def wait(self, timeout):
        """Wait until the service answers.

        If it does not within `timeout` seconds, an :exc:`OSError` is raised.
        """
        deadline = monotonic() + timeout
        while not self.ping():
            if monotonic() >= deadline:
                raise OSError(self.id)
            sleep(1)

class MariaDB(ServiceEngine):
    id = 'mariadb'
    services = ['mariadb', 'mysql']

    def ping(self):
        # Also succeeds on access denied, which is fine for a liveness check
        return subprocess.call(['mysqladmin', 'ping'], stdout=DEVNULL, stderr=DEVNULL) == 0

    def connect(self, password):
        return connector.connect(user='root', password=password, host='localhost')

    def check(self, password):
        """Test if `password` authenticates the root user."""
        try:
            db = self.connect(password)
        except MySQLError:
            return False
        db.close()
        return True

    def secure(self, password):
        """Set the root `password` and remove anonymous users and the test database.

        Must run while root still authenticates via the unix socket, i.e. once per fresh server.
        """
        self.execute(_SECURE_SQL_TEMPLATE.format(password=_sql_quote(password)))

    def execute(self, sql):
        args = ['mysql', '-u', 'root']
        p = Popen(args, stdin=PIPE)
        p.communicate(sql.encode('utf-8'))
        if p.returncode != 0:
            raise CalledProcessError(p.returncode, args)

class Redis(ServiceEngine):
    id = 'redis'
    services = ['redis-server']

    def connect(self):
        return StrictRedis(socket_connect_timeout=1)

    def ping(self):
        try:
            return bool(self.connect().ping())
        except RedisError:
            return False

class ScriptError(Exception):
    pass

# utilities

def run_as(user, script):
    """Run the bash `script` in a login shell of `user`.

    If the script fails, a :exc:`ScriptError` is raised.
    """
    logging.getLogger('frappebox').debug('Running script as %s', user)
    try:
        check_call(['su', '-s', '/bin/bash', '-', user, '-c', 'set -eo pipefail\n' + script])
    except CalledProcessError as e:
        raise ScriptError(user) from e

def generate_password():
    """Generate a random password with 128 bits of entropy, as 32 hex characters."""
    return token_hex(16)

def is_site_name(name):
    return bool(_SITE_NAME_PATTERN.match(name or ''))

def detect_timezone(default, timezone_path='/etc/timezone', localtime_path='/etc/localtime',
                    zoneinfo_path='/usr/share/zoneinfo'):
    """Detect the timezone of the system.

    Sources are, in order: ``TZ``, the timezone file, the target of the localtime link and
    finally `default`.
    """
    tz = os.environ.get('TZ')
    if tz:
        return tz
    try:
        with open(timezone_path) as f:
            tz = f.read().strip()
    except OSError:
        tz = None
    if tz:
        return tz
    if os.path.islink(localtime_path):
        prefix = os.path.realpath(zoneinfo_path) + os.sep
        target = os.path.realpath(localtime_path)
        return target[len(prefix):] if target.startswith(prefix) else target
    return default

def _sql_quote(value):
    return value.replace('\\', '\\\\').replace("'", "\\'")

def _number(config, key):
    try:
        return int(config[key])
    except (TypeError, ValueError):
        raise ValueError(key)

def _flag(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {'1', 'yes', 'true', 'on'}

# main

def main(args=None):
    parser = ArgumentParser(
        prog='frappebox', argument_default=argparse.SUPPRESS,
        description="""Provision a multitenant Frappe bench inside a container.""")
    parser.add_argument('-v', '--verbose', action='store_true')
    parser.add_argument('-c', '--config', default=DEFAULT_CONFIG_PATH,
                        help='Path to the configuration file.')
    subparsers = parser.add_subparsers(dest='command')
    subparsers.required = True

    def install_cmd(installer):
        installer.install()
        print('Installation completed!')
        print('Summary: {}'.format(installer.config['summary_path']))
        print('After container restart, run: {}'.format(installer.config['start_path']))

    def new_site_cmd(installer, site_id=None):
        site, created = installer.new_site(site_id)
        if not created:
            print('Site {} already exists.'.format(site_id or installer.config['new_site']))
            return
        if os.path.isfile(installer.config['summary_path']):
            installer._write_summary()
        print('Tenant created:')
        print('  Site/Host: {}'.format(site.id))
        print('  Login: Administrator')
        print('  Password: {}'.format(site.admin_password))
        print('Add this to the hosts file:')
        print('  127.0.0.1   {}'.format(site.id))
        print('Then open: {}'.format(site.url))

    def start_cmd(installer, foreground=False):
        pid = installer.start_bench(foreground=foreground)
        if pid is None and not foreground:
            print('Bench already running.')

    def list_cmd(installer):
        for site in sorted(installer.sites.values(), key=lambda s: s.id):
            print('* {} [{}]'.format(site.id, 'present' if site.exists else 'missing'))

    cmd = subparsers.add_parser(
        'install',
        description="""Install MariaDB, Redis, Node and bench, then create the default site.""")
    cmd.set_defaults(run=install_cmd)

    cmd = subparsers.add_parser(
        'new-site',
        description="""Create an additional tenant site, served by host name.""")
    cmd.set_defaults(run=new_site_cmd)
    cmd.add_argument('site_id', nargs='?', default=None, metavar='SITENAME',
                     help='Host name of the site (default: site1.localhost).')

    cmd = subparsers.add_parser(
        'start',
        description="""Start MariaDB, Redis and bench.""")
    cmd.set_defaults(run=start_cmd)
    cmd.add_argument('--foreground', action='store_true', help='Keep bench attached.')

    cmd = subparsers.add_parser(
        'list',
        description="""List all tenant sites.""")
    cmd.set_defaults(run=list_cmd)

    args = vars(parser.parse_args(args))

    verbose = args.pop('verbose', False)
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level)
    logger = logging.getLogger('frappebox')

    config_path = args.pop('config')
    command = args.pop('command')
    run = args.pop('run')

    if os.geteuid() != 0:
        logger.error('Run this as root inside the container.')
        return 1

    config = ConfigParser()
    config.read(config_path)
    options = dict(config['frappebox']) if config.has_section('frappebox') else {}
    options['config_path'] = config_path

    try:
        installer = Installer(options)
        installer.start()
        run(installer, **args)
    except (ScriptError, CalledProcessError, OSError, ValueError) as e:
        logger.error('%s failed: %r', command, e)
        return 1
    return 0

if __name__ == '__main__':
    sys.exit(main())
