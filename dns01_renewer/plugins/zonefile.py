"""DNS provider rewriting a BIND style master zone file.

The zone file must contain a serial line and a token area marker::

    @ IN SOA ns.example.com. hostmaster.example.com. (
            2024010100 ; serial
            ...
    ; token area

Everything after the marker belongs to this provider and is rewritten on
every directive.

"""
import datetime
import logging
import os
import re
import stat
from typing import List
from typing import Optional
from typing import Sequence
from typing import Tuple

from dns01_renewer import errors
from dns01_renewer import interfaces
from dns01_renewer import util
from dns01_renewer.configuration import ZoneConfig
from dns01_renewer.directives import DirectiveRecord

logger = logging.getLogger(__name__)

SERIAL_RE = re.compile(r'^(\s+)(\d+)(\s*;\s*serial)$', re.MULTILINE | re.IGNORECASE)
TOKEN_AREA = '; token area'
TOKEN_AREA_RE = re.compile(r'^; token area$.*\Z', re.MULTILINE | re.IGNORECASE | re.DOTALL)


def _base_serial(today: datetime.date) -> int:
    return int(today.strftime('%Y%m%d00'))


class ZoneFileProvider(interfaces.DNSProvider):
    """Publishes challenge records by editing a zone file.

    Each directive rewrites the token area with the records added since
    the last clear, bumps the zone serial and runs the configured
    commands (typically a nameserver reload).

    :ivar int serial: serial written by the latest rewrite

    """

    def __init__(self, zonefile: str, commands: Sequence[str] = (),
                 today: Optional[datetime.date] = None) -> None:
        self.zonefile = zonefile
        self.commands = list(commands)
        self.serial = _base_serial(today or datetime.date.today())
        self.records: List[DirectiveRecord] = []

    @classmethod
    def from_config(cls, config: ZoneConfig) -> 'ZoneFileProvider':
        """Build the provider from the ``zonefile`` key of a zone configuration."""
        zonefile = config.extra.get('zonefile')
        if not zonefile:
            raise errors.ConfigError('The zonefile provider needs a zonefile setting.')
        return cls(str(zonefile), config.commands)

    def apply_upsert(self, record: DirectiveRecord) -> None:
        self.records.append(record)
        self._rewrite()

    def apply_clear(self) -> None:
        self.records = []
        self._rewrite()

    def _rewrite(self) -> None:
        try:
            with open(self.zonefile) as f:
                content = f.read()
            mode = stat.S_IMODE(os.stat(self.zonefile).st_mode)
        except OSError as error:
            raise errors.PluginError(
                f'Unable to read zone file {self.zonefile}: {error}') from error

        serial, content = self._bump_serial(content)
        if not TOKEN_AREA_RE.search(content):
            raise errors.PluginError(
                f'No "{TOKEN_AREA}" line found in zone file {self.zonefile}')
        tokens = ''.join(record.format() + '\n' for record in self.records)
        content = TOKEN_AREA_RE.sub(lambda _: TOKEN_AREA + '\n' + tokens, content, count=1)

        self._replace(content, mode)
        self.serial = serial
        logger.info('Zone file %s written with serial %d and %d challenge record(s)',
                    self.zonefile, self.serial, len(self.records))

        for command in self.commands:
            util.run_command('reload', command)

    def _replace(self, content: str, mode: int) -> None:
        # written beside the zone file, then renamed over it
        directory, name = os.path.split(os.path.abspath(self.zonefile))
        tmp_path = os.path.join(directory, '.{0}.tmp'.format(name))
        try:
            with util.safe_open(tmp_path, 'w', chmod=mode) as f:
                f.write(content)
            os.replace(tmp_path, self.zonefile)
        except OSError as error:
            if os.path.lexists(tmp_path):
                os.unlink(tmp_path)
            raise errors.PluginError(
                f'Unable to write zone file {self.zonefile}: {error}') from error

    def _bump_serial(self, content: str) -> Tuple[int, str]:
        match = SERIAL_RE.search(content)
        if match is None:
            raise errors.PluginError(f'No serial line found in zone file {self.zonefile}')
        serial = max(int(match.group(2)) + 1, self.serial)
        logger.debug('Zone serial %s -> %d', match.group(2), serial)
        return serial, '{0}{1}{2}{3}{4}'.format(
            content[:match.start()], match.group(1), serial, match.group(3),
            content[match.end():])
