"""Record directives sent from the orchestrator to DNS provider adapters.

An upsert directive is the text ``<fqdn> IN TXT "<content>"`` where
``<fqdn>`` ends with a dot. The clear directive is the empty string.

"""
import logging
import re
from typing import Callable
from typing import NamedTuple

from dns01_renewer import constants
from dns01_renewer import errors
from dns01_renewer import interfaces

logger = logging.getLogger(__name__)

_DIRECTIVE_RE = re.compile(r'\A(?P<fqdn>\S+) IN (?P<type>[A-Z]+) "(?P<content>[^"]*)"\Z')


class DirectiveRecord(NamedTuple):
    """A single record directive.

    A record with an empty ``fqdn`` is the clear directive.

    """
    fqdn: str
    record_type: str = constants.CHALLENGE_RECORD_TYPE
    content: str = ''

    @classmethod
    def upsert(cls, challenge: interfaces.Challenge) -> 'DirectiveRecord':
        """Build the upsert directive publishing a challenge."""
        return cls(challenge.fqdn + '.', challenge.record_type, challenge.record_content)

    @property
    def is_clear(self) -> bool:
        """Is this the clear directive?"""
        return not self.fqdn

    def format(self) -> str:
        """Render the textual form of the directive."""
        if self.is_clear:
            return ''
        return '{0} IN {1} "{2}"'.format(self.fqdn, self.record_type, self.content)


CLEAR = DirectiveRecord('', '', '')


def parse(text: str) -> DirectiveRecord:
    """Parse the textual form of a directive.

    :param str text: directive text, a single trailing newline is allowed

    :returns: the parsed directive, `CLEAR` for the empty string
    :rtype: DirectiveRecord

    :raises .DirectiveError: if the text is not a directive

    """
    text = text.rstrip('\n')
    if not text:
        return CLEAR
    match = _DIRECTIVE_RE.match(text)
    if match is None:
        raise errors.DirectiveError(f'{text!r} cannot be parsed as a record directive')
    return DirectiveRecord(match.group('fqdn'), match.group('type'), match.group('content'))


def emitter_for(provider: interfaces.DNSProvider) -> Callable[[str], None]:
    """Adapt a provider to the ``emit(text)`` callable taken by the orchestrator."""
    def emit(text: str) -> None:
        record = parse(text)
        if record.is_clear:
            logger.debug('Clearing records through %s', type(provider).__name__)
            provider.apply_clear()
        else:
            logger.debug('Applying %s through %s', text, type(provider).__name__)
            provider.apply_upsert(record)
    return emit
