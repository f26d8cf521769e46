"""dns01-renewer command line entry point."""
import logging
import signal
import sys
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional

import configargparse

import dns01_renewer
from dns01_renewer import account
from dns01_renewer import configuration
from dns01_renewer import directives
from dns01_renewer import errors
from dns01_renewer import interfaces
from dns01_renewer import log
from dns01_renewer.cancel import CancelToken
from dns01_renewer.orchestrator import AuthorizationOrchestrator
from dns01_renewer.plugins.gehirn import GehirnProvider
from dns01_renewer.plugins.zonefile import ZoneFileProvider

logger = logging.getLogger(__name__)

PROVIDERS: Dict[str, Callable[[configuration.ZoneConfig], interfaces.DNSProvider]] = {
    'gehirn': GehirnProvider.from_config,
    'zonefile': ZoneFileProvider.from_config,
}


def prepare_parser() -> configargparse.ArgParser:
    """Build the command line parser.

    Every option can also be given through a ``DNS01_RENEWER_*``
    environment variable.

    """
    parser = configargparse.ArgParser(
        prog='dns01-renewer',
        description='Authorize the domains of a DNS zone with dns-01 challenges '
                    'and renew its certificate when it is due.',
        auto_env_var_prefix='DNS01_RENEWER_')
    parser.add_argument('-c', '--config', required=True,
                        help='zone configuration file (INI)')
    parser.add_argument('-p', '--provider', choices=sorted(PROVIDERS), default='zonefile',
                        help='DNS provider publishing the challenge records '
                             '(default: %(default)s)')
    parser.add_argument('-v', '--verbose', dest='verbose_count', action='count', default=0,
                        help='print more messages, repeat for even more')
    parser.add_argument('-q', '--quiet', action='store_true',
                        help='only print errors')
    parser.add_argument('--version', action='version',
                        version='%(prog)s {0}'.format(dns01_renewer.__version__))
    return parser


def run(args: Any, cancel: CancelToken) -> int:
    """Authorize the configured zone and renew its certificate when due.

    :returns: exit status, 0 if a certificate was issued or none was
        needed, 1 if some domain failed to validate

    :raises .errors.Error: on configuration, account or renewal failures

    """
    config = configuration.load_config(args.config)
    log.post_config_setup(config.logfile)
    logger.debug('Zone configuration: %s', config)

    provider = PROVIDERS[args.provider](config)
    ca_client = account.ensure_account(config.authkey, config.mail, config.endpoint)
    orchestrator = AuthorizationOrchestrator(config, ca_client)
    valid = orchestrator.authorize(directives.emitter_for(provider), cancel)

    if orchestrator.issued or not orchestrator.last_outcomes:
        return 0
    logger.info('%d of %d domains validated', valid, len(config.domains))
    return 1


def _install_signal_handlers(cancel: CancelToken) -> Dict[int, Any]:
    def handler(signum: int, unused_frame: Any) -> None:
        logger.warning('Received signal %d, cancelling after the current step', signum)
        cancel.cancel('interrupted by signal {0}'.format(signum))

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handler)
    return previous


def main(cli_args: Optional[List[str]] = None) -> int:
    """Run dns01-renewer.

    :param cli_args: command line, defaults to ``sys.argv[1:]``
    :type cli_args: `list` of `str`

    :returns: value for `sys.exit`
    :rtype: int

    """
    args = prepare_parser().parse_args(sys.argv[1:] if cli_args is None else cli_args)
    log.pre_config_setup(args.verbose_count, args.quiet)

    cancel = CancelToken()
    previous = _install_signal_handlers(cancel)
    try:
        return run(args, cancel)
    except errors.Error as error:
        logger.debug('Exiting abnormally:', exc_info=True)
        logger.error('%s', error)
        return 1
    finally:
        for signum, old_handler in previous.items():
            signal.signal(signum, old_handler)


if __name__ == '__main__':
    sys.exit(main())  # pragma: no cover
