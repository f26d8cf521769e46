"""Utilities for all dns01_renewer."""
import errno
import logging
import os
import socket
import stat
import subprocess
from typing import IO
from typing import Optional
from typing import Tuple

from dns01_renewer import errors

logger = logging.getLogger(__name__)


def make_or_verify_dir(directory: str, mode: int = 0o755, strict: bool = False) -> None:
    """Make sure directory exists with proper permissions.

    Missing parent directories are created with the same mode.

    :param str directory: Path to a directory.
    :param int mode: Directory mode.
    :param bool strict: require directory to be owned by current user
        and to carry no more permissions than ``mode``

    :raises .errors.Error: if a directory already exists,
        but has wrong permissions or owner

    :raises OSError: if invalid or inaccessible file names and
        paths, or other arguments that have the correct type,
        but are not accepted by the operating system.

    """
    try:
        os.makedirs(directory, mode)
    except OSError as exception:
        if exception.errno != errno.EEXIST:
            raise
        if strict and not check_permissions(directory, mode):
            raise errors.Error(
                "%s exists, but it should be owned by current user with"
                " permissions %s" % (directory, oct(mode)))


def check_permissions(path: str, mode: int) -> bool:
    """Is ``path`` owned by the current user with no bits beyond ``mode``?"""
    info = os.stat(path)
    return (info.st_uid == os.getuid()
            and stat.S_IMODE(info.st_mode) & ~mode == 0)


def safe_open(path: str, mode: str = "w", chmod: Optional[int] = None) -> IO:
    """Safely open a new file.

    The file must not exist yet.

    :param str path: Path to a file.
    :param str mode: Same os `mode` for `open`.
    :param int chmod: permissions of the created file, uses Python defaults
        if ``None``.

    """
    open_args: Tuple[int, ...] = ()
    if chmod is not None:
        open_args = (chmod,)
    fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_RDWR, *open_args)
    if chmod is not None:
        # os.open applies the umask, the mode asked for is what we want.
        os.fchmod(fd, chmod)
    return os.fdopen(fd, mode)


def run_command(cmd_name: str, shell_cmd: str) -> Tuple[str, str]:
    """Run a configured shell command.

    :param str cmd_name: the user facing name of the command being run
    :param str shell_cmd: shell command to execute

    :returns: `tuple` (`str` stdout, `str` stderr)

    :raises .SubprocessError: if the command cannot be started or exits
        with a non zero status

    """
    logger.info("Running %s command: %s", cmd_name, shell_cmd)
    try:
        proc = subprocess.run(shell_cmd, shell=True, stdout=subprocess.PIPE,
                              stderr=subprocess.PIPE, universal_newlines=True,
                              check=False)
    except (OSError, ValueError) as error:
        msg = "Unable to run the %s command: %s" % (cmd_name, shell_cmd)
        logger.error(msg)
        raise errors.SubprocessError(msg) from error

    base_cmd = os.path.basename(shell_cmd.split(None, 1)[0]) if shell_cmd.strip() else shell_cmd
    if proc.stdout:
        logger.info('Output from %s command %s:\n%s', cmd_name, base_cmd, proc.stdout)
    if proc.returncode != 0:
        msg = "%s command %r returned error code %d\n%s" % (
            cmd_name, shell_cmd, proc.returncode, proc.stderr)
        logger.error(msg)
        raise errors.SubprocessError(msg)
    if proc.stderr:
        logger.warning('Error output from %s command %s:\n%s', cmd_name, base_cmd, proc.stderr)
    return proc.stdout, proc.stderr


def is_ipaddress(address: str) -> bool:
    """Is given address string form of IP(v4 or v6) address?

    :param address: address to check
    :type address: `str`

    :returns: True if address is valid IP address, otherwise return False.
    :rtype: bool

    """
    for family in (socket.AF_INET, socket.AF_INET6):
        try:
            socket.inet_pton(family, address)
            return True
        except OSError:
            continue
    return False
