"""DNS provider for the Gehirn DNS REST API."""
import logging
import os
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import requests

from dns01_renewer import errors
from dns01_renewer import interfaces
from dns01_renewer.configuration import ZoneConfig
from dns01_renewer.directives import DirectiveRecord

logger = logging.getLogger(__name__)

API_BASE = 'https://api.gis.gehirn.jp/dns/v1/'
TOKEN_ENV = 'GEHIRN_DNS_API_TOKEN'
SECRET_ENV = 'GEHIRN_DNS_API_SECRET'
DEFAULT_TTL = 60
HTTP_TIMEOUT = 30


class _GehirnClient:
    """
    Encapsulates all communication with the Gehirn DNS API.
    """

    def __init__(self, token: str, secret: str, base_url: str = API_BASE,
                 session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url
        self.session = session or requests.Session()
        self.session.auth = (token, secret)

    def _request(self, method: str, endpoint: str, body: Optional[Dict[str, Any]] = None) -> Any:
        url = self.base_url + endpoint
        logger.debug('%s %s %s', method, url, body if body is not None else '')
        try:
            resp = self.session.request(method, url, json=body, timeout=HTTP_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise errors.PluginError('Error communicating with the Gehirn DNS API: {0}'
                                     .format(e)) from e
        if resp.status_code != 200:
            try:
                message = resp.json()['message']
            except (ValueError, KeyError, TypeError):
                message = resp.text or 'no description'
            raise errors.PluginError('Gehirn DNS API returned {0} for {1} {2}: {3}'
                                     .format(resp.status_code, method, endpoint, message))
        try:
            return resp.json()
        except ValueError as e:
            raise errors.PluginError('API response with non JSON: {0}'.format(resp.text)) from e

    def zones(self) -> List[Dict[str, Any]]:
        """List the zones of the account."""
        return self._request('GET', 'zones')

    def find_zone(self, fqdn: str) -> Dict[str, Any]:
        """
        Find the zone owning a record, the longest zone name matching wins.

        :param str fqdn: record name ending with a dot
        :raises errors.PluginError: if no zone of the account owns the record
        """
        candidates = [zone for zone in self.zones()
                      if fqdn == zone['name'] + '.' or fqdn.endswith('.' + zone['name'] + '.')]
        if not candidates:
            raise errors.PluginError('No Gehirn DNS zone found for {0}'.format(fqdn))
        return max(candidates, key=lambda zone: len(zone['name']))

    def _records_endpoint(self, zone: Dict[str, Any]) -> str:
        return 'zones/{0}/versions/{1}/records'.format(zone['id'], zone['current_version_id'])

    def find_record(self, zone: Dict[str, Any], fqdn: str,
                    record_type: str) -> Optional[Dict[str, Any]]:
        """Return the record set named ``fqdn`` of the given type, if any."""
        for record in self._request('GET', self._records_endpoint(zone)):
            if record['name'] == fqdn and record['type'] == record_type:
                if record.get('enable_alias'):
                    raise errors.PluginError('Alias record {0} is not supported'.format(fqdn))
                return record
        return None

    def add_record(self, zone: Dict[str, Any], fqdn: str, record_type: str,
                   content: str) -> None:
        """
        Add a value to a record set, creating the set if needed.

        :param dict zone: owning zone, as returned by `find_zone`
        :param str fqdn: record name ending with a dot
        :param str record_type: record type
        :param str content: record value
        :raises errors.PluginError: if an error occurs communicating with the API
        """
        endpoint = self._records_endpoint(zone)
        current = self.find_record(zone, fqdn, record_type)
        if current is None:
            logger.debug('Creating %s record set %s', record_type, fqdn)
            self._request('POST', endpoint, {
                'enable_alias': False,
                'name': fqdn,
                'ttl': DEFAULT_TTL,
                'records': [{'data': content}],
                'type': record_type,
            })
            return
        logger.debug('Adding a value to %s record set %s', record_type, fqdn)
        current['records'] = current['records'] + [{'data': content}]
        self._request('PUT', '{0}/{1}'.format(endpoint, current['id']), current)

    def delete_record(self, zone: Dict[str, Any], fqdn: str, record_type: str,
                      content: str) -> None:
        """Remove a value from a record set, and the set once it is empty."""
        endpoint = self._records_endpoint(zone)
        current = self.find_record(zone, fqdn, record_type)
        if current is None:
            logger.debug('%s record set %s is already gone', record_type, fqdn)
            return
        remaining = [r for r in current['records'] if r.get('data') != content]
        if remaining:
            current['records'] = remaining
            self._request('PUT', '{0}/{1}'.format(endpoint, current['id']), current)
        else:
            self._request('DELETE', '{0}/{1}'.format(endpoint, current['id']))


class GehirnProvider(interfaces.DNSProvider):
    """Publishes challenge records through the Gehirn DNS API.

    Records added since the last clear are remembered and removed one by
    one on clear.

    """

    def __init__(self, client: _GehirnClient) -> None:
        self.client = client
        self.records: List[DirectiveRecord] = []

    @classmethod
    def from_config(cls, config: ZoneConfig) -> 'GehirnProvider':
        """Build the provider from ``token``/``secret`` settings or the environment."""
        token = config.extra.get('token') or os.environ.get(TOKEN_ENV)
        secret = config.extra.get('secret') or os.environ.get(SECRET_ENV)
        if not token or not secret:
            raise errors.ConfigError(
                'Gehirn DNS credentials missing: set token and secret, or {0} and {1}.'
                .format(TOKEN_ENV, SECRET_ENV))
        return cls(_GehirnClient(str(token), str(secret)))

    def apply_upsert(self, record: DirectiveRecord) -> None:
        zone = self.client.find_zone(record.fqdn)
        logger.info('Adding %s %s to zone %s', record.record_type, record.fqdn, zone['name'])
        self.client.add_record(zone, record.fqdn, record.record_type, record.content)
        self.records.append(record)

    def apply_clear(self) -> None:
        failed = []
        for record in self.records:
            try:
                zone = self.client.find_zone(record.fqdn)
                logger.info('Deleting %s %s from zone %s',
                            record.record_type, record.fqdn, zone['name'])
                self.client.delete_record(zone, record.fqdn, record.record_type,
                                          record.content)
            except errors.PluginError as e:
                logger.error('Unable to delete %s: %s', record.fqdn, e)
                failed.append(record.fqdn)
        self.records = []
        if failed:
            raise errors.PluginError('Unable to delete records: {0}'.format(', '.join(failed)))
