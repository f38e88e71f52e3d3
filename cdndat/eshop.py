# -*- coding: utf-8 -*-

# Language lists of 3DS ports of DSiWare titles, from the 3DS eShop.

import logging
import xml.etree.ElementTree as ET

import requests
import urllib3

from .languages import language_from_code
from .regions import REGION_TWO_LETTER_CODES, lookup_regions

log = logging.getLogger(__name__)

NINJA_URL = 'https://ninja.ctr.shop.nintendo.net/ninja/ws/titles/id_pair?title_id[]=%s'
SAMURAI_URL = 'https://samurai.ctr.shop.nintendo.net/samurai/ws/%s/title/%s'

DEFAULT_TIMEOUT = 10


def make_request(method, url, certificate=None, hdArgs={}, timeout=DEFAULT_TIMEOUT):
    reqHd = {'User-Agent': 'CTR/P/1.0.0/r61631',
             'Accept-Encoding': 'gzip, deflate',
             'Accept': '*/*',
             'Connection': 'keep-alive'}
    reqHd.update(hdArgs)

    r = requests.request(method, url, cert=certificate, headers=reqHd, verify=False, timeout=timeout)
    r.raise_for_status()
    return r


class eshop:
    def __init__(self, portMap, certificate=None, timeout=DEFAULT_TIMEOUT, request=make_request):
        # portMap: upper-case DSi title ID -> 3DS title ID
        self.portMap = portMap
        self.certificate = certificate
        self.timeout = timeout
        self.request = request
        urllib3.disable_warnings()

    def has_port(self, tid):
        return tid.upper() in self.portMap

    def content_id(self, tid3ds):
        url = NINJA_URL % tid3ds
        try:
            r = self.request('GET', url, self.certificate, timeout=self.timeout)
            root = ET.fromstring(r.content)
        except (requests.RequestException, ET.ParseError) as e:
            log.error('\'%s\' could not be looked up on ninja at \'%s\': %s', tid3ds, url, e)
            return None
        nsUid = root.findtext('.//ns_uid')
        if not nsUid or not nsUid.strip():
            log.error('Unable to get the eShop content ID of \'%s\' from \'%s\'.', tid3ds, url)
            return None
        return nsUid.strip()

    def title_languages(self, tid, twoLetter):
        # None when there's no port, or nothing could be fetched for this storefront
        tid3ds = self.portMap.get(tid.upper())
        if not tid3ds:
            return None

        nsUid = self.content_id(tid3ds)
        if nsUid is None:
            return None

        url = SAMURAI_URL % (twoLetter, nsUid)
        try:
            r = self.request('GET', url, self.certificate, timeout=self.timeout)
            root = ET.fromstring(r.content)
        except (requests.RequestException, ET.ParseError) as e:
            log.debug('\'%s\' (\'%s\' on 3DS) has no page at \'%s\': %s', tid, tid3ds, url, e)
            return None

        langs = []
        for code in root.iterfind('.//languages//iso_code'):
            l = language_from_code(code.text)
            if l is None:
                log.warning('Unknown language code \'%s\' at \'%s\'.', code.text, url)
            elif l not in langs:
                langs.append(l)
        if not langs:
            log.warning('\'%s\' (\'%s\' on 3DS) has no listed languages at \'%s\'.', tid, tid3ds, url)
        return langs

    def port_languages(self, tid, region):
        # Walk the storefronts of the title's regions, most specific first
        for r in lookup_regions(region):
            twoLetter = REGION_TWO_LETTER_CODES.get(r)
            if twoLetter is None:
                continue
            langs = self.title_languages(tid, twoLetter)
            if langs is not None:
                return langs
        return None
