# -*- coding: utf-8 -*-

# Reference tables kept alongside the archive: contributor inventories, dump dates,
# replacement tickets, display-name overrides and the DSi -> 3DS port map.

import os
import logging
from datetime import datetime

from .hashes import hash_collection

log = logging.getLogger(__name__)

DSI_TO_3DS_FILE = 'DSi23DS.csv'
NAME_OVERRIDES_FILE = 'NameOverrides.csv'


def load_pairs(fPath):
    # The first line is a heading, '#' lines are comments, values are split at the first comma
    if not fPath or not os.path.exists(fPath):
        log.warning('Reference file \'%s\' does not exist, treating it as empty.', fPath)
        return []

    pairs = []
    with open(fPath, 'r', encoding='utf-8') as f:
        next(f, None)
        for n, line in enumerate(f, 2):
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            key, sep, value = line.partition(',')
            if not sep:
                log.warning('Line %d of \'%s\' has no comma, skipping: \'%s\'', n, fPath, line)
                continue
            pairs.append((key.strip(), value.strip()))
    return pairs

def load_membership(fPath):
    # {(lower-case title ID, filename)}
    return {(tid.lower(), fName) for tid, fName in load_pairs(fPath)}

def parse_date(text):
    return datetime.fromisoformat(text.strip().replace('Z', '+00:00')).date()

def load_dates(fPath):
    # {(lower-case title ID, filename): date}
    dates = {}
    for key, value in load_pairs(fPath):
        parts = key.split(' ')
        if len(parts) != 2:
            log.warning('Malformed date override key in \'%s\': \'%s\'', fPath, key)
            continue
        try:
            dates[(parts[0].lower(), parts[1])] = parse_date(value)
        except ValueError:
            log.warning('Malformed date in \'%s\' for \'%s\': \'%s\'', fPath, key, value)
    return dates

def load_replacements(fPath):
    # {lower-case title ID: hash_collection} of tickets that differ from the local copy
    replacements = {}
    for tid, value in load_pairs(fPath):
        hashes = value.split(' ')
        if len(hashes) != 3:
            log.warning('Malformed replacement hashes in \'%s\' for \'%s\': \'%s\'', fPath, tid, value)
            continue
        replacements[tid.lower()] = hash_collection(None, hashes[0], hashes[1], hashes[2], None)
    return replacements

def load_name_overrides(fPath):
    return {tid.upper(): name for tid, name in load_pairs(fPath)}

def load_port_map(fPath):
    return {dsi.upper(): tid3ds.upper() for dsi, tid3ds in load_pairs(fPath)}
