# -*- coding: utf-8 -*-

import os
import json
import logging

log = logging.getLogger(__name__)

CONFIG_FILE_NAME = 'CDNDATconfig.json'


def default_config(dir='.'):
    return {'Paths': {
                'commonKeyPath': os.path.join(dir, 'dsi_common_key.bin'),
                'referencePath': os.path.join(dir, 'ReferenceFiles'),
                'cachePath':     os.path.join(dir, 'allTitleInfo.pickle'),
                'ctrCertPath':   os.path.join(dir, 'ctr-common-1.pem'),
                'logPath':       ''},
            'Values': {
                'Threads':       8,
                'Timeout':       10,
                'PrimaryDumper': 'zedseven',
                'Tool':          'CDNDAT',
                'UseEshop':      True},
            'Contributors': []}

def load_config(fPath):
    config = default_config(os.path.dirname(os.path.abspath(fPath)))
    try:
        f = open(fPath, 'r')
    except FileNotFoundError:
        log.warning('Missing %s file at \'%s\', using the defaults.', CONFIG_FILE_NAME, fPath)
        return config

    with f:
        j = json.load(f)

    for key1 in config:
        if key1 not in j:
            continue
        if isinstance(config[key1], dict):
            for key2 in j[key1]:
                config[key1].update({key2: j[key1][key2]})
        else:
            config[key1] = j[key1]

    return config

def read_common_key(fPath):
    # Either 16 raw bytes or 32 hex digits
    with open(fPath, 'rb') as f:
        data = f.read()
    if len(data) == 16:
        return data
    if len(data.strip()) == 32:
        return bytes.fromhex(data.strip().decode('ascii'))
    raise ValueError('Common key at \'%s\' must be 16 bytes or 32 hex digits, got %d bytes!' % (fPath, len(data)))
