# -*- coding: utf-8 -*-

import os
import sys
import logging
import argparse

from . import __version__
from .catalog import write_catalog, make_sources, write_nds_files
from .collect import collect_all, load_or_collect
from .config import CONFIG_FILE_NAME, load_config, read_common_key
from .errors import CdnDatError
from .eshop import eshop
from .families import build_members
from .provenance import load_contributor
from .reference import DSI_TO_3DS_FILE, NAME_OVERRIDES_FILE, load_name_overrides, load_port_map
from .tickets import decrypt_entry, decrypt_entries

log = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def setup_logging(verbose=0, quiet=False, logPath=''):
    level = logging.INFO
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG

    handlers = [logging.StreamHandler()]
    if logPath:
        handlers.append(logging.FileHandler(logPath, encoding='utf-8'))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)

def decrypt(config, archiveDir, keyPath='', tkey='', makeQolFiles=False):
    if tkey:
        # A title key override only makes sense for a single title
        decrypt_entry(None, archiveDir, tkey, makeQolFiles=makeQolFiles)
        return 0

    commonKey = read_common_key(keyPath or config['Paths']['commonKeyPath'])
    decrypt_entries(commonKey, archiveDir, config['Values']['Threads'], makeQolFiles)
    return 0

def build(config, archiveDir, outPath, mediaPath=None, makeNdsFiles=False):
    paths, values = config['Paths'], config['Values']
    ref = paths['referencePath']

    shop = None
    if values['UseEshop']:
        cert = paths['ctrCertPath']
        if not cert or not os.path.exists(cert):
            log.warning('No CTR certificate at \'%s\'. 3DS eShop info will likely be unavailable.', cert)
            cert = None
        shop = eshop(load_port_map(os.path.join(ref, DSI_TO_3DS_FILE)), cert, values['Timeout'])
    overrides = load_name_overrides(os.path.join(ref, NAME_OVERRIDES_FILE))

    records = load_or_collect(paths['cachePath'],
                              lambda: collect_all(archiveDir, values['Threads'], shop=shop, nameOverrides=overrides))
    members = build_members(records)

    contributors = [load_contributor(c, ref) for c in config['Contributors']]
    tool = '%s v%s' % (values['Tool'], __version__)
    write_catalog(records, members, outPath, make_sources(values['PrimaryDumper'], tool, contributors), mediaPath)
    if makeNdsFiles:
        write_nds_files(records)
    return 0

def main(argv=None):
    formatter = lambda prog: argparse.RawTextHelpFormatter(prog, max_help_position=40)
    parser = argparse.ArgumentParser(prog='cdndat', formatter_class=formatter)

    parser.add_argument('-d', dest='decrypt', default='', metavar='ARCHIVE', help='''\
decrypt every title directory in ARCHIVE:
   - uses the cetk of a title when there is one
   - otherwise the title key is recovered from the
     title key generator's password dictionary
   - decrypted contents are written beside the
     encrypted ones as <content id>.app''')

    parser.add_argument('-t', dest='tkey', default='', metavar='TITLEKEY', help='''\
title key to decrypt with (32 hex digits)
   - ARCHIVE given to -d is then a single title directory''')

    parser.add_argument('-k', dest='key', default='', metavar='KEY', help='''\
path to the DSi common key (16 bytes or 32 hex digits)
   - defaults to Paths.commonKeyPath of the config''')

    parser.add_argument('-x', dest='build', default=None, metavar=('ARCHIVE', 'OUT.xml'), nargs=2, help='''\
build a DAT-o-MATIC XML dat of the decrypted ARCHIVE:
   - title info is cached at Paths.cachePath, delete
     the cache to collect it again''')

    parser.add_argument('-m', dest='media', default=None, metavar='MEDIA.csv', help='''\
also write the media CSV (and titles.csv beside it)
   - only used with -x''')

    parser.add_argument('-p', dest='qol', action='store_true', default=False, help='''\
while decrypting, write an empty '<game code> - <game title> - <title>.txt'
marker into each title directory
   - only used with -d''')

    parser.add_argument('-n', dest='nds', action='store_true', default=False, help='''\
copy the newest ROM of each title to '<catalog name> (<region>).nds'
beside its CDN files
   - only used with -x''')

    parser.add_argument('-c', dest='config', default=CONFIG_FILE_NAME, metavar='CONFIG', help='''\
path to the config file (default: %s)''' % CONFIG_FILE_NAME)

    parser.add_argument('-v', dest='verbose', action='count', default=0, help='debug logging')
    parser.add_argument('-q', dest='quiet', action='store_true', default=False, help='only log warnings and errors')
    parser.add_argument('--version', action='version', version='%(prog)s ' + __version__)

    args = parser.parse_args(argv)

    if not args.decrypt and not args.build:
        parser.print_help()
        return 1
    if args.tkey and len(args.tkey) != 32:
        parser.error('Titlekey %s is not a 32-digits hexadecimal number!' % args.tkey)

    config = load_config(args.config)
    setup_logging(args.verbose, args.quiet, config['Paths']['logPath'])

    try:
        if args.decrypt:
            decrypt(config, args.decrypt, args.key, args.tkey, args.qol)
        if args.build:
            archiveDir, outPath = args.build
            build(config, archiveDir, outPath, args.media, args.nds)
    except (CdnDatError, ValueError) as e:
        log.critical('%s', e)
        return 1

    log.info('Done!')
    return 0

if __name__ == '__main__':
    sys.exit(main())
