# -*- coding: utf-8 -*-

# One pass over each title directory, producing an immutable record of everything
# the catalog needs to know about that title.

import os
import re
import pickle
import logging
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from tqdm import tqdm

from .binary import TITLE_SLOTS, SYSTEM_GAME_CODE_CHAR, tmd, srl, game_code_from_title_id
from .errors import TitleError, CheckpointError
from .hashes import HEADER_FILE_SUFFIX, HASHES_FILE_SUFFIX
from .languages import Language, classify, resolve_languages, primary_language
from .names import display_name_from_banner
from .regions import region_from_code
from .tickets import TICKET_FILE_NAME, METADATA_FILE_RE, CONTENT_ENCRYPTED_RE, read_ticket_version

log = logging.getLogger(__name__)

DELETED_TITLE_FILE_NAME = 'DeletedTitle.txt' # Marks a title pulled from the DSi Shop
MINIMUM_TITLE_FILES = 3

CONTENT_DECRYPTED_RE = re.compile(r'[\da-f]{8}\.[\da-z]+', re.IGNORECASE)
META_FILE_RE = re.compile(r'fffe[\da-f]{4}|fffffffd', re.IGNORECASE)
MISC_FILE_RE = re.compile(r'f[\da-f]{7}', re.IGNORECASE)

DecryptedContent = namedtuple('DecryptedContent', ['contentId', 'fileName', 'metadataIndex', 'serial'])


@dataclass(frozen=True)
class TitleRecord:
    titleId: str
    titleDir: str
    gameCode: str
    regionCode: str
    region: int
    languages: tuple
    nebulousLanguages: tuple
    primaryLanguage: Language
    displayName: str
    system: bool
    deleted: bool
    usedEshop: bool
    titles: tuple
    tickets: tuple      # (fileName, version)
    metadata: tuple     # tmd, oldest first
    encrypted: tuple    # content IDs
    decrypted: tuple    # DecryptedContent
    misc: tuple
    meta: tuple

    @property
    def titleIdLower(self):
        return self.titleId.lower()

    def title_only(self, lang):
        # Banner title without the publisher, for the media export
        t = self.titles[TITLE_SLOTS.index(lang.name)] if lang.name in TITLE_SLOTS else None
        if t is None:
            return ''
        lines = t.split('\n')
        if len(lines) > 1:
            lines = lines[:-1]
        return ' '.join(l.strip(' \0') for l in lines)


def is_sidecar(fName):
    return fName.endswith(HEADER_FILE_SUFFIX) or fName.endswith(HASHES_FILE_SUFFIX)

def classify_files(fileNames):
    files = {'deleted': False, 'tickets': [], 'metadata': [], 'encrypted': [], 'decrypted': [], 'misc': [], 'meta': []}
    for fName in sorted(fileNames):
        if is_sidecar(fName):
            continue
        if fName == DELETED_TITLE_FILE_NAME:
            files['deleted'] = True
        elif fName.lower() == TICKET_FILE_NAME:
            files['tickets'].append(fName)
        elif METADATA_FILE_RE.fullmatch(fName):
            files['metadata'].append(fName)
        elif CONTENT_ENCRYPTED_RE.fullmatch(fName):
            files['encrypted'].append(fName)
        elif CONTENT_DECRYPTED_RE.fullmatch(fName):
            files['decrypted'].append(fName)
        elif META_FILE_RE.fullmatch(fName):
            files['meta'].append(fName)
        elif MISC_FILE_RE.fullmatch(fName):
            files['misc'].append(fName)
        else:
            log.debug('Ignoring unrecognized file \'%s\'.', fName)
    return files

def newest_metadata_index(metadata):
    newest = -1
    version = -1
    for i in range(len(metadata) - 1, -1, -1):
        if metadata[i].titleVersion > version:
            version = metadata[i].titleVersion
            newest = i
    return newest

def link_decrypted(metadata, decryptedFiles):
    # content ID -> (fileName, index of the oldest metadata record listing it)
    linked = {f.split('.')[0].lower(): [f, -1] for f in decryptedFiles}
    for i in range(len(metadata) - 1, -1, -1):
        for info in metadata[i].contents:
            if info.name in linked:
                linked[info.name][1] = i
            else:
                log.error('The content file \'%s\' does not exist, but should according to \'%s\'.',
                          info.name, metadata[i].fileName)
    return linked

def banner_title(rom, lang):
    if lang.name in TITLE_SLOTS:
        t = rom.title(lang.name)
        if t is not None:
            return t, lang
    # Languages without a banner slot (or a missing one) fall back to English, then anything
    for slot in ('En',) + TITLE_SLOTS:
        t = rom.title(slot)
        if t is not None:
            return t, Language[slot]
    return None, lang

def collect_title(titleDir, shop=None, nameOverrides={}, classify=classify):
    tid = os.path.basename(os.path.normpath(titleDir)).upper()
    gameCode = game_code_from_title_id(tid)
    log.info('%s - %s', tid, gameCode)

    files = classify_files(os.listdir(titleDir))
    total = len(files['metadata']) + len(files['encrypted']) + len(files['decrypted'])
    if total < MINIMUM_TITLE_FILES:
        raise TitleError(tid, 'below the expected number of files (%d)' % total)

    try:
        tickets = tuple((f, read_ticket_version(os.path.join(titleDir, f))) for f in files['tickets'])
        metadata = tuple(sorted((tmd.from_file(os.path.join(titleDir, f)) for f in files['metadata']),
                                key=lambda m: m.suffix))
    except ValueError as e:
        raise TitleError(tid, str(e))
    linked = link_decrypted(metadata, files['decrypted'])

    if len(files['encrypted']) != len(files['decrypted']):
        log.error('%s: the number of encrypted files (%d) is mismatched with the number of decrypted ones (%d).',
                  tid, len(files['encrypted']), len(files['decrypted']))

    newest = newest_metadata_index(metadata)
    if newest < 0 or not metadata[newest].contents:
        raise TitleError(tid, 'no metadata record lists any content')
    newestId = metadata[newest].contents[0].name
    if newestId not in linked:
        raise TitleError(tid, 'the newest content \'%s\' has not been decrypted' % newestId)

    rom = srl.from_file(os.path.join(titleDir, linked[newestId][0]))
    regionCode = rom.regionCode
    if not regionCode:
        log.warning('The ROM \'%s\' of %s is not valid, the region will be derived from the title ID.',
                    linked[newestId][0], tid)
        regionCode = gameCode[-1]
    region = region_from_code(regionCode)

    isSystemCode = gameCode[:1].upper() == SYSTEM_GAME_CODE_CHAR
    authoritative = None
    if shop is not None:
        authoritative = shop.port_languages(tid, region)
        if authoritative:
            log.debug('%s has a 3DS port, with languages %s.', tid, ', '.join(l.name for l in authoritative))
        elif shop.has_port(tid):
            log.warning('%s is supposed to have a 3DS port, but nothing was found. Using the ROM titles.', tid)

    hasTitles = any(rom.title(s) is not None for s in TITLE_SLOTS)
    confirmed, nebulous = resolve_languages(rom.titles, region, isSystemCode or not hasTitles,
                                            authoritative, classify, tid)
    primary = primary_language(confirmed, region)

    title, titleLang = banner_title(rom, primary)
    displayName = nameOverrides.get(tid) or display_name_from_banner(title, titleLang)
    system = rom.title(primary.name) is None if primary.name in TITLE_SLOTS else title is None
    system = system or isSystemCode

    decrypted = []
    for contentId, (fName, metadataIndex) in sorted(linked.items()):
        if metadataIndex < 0:
            log.warning('\'%s\' of %s is not listed by any metadata record.', fName, tid)
        decrypted.append(DecryptedContent(contentId, fName, metadataIndex,
                                          srl.from_file(os.path.join(titleDir, fName)).serial))

    return TitleRecord(titleId=tid,
                       titleDir=titleDir,
                       gameCode=gameCode,
                       regionCode=regionCode,
                       region=int(region),
                       languages=tuple(confirmed),
                       nebulousLanguages=tuple(nebulous),
                       primaryLanguage=primary,
                       displayName=displayName,
                       system=system,
                       deleted=files['deleted'],
                       usedEshop=bool(authoritative),
                       titles=tuple(rom.titles),
                       tickets=tickets,
                       metadata=metadata,
                       encrypted=tuple(files['encrypted']),
                       decrypted=tuple(decrypted),
                       misc=tuple(files['misc']),
                       meta=tuple(files['meta']))

def collect_all(archiveDir, threads=8, **kwargs):
    titleDirs = sorted(os.path.join(archiveDir, d) for d in os.listdir(archiveDir)
                       if os.path.isdir(os.path.join(archiveDir, d)))
    log.info('Collecting title info from \'%s\' (%d titles).', archiveDir, len(titleDirs))

    records = []
    with ThreadPoolExecutor(max_workers=max(threads, 1)) as pool:
        futures = {pool.submit(collect_title, d, **kwargs): d for d in titleDirs}
        for future in tqdm(futures, desc='Collecting', unit='title', leave=False):
            try:
                records.append(future.result())
            except TitleError as e:
                log.error('Skipping \'%s\': %s', futures[future], e)

    return sorted(records, key=lambda r: r.titleId)

def load_or_collect(cachePath, compute):
    if cachePath and os.path.exists(cachePath):
        log.info('Loading the cached results at \'%s\'.', cachePath)
        try:
            with open(cachePath, 'rb') as f:
                return pickle.load(f)
        except (pickle.UnpicklingError, EOFError, AttributeError, ImportError, TypeError, ValueError) as e:
            raise CheckpointError('Unable to load the title info cache \'%s\': %s' % (cachePath, e))

    records = compute()
    if cachePath:
        with open(cachePath, 'wb') as f:
            pickle.dump(records, f)
        log.info('Cached the title info of %d titles at \'%s\'.', len(records), cachePath)
    return records
