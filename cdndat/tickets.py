# -*- coding: utf-8 -*-

# Title keys, tickets and content decryption.

import os
import re
import logging
from hashlib import md5, pbkdf2_hmac
from binascii import hexlify as hx, unhexlify as uhx
from concurrent.futures import ThreadPoolExecutor

from Crypto.Cipher import AES
from tqdm import tqdm

from .binary import read_at, read_u16, tmd, srl, title_id_bytes, safe_file_name
from .errors import TitleError
from .hashes import sha1_file

log = logging.getLogger(__name__)

TICKET_FILE_NAME = 'cetk'
METADATA_FILE_NAME = 'tmd'
DECRYPTED_EXTENSION = 'app'

TICKET_TITLE_KEY_OFFSET = 0x1BF
TICKET_VERSION_OFFSET   = 0x1E6

METADATA_FILE_RE = re.compile(r'tmd(?:\.\d+)?', re.IGNORECASE)
CONTENT_ENCRYPTED_RE = re.compile(r'[\da-e][\da-f]{7}', re.IGNORECASE)

# Default passwords of the title key generator, most common first
KEYGEN_PASSWORDS = ('nintendo', 'mypass', 'FB10', 'test', '', 'password', 'twilight', 'twl', 'shop')
KEYGEN_SECRET = uhx('fd040105060b111c2d49')
KEYGEN_ITERATIONS = 20

BLOCK_SIZE = 16
BUF_SIZE = 0x100000


def derive_title_key(titleIdBytes, password):
    # Salt is keyed on the title ID with its leading zero bytes dropped
    trimmed = titleIdBytes.lstrip(b'\x00')
    salt = md5(KEYGEN_SECRET + trimmed).digest()
    if isinstance(password, str):
        password = password.encode()
    return pbkdf2_hmac('sha1', password, salt, KEYGEN_ITERATIONS, BLOCK_SIZE)

def content_iv(index):
    return index.to_bytes(2, 'big') + b'\x00' * (BLOCK_SIZE - 2)

def ticket_version(data):
    if len(data) < TICKET_VERSION_OFFSET + 2:
        raise ValueError('Ticket is truncated (%d bytes).' % len(data))
    return read_u16(data, TICKET_VERSION_OFFSET)

def read_ticket_version(fPath):
    with open(fPath, 'rb') as f:
        return ticket_version(f.read())


class Ticket:
    def __init__(self, titleKey):
        if len(titleKey) != BLOCK_SIZE:
            raise ValueError('Title key must be %d bytes, got %d!' % (BLOCK_SIZE, len(titleKey)))
        self.titleKey = titleKey

    @classmethod
    def from_cetk(cls, commonKey, tid, fPath):
        with open(fPath, 'rb') as f:
            data = f.read()
        encKey = read_at(data, TICKET_TITLE_KEY_OFFSET, BLOCK_SIZE)
        iv = title_id_bytes(tid).ljust(BLOCK_SIZE, b'\x00')
        return cls(AES.new(commonKey, AES.MODE_CBC, iv).decrypt(encKey))

    @classmethod
    def from_hex(cls, tkey):
        return cls(uhx(tkey))

    def decrypt_content(self, index, encPath, ext=DECRYPTED_EXTENSION):
        decPath = '%s.%s' % (encPath, ext)
        size = os.path.getsize(encPath)
        if size % BLOCK_SIZE:
            raise ValueError('Content \'%s\' is not block-aligned (%d bytes)!' % (encPath, size))

        cipher = AES.new(self.titleKey, AES.MODE_CBC, content_iv(index))
        with open(encPath, 'rb') as inf, open(decPath, 'wb') as outf:
            while True:
                buf = inf.read(BUF_SIZE)
                if not buf:
                    break
                outf.write(cipher.decrypt(buf))
        return decPath

    def __repr__(self):
        return 'Ticket(%s)' % hx(self.titleKey).decode()


def remove_quietly(fPath):
    if fPath and os.path.exists(fPath):
        os.remove(fPath)

def is_valid_rom(fPath):
    return srl.from_file(fPath).valid

def recover_ticket(titleIdBytes, contentPath, contentIndex=0, passwords=KEYGEN_PASSWORDS,
                   derive=derive_title_key, validate=is_valid_rom):
    for password in passwords:
        ticket = Ticket(derive(titleIdBytes, password))
        decPath = ticket.decrypt_content(contentIndex, contentPath)
        if validate(decPath):
            log.debug('\'%s\' is the password for the title key of \'%s\'!', password, contentPath)
            return ticket, True
        remove_quietly(decPath)

    log.error('Unable to find the password for the title key of \'%s\'.', contentPath)
    return None, False

def verify_metadata_content(metadata, decPath, i):
    info = metadata.contents[i]
    decHash = sha1_file(decPath)
    if decHash != info.sha1:
        log.error('Hash for \'%s\' does not match the recorded hash in \'%s\' (content index %d). (%s != %s)',
                  decPath, metadata.fileName, info.index, info.sha1, decHash)
        return False
    log.debug('Hash for \'%s\' matches the recorded hash in \'%s\' (content index %d).',
              decPath, metadata.fileName, info.index)
    return True

def dir_index(titleDir):
    # CDN names are upper-case hex, content IDs are formatted lower-case
    return {f.lower(): f for f in os.listdir(titleDir)}

def decrypt_metadata_contents(ticket, metadata, titleDir, start=0, makeQolFiles=False):
    files = dir_index(titleDir)
    names = []
    for i in range(start, metadata.numContents):
        info = metadata.contents[i]
        names.append(info.name)
        if info.name not in files:
            log.error('The content file \'%s\' does not exist, but should according to \'%s\'.',
                      os.path.join(titleDir, info.name), metadata.fileName)
            continue
        encPath = os.path.join(titleDir, files[info.name])
        decPath = ticket.decrypt_content(info.index, encPath)
        verify_metadata_content(metadata, decPath, i)
        if i == 0 and makeQolFiles:
            make_qol_file(decPath, titleDir)
    return names

def make_qol_file(decPath, titleDir):
    # An empty marker file named after the ROM, to tell title directories apart at a glance
    rom = srl.from_file(decPath)
    if rom.gameCode is None:
        return None
    markerPath = os.path.join(titleDir, safe_file_name('%s.txt' % rom.proper_name(withGameCode=True)))
    open(markerPath, 'w').close()
    return markerPath

def list_metadata(titleDir):
    files = [f for f in os.listdir(titleDir) if METADATA_FILE_RE.fullmatch(f)]
    return sorted((tmd.from_file(os.path.join(titleDir, f)) for f in files), key=lambda m: m.suffix)

def decrypt_entry(commonKey, titleDir, tkey=None, passwords=KEYGEN_PASSWORDS, makeQolFiles=False):
    tid = os.path.basename(os.path.normpath(titleDir)).upper()
    log.info('Starting on \'%s\'.', tid)

    ticketPath = os.path.join(titleDir, TICKET_FILE_NAME)
    decrypted = []
    ticket = None

    try:
        metadataFiles = list_metadata(titleDir)
        if tkey:
            ticket = Ticket.from_hex(tkey)
        elif os.path.exists(ticketPath):
            log.debug('A ticket exists for \'%s\'.', titleDir)
            ticket = Ticket.from_cetk(commonKey, tid, ticketPath)
    except ValueError as e:
        raise TitleError(tid, str(e))

    for metadata in metadataFiles:
        if metadata.numContents <= 0:
            continue
        if ticket is None:
            first = metadata.contents[0]
            files = dir_index(titleDir)
            if first.name not in files:
                raise TitleError(tid, 'first content \'%s\' is missing' % first.name)
            firstPath = os.path.join(titleDir, files[first.name])
            ticket, validated = recover_ticket(title_id_bytes(tid), firstPath, first.index, passwords)
            if not validated:
                raise TitleError(tid, 'no password in the dictionary decrypts \'%s\'' % first.name)
            firstDecPath = firstPath + '.' + DECRYPTED_EXTENSION
            verify_metadata_content(metadata, firstDecPath, 0)
            if makeQolFiles:
                make_qol_file(firstDecPath, titleDir)
            decrypted.append(first.name)
            decrypted.extend(decrypt_metadata_contents(ticket, metadata, titleDir, start=1))
        else:
            decrypted.extend(decrypt_metadata_contents(ticket, metadata, titleDir, makeQolFiles=makeQolFiles))

    if ticket is None:
        raise TitleError(tid, 'no ticket and no metadata to recover a title key from')

    remaining = sorted(f for f in os.listdir(titleDir)
                       if CONTENT_ENCRYPTED_RE.fullmatch(f) and f.lower() not in decrypted)
    for name in remaining:
        contentPath = os.path.join(titleDir, name)
        log.warning('Attempting to decrypt content without associated metadata: \'%s\'', contentPath)
        ticket.decrypt_content(0, contentPath)

    return ticket

def decrypt_entries(commonKey, archiveDir, threads=8, makeQolFiles=False):
    titleDirs = sorted(os.path.join(archiveDir, d) for d in os.listdir(archiveDir)
                       if os.path.isdir(os.path.join(archiveDir, d)))
    log.info('Beginning batch decryption of \'%s\' (%d titles).', archiveDir, len(titleDirs))

    done = 0
    with ThreadPoolExecutor(max_workers=max(threads, 1)) as pool:
        futures = {pool.submit(decrypt_entry, commonKey, d, makeQolFiles=makeQolFiles): d for d in titleDirs}
        for future in tqdm(futures, desc='Decrypting', unit='title', leave=False):
            try:
                future.result()
                done += 1
            except (TitleError, ValueError, OSError) as e:
                log.error('Skipping \'%s\': %s', futures[future], e)

    log.info('Decrypted %d of %d titles.', done, len(titleDirs))
    return done
